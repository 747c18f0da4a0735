from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
import os
from dotenv import load_dotenv

# DATABASE_URL is read from .env when present
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./finsync.db")


def build_engine(url: str):
    """
    Create the SQLAlchemy engine for the given URL.

    SQLite needs check_same_thread disabled because FastAPI serves sync
    endpoints from a threadpool; in-memory SQLite additionally needs a single
    shared connection or every session would see an empty database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(DATABASE_URL)

# One session per request
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# All tables inherit from this
Base = declarative_base()

# FastAPI dependency: yields a session and always closes it
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
