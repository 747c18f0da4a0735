"""
Short-lived storage for payment intents waiting on an amount.

A scanned QR (or a "Pay Now" on a recorded transaction) produces a query
string that must survive until the learner confirms an amount. Only the
query is kept; the raw URI can always be rebuilt from it.
"""
import redis
import os
import json
import uuid
import logging
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

PENDING_INTENT_TTL_SECONDS = int(os.getenv("PENDING_INTENT_TTL_SECONDS", 600))

pool = redis.ConnectionPool(
    host=os.getenv("REDIS_HOST", "localhost"),
    port=int(os.getenv("REDIS_PORT", 6379)),
    db=int(os.getenv("REDIS_DB", 0)),
    decode_responses=True,
    socket_timeout=5,
    socket_connect_timeout=5,
    retry_on_timeout=True
)


def get_redis():
    try:
        client = redis.Redis(connection_pool=pool)
        client.ping()
        return client
    except redis.ConnectionError as e:
        logger.critical(f"Cannot connect to Redis: {e}")
        raise e


def _key(intent_id: str) -> str:
    return f"intent:{intent_id}"


def save_pending_intent(client, user_id: str, query: str, payee_name: str = "") -> str:
    """Store a pending query and return the id the client must echo back."""
    intent_id = uuid.uuid4().hex
    payload = json.dumps({"user_id": user_id, "query": query, "payee_name": payee_name})
    client.set(_key(intent_id), payload, ex=PENDING_INTENT_TTL_SECONDS)
    logger.info(f"PENDING INTENT: User={user_id}, Intent={intent_id}, TTL={PENDING_INTENT_TTL_SECONDS}s")
    return intent_id


def load_pending_intent(client, intent_id: str, user_id: str) -> Optional[dict]:
    """
    Fetch a pending intent owned by user_id.

    Returns None when the intent expired, never existed, or belongs to
    someone else.
    """
    raw = client.get(_key(intent_id))
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if not isinstance(data, dict):
        logger.error(f"Corrupt pending intent {intent_id}, discarding")
        client.delete(_key(intent_id))
        return None
    if data.get("user_id") != user_id:
        logger.warning(f"Intent {intent_id} requested by non-owner {user_id}")
        return None
    return data


def discard_pending_intent(client, intent_id: str) -> None:
    client.delete(_key(intent_id))
