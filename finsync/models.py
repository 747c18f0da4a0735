from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, CheckConstraint
from sqlalchemy.sql import func
from finsync.database import Base

CATEGORIES = ("bills", "healthcare", "groceries", "transfer", "other")
STATUSES = ("pending", "completed", "failed")


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)  # learner who recorded it
    payee = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False, default="other")
    status = Column(String, nullable=False, default="pending")
    upi_id = Column(String, nullable=True)
    transaction_id = Column(String, nullable=True)  # reference from the payment app
    date = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Set once by the risk classifier at creation
    flagged = Column(Boolean, nullable=False, default=False)
    flag_reason = Column(String, nullable=True)

    def __repr__(self):
        return f"<Transaction(id={self.id}, user={self.user_id}, payee={self.payee}, amount={self.amount}, status={self.status}, flagged={self.flagged})>"
