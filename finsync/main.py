from fastapi import FastAPI, Depends, HTTPException, Query, Request
from sqlalchemy import text
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from finsync.database import engine, get_db
from finsync.models import Base, Transaction
from finsync.schemas import (
    TransactionCreate, TransactionResponse, StatusUpdate,
    ScanRequest, PendingIntentResponse, PayIntentRequest, PayRequest, PayResponse,
    LaunchPlanResponse, LaunchAttemptResponse,
)
from finsync.risk_classifier import apply_verdict
from finsync.errors import InvalidAmount, UnrecognizedPaymentCode
from finsync import upi_codec
from finsync.launch_sequencer import plan_for_user_agent
from finsync.intent_store import get_redis, save_pending_intent, load_pending_intent, discard_pending_intent
from typing import List, Optional
import logging
import redis
from datetime import datetime

VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create tables if they don't exist
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="FinSync Payments Guard",
    version=VERSION,
    description="Family-monitored UPI payments: transaction risk flags and Google Pay launch planning"
)


def redis_dependency():
    try:
        return get_redis()
    except redis.RedisError:
        raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")


def _owned_transaction(db: Session, txn_id: int, user_id: str) -> Transaction:
    txn = db.query(Transaction).filter(
        Transaction.id == txn_id,
        Transaction.user_id == user_id
    ).first()
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn


# Health check for monitoring
@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for load balancers and monitoring tools.
    """
    try:
        get_redis().ping()
        redis_status = "healthy"
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"

    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": VERSION,
        "services": {
            "redis": redis_status,
            "database": db_status
        }
    }


@app.post("/api/v1/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(request: TransactionCreate, db: Session = Depends(get_db)):
    """
    Record a learner's transaction.

    The risk verdict is computed here, once, before the insert. Mentors see
    flagged records through the flagged listing.
    """
    logger.info(
        f"Recording transaction: User={request.user_id}, Payee={request.payee!r}, "
        f"Amount=₹{request.amount}, Category={request.category}"
    )

    try:
        txn = Transaction(
            user_id=request.user_id,
            payee=request.payee,
            amount=request.amount,
            category=request.category,
            upi_id=request.upi_id,
            status="pending"
        )
        apply_verdict(txn)

        db.add(txn)
        db.commit()
        db.refresh(txn)
        return txn

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail="Transaction recording failed: Database error"
        )


@app.get("/api/v1/transactions", response_model=List[TransactionResponse])
def list_transactions(user_id: str, db: Session = Depends(get_db)):
    try:
        return db.query(Transaction).filter(
            Transaction.user_id == user_id
        ).order_by(
            Transaction.date.desc(), Transaction.id.desc()
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching transactions: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch transactions")


@app.get("/api/v1/transactions/flagged", response_model=List[TransactionResponse])
def list_flagged_transactions(user_id: str, limit: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    """
    Flagged transactions for a learner, newest first. This is what the
    mentor reviews. All of them are returned unless ``limit`` is given.
    """
    try:
        query = db.query(Transaction).filter(
            Transaction.user_id == user_id,
            Transaction.flagged == True
        ).order_by(
            Transaction.date.desc(), Transaction.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching flagged transactions: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch flagged transactions")


@app.patch("/api/v1/transactions/{txn_id}/status", response_model=TransactionResponse)
def update_transaction_status(txn_id: int, request: StatusUpdate, db: Session = Depends(get_db)):
    """
    Mark a transaction completed/failed and attach the payment reference.

    The flag is not recomputed: a transaction is vetted once, when recorded.
    """
    txn = _owned_transaction(db, txn_id, request.user_id)

    try:
        txn.status = request.status
        if request.transaction_id:
            txn.transaction_id = request.transaction_id
        db.commit()
        db.refresh(txn)
        logger.info(f"Status updated: Txn={txn.id}, Status={txn.status}")
        return txn

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error: {str(e)}")
        raise HTTPException(status_code=500, detail="Status update failed: Database error")


@app.post("/api/v1/transactions/{txn_id}/pay-intent", response_model=PendingIntentResponse)
def create_pay_intent(
    txn_id: int,
    request: PayIntentRequest,
    db: Session = Depends(get_db),
    redis_client=Depends(redis_dependency)
):
    """
    "Pay Now" for a recorded transaction: builds a query for its payee and
    parks it until the learner confirms the amount.
    """
    txn = _owned_transaction(db, txn_id, request.user_id)
    if txn.status != "pending":
        raise HTTPException(status_code=409, detail="Only pending transactions can be paid")

    vpa = request.vpa or txn.upi_id or upi_codec.DEFAULT_MERCHANT_VPA
    query = upi_codec.build_payee_query(txn.payee, vpa)

    try:
        intent_id = save_pending_intent(redis_client, request.user_id, query, txn.payee)
    except redis.RedisError as e:
        logger.error(f"Redis error saving intent for user {request.user_id}: {str(e)}")
        raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

    return PendingIntentResponse(
        intent_id=intent_id,
        raw_uri=upi_codec.upi_uri(query),
        query=query,
        payee_name=txn.payee
    )


@app.post("/api/v1/upi/scan", response_model=PendingIntentResponse)
def scan_payment_code(request: ScanRequest, redis_client=Depends(redis_dependency)):
    """
    Decode text read from a QR (camera frame or uploaded photo).

    Unrecognised codes are answered with 422 and the scanned text echoed
    back so the learner can see what was read.
    """
    try:
        intent = upi_codec.require_intent(request.raw)
    except UnrecognizedPaymentCode as e:
        logger.info(f"Unrecognised code scanned by user {request.user_id}")
        raise HTTPException(status_code=422, detail=str(e))

    try:
        intent_id = save_pending_intent(redis_client, request.user_id, intent.query, intent.payee_name)
    except redis.RedisError as e:
        logger.error(f"Redis error saving intent for user {request.user_id}: {str(e)}")
        raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

    return PendingIntentResponse(
        intent_id=intent_id,
        raw_uri=intent.raw_uri,
        query=intent.query,
        payee_name=intent.payee_name
    )


@app.post("/api/v1/upi/pay", response_model=PayResponse)
def confirm_payment_amount(request: PayRequest, http_request: Request, redis_client=Depends(redis_dependency)):
    """
    Set the confirmed amount on a pending intent and return the Google Pay
    launch plan for the caller's platform.

    An invalid amount answers 400 and leaves the intent in place so the
    learner can simply try again.
    """
    try:
        pending = load_pending_intent(redis_client, request.intent_id, request.user_id)
        if pending is None:
            raise HTTPException(status_code=404, detail="Payment intent expired or not found. Please scan again.")

        try:
            query = upi_codec.prepare_payment_query(pending["query"], request.amount)
        except InvalidAmount as e:
            raise HTTPException(status_code=400, detail=str(e))

        discard_pending_intent(redis_client, request.intent_id)

    except redis.RedisError as e:
        logger.error(f"Redis error confirming intent {request.intent_id}: {str(e)}")
        raise HTTPException(status_code=503, detail="Payment service temporarily unavailable")

    user_agent = request.user_agent or http_request.headers.get("user-agent", "")
    plan = plan_for_user_agent(user_agent, query)

    logger.info(
        f"Payment ready: User={request.user_id}, Intent={request.intent_id}, "
        f"Platform={plan.platform.value}, Attempts={len(plan.attempts)}"
    )

    return PayResponse(
        query=query,
        upi_uri=upi_codec.upi_uri(query),
        amount=upi_codec.normalize_amount(request.amount),
        plan=LaunchPlanResponse(
            platform=plan.platform.value,
            attempts=[LaunchAttemptResponse(url=a.url, wait_ms=a.wait_ms) for a in plan.attempts],
            failure_message=plan.failure_message
        )
    )


@app.get("/")
def home():
    """
    Root endpoint - API information.
    """
    return {
        "message": "FinSync Payments Guard",
        "version": VERSION,
        "status": "operational",
        "endpoints": {
            "health": "/health",
            "record_transaction": "POST /api/v1/transactions",
            "list_transactions": "GET /api/v1/transactions?user_id=",
            "flagged_transactions": "GET /api/v1/transactions/flagged?user_id=",
            "update_status": "PATCH /api/v1/transactions/{id}/status",
            "pay_recorded": "POST /api/v1/transactions/{id}/pay-intent",
            "scan": "POST /api/v1/upi/scan",
            "pay": "POST /api/v1/upi/pay"
        }
    }
