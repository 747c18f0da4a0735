from pydantic import BaseModel, Field, validator
from typing import List, Literal, Optional
from datetime import datetime
import math


def _not_blank(v: str, label: str, max_len: int = 100) -> str:
    if not v or not v.strip():
        raise ValueError(f'{label} cannot be empty')
    if len(v) > max_len:
        raise ValueError(f'{label} too long (max {max_len} characters)')
    return v.strip()


class TransactionCreate(BaseModel):
    """
    Request schema for recording a learner's transaction.
    """
    user_id: str = Field(..., description="Learner recording the payment")
    payee: str = Field(..., description="Who is being paid, free text")
    amount: float = Field(..., description="Amount in INR")
    category: Literal['bills', 'healthcare', 'groceries', 'transfer', 'other'] = Field(default='other')
    upi_id: Optional[str] = Field(None, description="Payee VPA, e.g. shop@okbank")

    @validator('amount')
    def amount_not_negative(cls, v):
        if not math.isfinite(v):
            raise ValueError('Amount must be a finite number')
        if v < 0:
            raise ValueError('Amount cannot be negative')
        # stored as entered; the risk threshold compares the exact value
        return v

    @validator('user_id')
    def user_id_not_empty(cls, v):
        return _not_blank(v, 'User ID')

    @validator('payee')
    def payee_not_empty(cls, v):
        return _not_blank(v, 'Payee', max_len=200)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "learner_42",
                "payee": "Medical Store",
                "amount": 450.00,
                "category": "healthcare",
                "upi_id": "medstore@okaxis"
            }
        }


class TransactionResponse(BaseModel):
    id: int
    user_id: str
    payee: str
    amount: float
    category: str
    status: str
    flagged: bool
    flag_reason: Optional[str] = None
    upi_id: Optional[str] = None
    transaction_id: Optional[str] = None
    date: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusUpdate(BaseModel):
    """
    Only status and the payment app's reference may change after creation.
    """
    user_id: str = Field(..., description="Owner of the transaction")
    status: Literal['pending', 'completed', 'failed']
    transaction_id: Optional[str] = Field(None, description="Reference returned by the payment app")

    @validator('user_id')
    def user_id_not_empty(cls, v):
        return _not_blank(v, 'User ID')


class ScanRequest(BaseModel):
    user_id: str = Field(..., description="Learner who scanned the code")
    raw: str = Field(..., description="Text decoded from the QR, untouched")

    @validator('user_id')
    def user_id_not_empty(cls, v):
        return _not_blank(v, 'User ID')

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "learner_42",
                "raw": "upi://pay?pa=shop@okbank&pn=Corner%20Shop&cu=INR"
            }
        }


class PendingIntentResponse(BaseModel):
    intent_id: str
    raw_uri: str
    query: str
    payee_name: str = Field("", description="pn from the query, for display only")


class PayIntentRequest(BaseModel):
    user_id: str = Field(..., description="Learner confirming the amount")
    vpa: Optional[str] = Field(None, description="Payee VPA; defaults to the transaction's upi_id")


class PayRequest(BaseModel):
    """
    Amount confirmation. The amount is kept as text so the API can answer
    with the same re-prompt messages the amount pad shows.
    """
    user_id: str
    intent_id: str
    amount: str = Field(..., description="Amount exactly as typed, e.g. '250' or '99.5'")
    user_agent: Optional[str] = Field(None, description="Browser user agent; falls back to the request header")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "learner_42",
                "intent_id": "3f2b7c0e9a8d4e55b1c7f0a2d9e4c6b1",
                "amount": "250",
                "user_agent": "Mozilla/5.0 (Linux; Android 14)"
            }
        }


class LaunchAttemptResponse(BaseModel):
    url: str
    wait_ms: int


class LaunchPlanResponse(BaseModel):
    platform: str
    attempts: List[LaunchAttemptResponse]
    failure_message: str


class PayResponse(BaseModel):
    query: str
    upi_uri: str
    amount: str
    plan: LaunchPlanResponse
