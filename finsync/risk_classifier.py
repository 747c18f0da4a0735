import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# --- CONFIGURATION (INR) ---
HIGH_AMOUNT_THRESHOLD = 3000

# Payee names that scammers commonly use on elders
SUSPICIOUS_PAYEE_KEYWORDS = ("unknown", "urgent", "prize", "lottery", "winner")

HIGH_AMOUNT_REASON = "High amount transaction"
SUSPICIOUS_PAYEE_REASON = "Suspicious payee name"


@dataclass(frozen=True)
class RiskVerdict:
    flagged: bool
    reason: Optional[str] = None


def classify(amount: float, payee: str) -> RiskVerdict:
    """
    Decide whether a transaction should be flagged for the mentor.

    Rules are ordered and the first match wins, so a high amount is reported
    even when the payee name is also suspicious. Never raises: amount
    validation (negative values) happens before this is called.
    """
    # --- RULE 1: HIGH AMOUNT ---
    if amount > HIGH_AMOUNT_THRESHOLD:
        return RiskVerdict(True, HIGH_AMOUNT_REASON)

    # --- RULE 2: SUSPICIOUS PAYEE ---
    payee_lower = (payee or "").lower()
    if any(keyword in payee_lower for keyword in SUSPICIOUS_PAYEE_KEYWORDS):
        return RiskVerdict(True, SUSPICIOUS_PAYEE_REASON)

    return RiskVerdict(False)


def apply_verdict(txn) -> RiskVerdict:
    """
    Classify a transaction record and write flagged/flag_reason onto it.

    Called by the persistence layer right before a new record is committed.
    Status updates do not come through here: a transaction is vetted once,
    at creation.
    """
    verdict = classify(txn.amount, txn.payee)
    txn.flagged = verdict.flagged
    txn.flag_reason = verdict.reason

    if verdict.flagged:
        logger.warning(f"FLAGGED: User={txn.user_id}, Payee={txn.payee!r}, Amount=₹{txn.amount}, Reason={verdict.reason}")
    return verdict
