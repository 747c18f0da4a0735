"""
UPI deep-link decoding and amount injection.

Payment apps are strict about how a QR's query string is encoded, so nothing
here re-serialises a scanned query. Decoding only slices the original text,
and encoding edits the ``am`` value in place (plus appends ``cu`` when
missing). Every other byte of the query reaches the payment app exactly as
the merchant's QR produced it.
"""
import re
import math
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, quote, urlencode

from finsync.errors import InvalidAmount, UnrecognizedPaymentCode

logger = logging.getLogger(__name__)

UPI_PREFIX = "upi://pay?"
DEFAULT_CURRENCY = "INR"
DEFAULT_MERCHANT_VPA = "merchant@upi"

# Ordered: plain URI first, then a URI embedded in an intent:// wrapper
_URI_PATTERNS = (
    re.compile(r"upi://pay\?[^#\s]+", re.IGNORECASE),
    re.compile(r"upi://pay\?[^;\"\s]+", re.IGNORECASE),
)
_BARE_QUERY_PATTERN = re.compile(r"(^|[?&])pa=")

# Same characters encodeURIComponent leaves alone
_COMPONENT_SAFE = "-_.!~*'()"

# Digits with an optional decimal point, the only thing the amount pad accepts
_AMOUNT_PATTERN = re.compile(r"^(\d+\.?\d*|\.\d+)$")


@dataclass(frozen=True)
class PaymentIntent:
    raw_uri: str
    query: str

    @property
    def payee_name(self) -> str:
        return payee_name(self.query)


def _split_query(uri: str) -> str:
    return uri.partition("?")[2]


def decode(raw) -> Optional[PaymentIntent]:
    """
    Extract a payment intent from a scanned or hand-built string.

    Tries, in order: an exact ``upi://pay?...`` URI, a URI embedded in an
    intent wrapper, and a bare ``pa=...`` query with no scheme. Returns None
    when nothing matches; callers treat that as "not a payment QR".
    """
    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None

    for pattern in _URI_PATTERNS:
        match = pattern.search(s)
        if match:
            raw_uri = match.group(0)
            return PaymentIntent(raw_uri=raw_uri, query=_split_query(raw_uri))

    if _BARE_QUERY_PATTERN.search(s):
        query = s.rsplit("?", 1)[-1] if "?" in s else s
        return PaymentIntent(raw_uri=UPI_PREFIX + query, query=query)

    return None


def require_intent(raw) -> PaymentIntent:
    intent = decode(raw)
    if intent is None:
        raise UnrecognizedPaymentCode("" if raw is None else str(raw).strip())
    return intent


def payee_name(query: str) -> str:
    """Display name (``pn``) from a query; empty when absent or unparsable."""
    try:
        for key, value in parse_qsl(query or "", keep_blank_values=True):
            if key == "pn":
                return value
    except (ValueError, TypeError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read pn from query: {e}")
    return ""


def _set_param(query: str, key: str, value: str) -> str:
    encoded = quote(str(value), safe=_COMPONENT_SAFE)
    pattern = re.compile(rf"(^|&)({re.escape(key)}=)([^&]*)", re.IGNORECASE)
    if pattern.search(query):
        # keep the original key spelling, swap the value only
        return pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{encoded}", query, count=1)
    return f"{query}&{key}={encoded}" if query else f"{key}={encoded}"


def set_amount(query: str, amount_string: str) -> str:
    return _set_param(query or "", "am", amount_string)


def ensure_currency(query: str) -> str:
    """Append ``cu=INR`` unless the query already names a currency."""
    query = query or ""
    if re.search(r"(^|&)cu=([^&]*)", query, re.IGNORECASE):
        return query
    return f"{query}&cu={DEFAULT_CURRENCY}" if query else f"cu={DEFAULT_CURRENCY}"


def normalize_amount(text) -> str:
    """
    Validate a user-entered amount and format it with two decimals.

    Raises InvalidAmount for empty, non-numeric or non-positive input.
    """
    value = "" if text is None else str(text).strip()
    if not value:
        raise InvalidAmount("Enter amount")
    if not _AMOUNT_PATTERN.match(value):
        raise InvalidAmount("Enter a valid amount")
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise InvalidAmount("Enter a valid amount")
    return f"{number:.2f}"


def prepare_payment_query(query: str, amount_text) -> str:
    """Confirm-amount step: validated amount in, launch-ready query out."""
    amount = normalize_amount(amount_text)
    return ensure_currency(set_amount(query, amount))


def build_payee_query(payee: str, vpa: str = DEFAULT_MERCHANT_VPA) -> str:
    """Query for paying a recorded transaction that has no scanned QR."""
    return urlencode({"pa": vpa, "pn": payee, "cu": DEFAULT_CURRENCY})


def upi_uri(query: str) -> str:
    return UPI_PREFIX + query
