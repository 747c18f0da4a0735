"""Payment flow exceptions. All of them are user-facing, none are fatal."""


class PaymentFlowError(Exception):
    """Base exception for the scan → amount → launch flow"""
    pass


class UnrecognizedPaymentCode(PaymentFlowError):
    """Scanned text does not contain a UPI payment intent"""

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"Scanned code:\n{raw}\n\nThis doesn't look like a UPI payment QR.")


class InvalidAmount(PaymentFlowError, ValueError):
    """Entered amount is empty, not a number, or not positive"""
    pass
