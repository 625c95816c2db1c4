# storefront/services/errors.py
"""Checkout failures that map straight onto an HTTP answer."""


class CheckoutError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        out = {"ok": False, "error": self.message}
        if self.details is not None:
            out["details"] = self.details
        return out


class ValidationError(CheckoutError):
    status_code = 400


class PaymentVerificationError(CheckoutError):
    status_code = 400


class VariantNotFound(CheckoutError):
    status_code = 400


class InsufficientStock(CheckoutError):
    status_code = 409


class AmountMismatch(CheckoutError):
    status_code = 400


class SerialFormatError(CheckoutError):
    status_code = 500


class TransactionTimeout(CheckoutError):
    status_code = 503
