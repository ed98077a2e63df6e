"""Typed error taxonomy for the payment lifecycle."""

from typing import Optional


class PaymentError(Exception):
    """Base class for all payment lifecycle errors.

    Callers branch on the subclass (or ``code``), never on the message text.
    """

    code = "payment_error"
    http_status = 500

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidAmount(PaymentError):
    code = "invalid_amount"
    http_status = 400


class MissingRequiredField(PaymentError):
    code = "missing_required_field"
    http_status = 400

    def __init__(self, field_name: str):
        super().__init__(f"Missing required field: {field_name}")
        self.field_name = field_name


class MissingSecret(PaymentError):
    """Raised when a signing secret is not configured."""
    code = "missing_secret"
    http_status = 500


class Unauthorized(PaymentError):
    code = "unauthorized"
    http_status = 401


class MalformedEvent(PaymentError):
    code = "malformed_event"
    http_status = 400


class RecordNotFound(PaymentError):
    code = "record_not_found"
    http_status = 404


class InvalidTransition(PaymentError):
    code = "invalid_transition"
    http_status = 409


class GatewayUnavailable(PaymentError):
    code = "gateway_unavailable"
    http_status = 503


class InvalidExpiry(PaymentError):
    code = "invalid_expiry"
    http_status = 400
