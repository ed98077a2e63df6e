"""Construction of outbound order and payment-link requests.

Nothing here talks to the network: the builders return fully formed request
values that a gateway connector sends. Receipt ids are traceable to the
appointment but are not deduplicated; a retried order is a new attempt at
the gateway, and idempotency lives on the payment record.
"""

import time
from typing import Optional, Mapping, Any

from .connectors.base import (
    OrderRequest,
    PaymentLinkRequest,
    CustomerDetails,
    NotifySettings,
)
from .errors import InvalidAmount, InvalidExpiry, MissingRequiredField


def _require_amount(amount: Optional[int]) -> int:
    if amount is None:
        raise MissingRequiredField("amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer in minor units, got {amount!r}")
    if amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    return amount


def _stringify_notes(notes: Optional[Mapping[str, Any]]) -> dict:
    if not notes:
        return {}
    return {str(k): "" if v is None else str(v) for k, v in notes.items()}


def make_receipt_id(appointment_id: str, now: Optional[float] = None) -> str:
    """Receipt id of the form ``appt_<appointment>_<epoch millis>``."""
    if not appointment_id:
        raise MissingRequiredField("appointment_id")
    millis = int((time.time() if now is None else now) * 1000)
    return f"appt_{appointment_id}_{millis}"


def expiry_from_hours(hours: float, now: Optional[float] = None) -> int:
    """Unix timestamp ``hours`` from ``now``.

    Raises:
        InvalidExpiry: If ``hours`` is not a positive number.
    """
    if isinstance(hours, bool) or not isinstance(hours, (int, float)) or not hours > 0:
        raise InvalidExpiry(f"Expiry must be a positive number of hours, got {hours!r}")
    start = time.time() if now is None else now
    return int(start) + int(hours * 3600)


def build_order_request(
    amount: Optional[int],
    receipt: Optional[str],
    notes: Optional[Mapping[str, Any]] = None,
    currency: str = "INR",
) -> OrderRequest:
    """Build a create-order request.

    Args:
        amount: Amount in minor units.
        receipt: Receipt identifier traceable to the appointment.
        notes: Free-form string metadata forwarded to the gateway.
        currency: ISO currency code.

    Raises:
        MissingRequiredField: If amount or receipt is absent.
        InvalidAmount: If amount is not a positive integer.
    """
    amount = _require_amount(amount)
    if not receipt:
        raise MissingRequiredField("receipt")
    return OrderRequest(
        amount=amount,
        currency=(currency or "INR").upper(),
        receipt=receipt,
        notes=_stringify_notes(notes),
    )


def build_payment_link_request(
    amount: Optional[int],
    description: str,
    customer: Optional[CustomerDetails],
    expire_by: Optional[int] = None,
    currency: str = "INR",
    notes: Optional[Mapping[str, Any]] = None,
    receipt: Optional[str] = None,
    callback_url: Optional[str] = None,
) -> PaymentLinkRequest:
    """Build a create-payment-link request.

    The customer's phone is required since it is the channel the link is sent
    on. An email address only switches on email notification.

    Raises:
        MissingRequiredField: If amount or customer phone is absent.
        InvalidAmount: If amount is not a positive integer.
    """
    amount = _require_amount(amount)
    if customer is None or not customer.contact:
        raise MissingRequiredField("customer.contact")
    return PaymentLinkRequest(
        amount=amount,
        currency=(currency or "INR").upper(),
        description=description,
        customer=customer,
        notify=NotifySettings(sms=True, email=bool(customer.email)),
        expire_by=expire_by,
        receipt=receipt,
        callback_url=callback_url,
        notes=_stringify_notes(notes),
    )
