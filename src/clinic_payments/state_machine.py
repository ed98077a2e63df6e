"""Transition rules for the payment record lifecycle.

    pending --> completed   (terminal)
    pending --> failed      (terminal)

Nothing leads back to pending. Applying any event to a terminal record is a
no-op. The rules here are pure; the repository executes them as a single
conditional update so that only one transition out of pending can win.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, Union

from .database.models import PaymentStatus, AuditAction
from .errors import InvalidTransition

DEFAULT_FAILURE_REASON = "Payment failed"


@dataclass(frozen=True)
class Transition:
    """A decided move out of pending."""
    new_status: PaymentStatus
    gateway_payment_id: Optional[str] = None
    failure_reason: Optional[str] = None
    previous_status: PaymentStatus = PaymentStatus.PENDING

    @property
    def audit_action(self) -> AuditAction:
        if self.new_status == PaymentStatus.COMPLETED:
            return AuditAction.PAYMENT_COMPLETED
        return AuditAction.PAYMENT_FAILED

    def column_values(self, now: datetime) -> Dict[str, Any]:
        """Columns written by the transition, ``updated_at`` included."""
        values: Dict[str, Any] = {
            "status": self.new_status.value,
            "updated_at": now,
        }
        if self.new_status == PaymentStatus.COMPLETED:
            values["gateway_payment_id"] = self.gateway_payment_id
            values["completed_at"] = now
        else:
            values["failure_reason"] = self.failure_reason
        return values


def _coerce_target(target: Union[PaymentStatus, str]) -> PaymentStatus:
    try:
        status = PaymentStatus(target)
    except ValueError as e:
        raise InvalidTransition(f"Unknown target status {target!r}") from e
    if status == PaymentStatus.PENDING:
        raise InvalidTransition("No transition leads back to pending")
    return status


def validate_transition_request(
    target: Union[PaymentStatus, str],
    gateway_payment_id: Optional[str] = None,
    failure_reason: Optional[str] = None,
) -> Transition:
    """Build the transition a pending record would take for this request.

    Raises:
        InvalidTransition: If the target is unknown or pending, or a
            completion is requested without a gateway payment id.
    """
    status = _coerce_target(target)
    if status == PaymentStatus.COMPLETED:
        if not gateway_payment_id:
            raise InvalidTransition("Completing a payment requires a gateway payment id")
        return Transition(new_status=status, gateway_payment_id=gateway_payment_id)
    return Transition(new_status=status, failure_reason=failure_reason or DEFAULT_FAILURE_REASON)


def decide_transition(
    current_status: Union[PaymentStatus, str],
    target: Union[PaymentStatus, str],
    gateway_payment_id: Optional[str] = None,
    failure_reason: Optional[str] = None,
) -> Optional[Transition]:
    """Decide the effect of an event on a record in ``current_status``.

    Returns:
        The transition to apply, or None if the record is already terminal
        and the event is a no-op.
    """
    if PaymentStatus(current_status) != PaymentStatus.PENDING:
        return None
    return validate_transition_request(target, gateway_payment_id, failure_reason)
