"""Webhook event envelope parsing into a closed set of event variants."""

import json
from typing import Optional, Dict, Any, Union, Literal

from pydantic import BaseModel, ConfigDict

from .errors import MalformedEvent

SETTLEMENT_EVENTS = frozenset({"payment.captured", "payment.authorized"})
FAILURE_EVENT = "payment.failed"
ORDER_PAID_EVENT = "order.paid"


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: str


class PaymentSettled(_Event):
    """payment.captured or payment.authorized: the authoritative completion."""
    kind: Literal["payment_settled"] = "payment_settled"
    order_id: str
    payment_id: str


class PaymentFailed(_Event):
    kind: Literal["payment_failed"] = "payment_failed"
    order_id: str
    payment_id: Optional[str] = None
    error_description: Optional[str] = None


class OrderPaid(_Event):
    """Informational only; completion comes from the payment events."""
    kind: Literal["order_paid"] = "order_paid"
    order_id: str


class UnrecognizedEvent(_Event):
    kind: Literal["unrecognized"] = "unrecognized"


WebhookEvent = Union[PaymentSettled, PaymentFailed, OrderPaid, UnrecognizedEvent]


def _entity(envelope: Dict[str, Any], name: str) -> Dict[str, Any]:
    payload = envelope.get("payload")
    if not isinstance(payload, dict):
        raise MalformedEvent("Event has no payload object")
    wrapper = payload.get(name)
    if not isinstance(wrapper, dict) or not isinstance(wrapper.get("entity"), dict):
        raise MalformedEvent(f"Event payload is missing {name}.entity")
    return wrapper["entity"]


def _required_str(entity: Dict[str, Any], key: str, path: str) -> str:
    value = entity.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedEvent(f"Event payload is missing {path}")
    return value


def _optional_str(entity: Dict[str, Any], key: str) -> Optional[str]:
    value = entity.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def parse_event(raw: Union[bytes, str]) -> WebhookEvent:
    """Parse an already verified webhook body into an event variant.

    Raises:
        MalformedEvent: If the body is not a JSON object with a string
            ``event`` tag, or a recognised event lacks its required fields.
    """
    try:
        envelope = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise MalformedEvent("Event body is not valid JSON") from e
    if not isinstance(envelope, dict):
        raise MalformedEvent("Event body is not a JSON object")
    event_type = envelope.get("event")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEvent("Event body has no event type")

    if event_type in SETTLEMENT_EVENTS:
        entity = _entity(envelope, "payment")
        return PaymentSettled(
            event_type=event_type,
            order_id=_required_str(entity, "order_id", "payment.entity.order_id"),
            payment_id=_required_str(entity, "id", "payment.entity.id"),
        )
    if event_type == FAILURE_EVENT:
        entity = _entity(envelope, "payment")
        return PaymentFailed(
            event_type=event_type,
            order_id=_required_str(entity, "order_id", "payment.entity.order_id"),
            payment_id=_optional_str(entity, "id"),
            error_description=_optional_str(entity, "error_description"),
        )
    if event_type == ORDER_PAID_EVENT:
        entity = _entity(envelope, "order")
        return OrderPaid(
            event_type=event_type,
            order_id=_required_str(entity, "id", "order.entity.id"),
        )
    return UnrecognizedEvent(event_type=event_type)
