"""Routing of verified webhook deliveries to payment record transitions."""

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from .database import PaymentRecordRepository, PaymentRecord, PaymentStatus
from .errors import MalformedEvent, RecordNotFound
from .events import (
    PaymentSettled,
    PaymentFailed,
    OrderPaid,
    UnrecognizedEvent,
    WebhookEvent,
    parse_event,
)

logger = logging.getLogger(__name__)


class DispatchOutcome(str, enum.Enum):
    """What a delivery did. Every outcome is acknowledged to the gateway."""
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNMATCHED = "unmatched"
    INFORMATIONAL = "informational"
    IGNORED = "ignored"
    MALFORMED = "malformed"


@dataclass
class DispatchResult:
    outcome: DispatchOutcome
    event_type: Optional[str] = None
    gateway_order_id: Optional[str] = None
    record: Optional[PaymentRecord] = None
    error: Optional[str] = None


class WebhookDispatcher:
    """Dispatch verified webhook bodies onto payment records.

    The caller must have verified the signature before handing the body
    over. Parse problems, unknown event types and unknown orders are
    acknowledged so the gateway does not keep redelivering them; they are
    logged for operators instead.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.payment_repo = PaymentRecordRepository(session)

    async def dispatch(self, raw_body: Union[bytes, str]) -> DispatchResult:
        try:
            event = parse_event(raw_body)
        except MalformedEvent as e:
            logger.error(f"Malformed webhook event acknowledged without action: {e.message}")
            return DispatchResult(outcome=DispatchOutcome.MALFORMED, error=e.message)
        return await self.dispatch_event(event)

    async def dispatch_event(self, event: WebhookEvent) -> DispatchResult:
        if isinstance(event, PaymentSettled):
            return await self._transition(
                event,
                PaymentStatus.COMPLETED,
                gateway_payment_id=event.payment_id,
            )
        if isinstance(event, PaymentFailed):
            return await self._transition(
                event,
                PaymentStatus.FAILED,
                failure_reason=event.error_description,
            )
        if isinstance(event, OrderPaid):
            # Completion is driven by payment.captured/authorized only
            logger.info(f"Order paid: {event.order_id}")
            return DispatchResult(
                outcome=DispatchOutcome.INFORMATIONAL,
                event_type=event.event_type,
                gateway_order_id=event.order_id,
            )
        if isinstance(event, UnrecognizedEvent):
            logger.info(f"Unhandled webhook event: {event.event_type}")
            return DispatchResult(outcome=DispatchOutcome.IGNORED, event_type=event.event_type)
        raise TypeError(f"Unsupported event variant: {type(event).__name__}")

    async def _transition(
        self,
        event: Union[PaymentSettled, PaymentFailed],
        target: PaymentStatus,
        gateway_payment_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> DispatchResult:
        try:
            result = await self.payment_repo.apply_transition(
                event.order_id,
                target,
                gateway_payment_id=gateway_payment_id,
                failure_reason=failure_reason,
                gateway_event=event.event_type,
            )
        except RecordNotFound:
            logger.warning(f"Payment record not found for order: {event.order_id}")
            return DispatchResult(
                outcome=DispatchOutcome.UNMATCHED,
                event_type=event.event_type,
                gateway_order_id=event.order_id,
            )
        outcome = DispatchOutcome.APPLIED if result.changed else DispatchOutcome.DUPLICATE
        return DispatchResult(
            outcome=outcome,
            event_type=event.event_type,
            gateway_order_id=event.order_id,
            record=result.record,
        )
