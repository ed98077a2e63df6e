"""Repository layer for payment record persistence."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, List, Union

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import RecordNotFound, InvalidAmount
from ..state_machine import Transition, validate_transition_request
from .models import (
    PaymentRecord,
    PaymentAuditEntry,
    PaymentStatus,
    AuditAction,
)

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    """Outcome of an attempted transition."""
    record: PaymentRecord
    changed: bool
    transition: Optional[Transition] = None


class PaymentRecordRepository:
    """Repository for PaymentRecord operations. Records are never deleted."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit_repo = PaymentAuditRepository(session)

    async def create(
        self,
        gateway_order_id: str,
        amount: int,
        currency: str = "INR",
        appointment_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        receipt: Optional[str] = None,
        payment_link_id: Optional[str] = None,
        short_url: Optional[str] = None,
        notes: Optional[Dict[str, str]] = None,
    ) -> PaymentRecord:
        """Create a pending payment record and its creation audit entry.

        Args:
            gateway_order_id: Order id assigned by the gateway.
            amount: Amount in minor units.
            currency: Three-letter currency code.

        Returns:
            Created PaymentRecord instance.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")
        now = datetime.utcnow()
        record = PaymentRecord(
            gateway_order_id=gateway_order_id,
            amount=amount,
            currency=currency.upper(),
            status=PaymentStatus.PENDING.value,
            appointment_id=appointment_id,
            patient_id=patient_id,
            doctor_id=doctor_id,
            receipt=receipt,
            payment_link_id=payment_link_id,
            short_url=short_url,
            created_at=now,
            updated_at=now,
        )
        if notes:
            record.notes = notes

        self.session.add(record)
        await self.session.flush()

        await self.audit_repo.create(
            payment_id=record.id,
            action=AuditAction.PAYMENT_CREATED.value,
            new_status=record.status,
            details={
                "gateway_order_id": gateway_order_id,
                "appointment_id": appointment_id,
                "amount": amount,
            },
        )
        logger.info(f"Created payment record {record.id} for order {gateway_order_id}")
        return record

    async def get_by_id(self, payment_id: str) -> Optional[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecord)
            .where(PaymentRecord.id == payment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecord)
            .where(PaymentRecord.gateway_order_id == gateway_order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def apply_transition(
        self,
        gateway_order_id: str,
        target: Union[PaymentStatus, str],
        gateway_payment_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
        gateway_event: Optional[str] = None,
    ) -> TransitionResult:
        """Move a pending record to a terminal status with one conditional update.

        The UPDATE only matches while ``status = 'pending'``, so of two
        concurrent deliveries exactly one sees a row count of 1. The loser,
        and any later duplicate, gets the record back unchanged.

        Raises:
            RecordNotFound: If no record has this gateway order id.
            InvalidTransition: If the request itself is invalid.
        """
        transition = validate_transition_request(target, gateway_payment_id, failure_reason)
        now = datetime.utcnow()

        result = await self.session.execute(
            update(PaymentRecord)
            .where(
                PaymentRecord.gateway_order_id == gateway_order_id,
                PaymentRecord.status == PaymentStatus.PENDING.value,
            )
            .values(**transition.column_values(now))
            .execution_options(synchronize_session=False)
        )
        swapped = result.rowcount == 1

        record = await self.get_by_gateway_order_id(gateway_order_id)
        if record is None:
            raise RecordNotFound(f"No payment record for order {gateway_order_id}")

        if not swapped:
            logger.info(
                f"Payment {record.id} already {record.status}, "
                f"ignoring {transition.new_status.value} for order {gateway_order_id}"
            )
            return TransitionResult(record=record, changed=False)

        details: Dict[str, Any] = {"amount": record.amount}
        if transition.gateway_payment_id:
            details["gateway_payment_id"] = transition.gateway_payment_id
        if transition.failure_reason:
            details["failure_reason"] = transition.failure_reason
        await self.audit_repo.create(
            payment_id=record.id,
            action=transition.audit_action.value,
            previous_status=transition.previous_status.value,
            new_status=transition.new_status.value,
            gateway_event=gateway_event,
            details=details,
        )
        logger.info(f"Payment {record.id} moved pending -> {record.status}")
        return TransitionResult(record=record, changed=True, transition=transition)

    async def list_by_status(
        self,
        status: str,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecord)
            .where(PaymentRecord.status == status)
            .order_by(PaymentRecord.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def list_by_appointment(self, appointment_id: str) -> List[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecord)
            .where(PaymentRecord.appointment_id == appointment_id)
            .order_by(PaymentRecord.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_created_since(self, since: datetime) -> List[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecord)
            .where(PaymentRecord.created_at >= since)
            .order_by(PaymentRecord.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(PaymentRecord.status, func.count(PaymentRecord.id))
            .group_by(PaymentRecord.status)
        )
        return {status: count for status, count in result.all()}


class PaymentAuditRepository:
    """Repository for the append-only payment audit trail."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        payment_id: str,
        action: str,
        new_status: str,
        previous_status: Optional[str] = None,
        gateway_event: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> PaymentAuditEntry:
        entry = PaymentAuditEntry(
            payment_id=payment_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            gateway_event=gateway_event,
        )
        if details:
            entry.details = details

        self.session.add(entry)
        await self.session.flush()

        logger.debug(f"Audit {payment_id}: {action} -> {new_status}")
        return entry

    async def get_by_payment_id(
        self,
        payment_id: str,
        limit: int = 100,
    ) -> List[PaymentAuditEntry]:
        """Audit entries for a payment, oldest first."""
        result = await self.session.execute(
            select(PaymentAuditEntry)
            .where(PaymentAuditEntry.payment_id == payment_id)
            .order_by(PaymentAuditEntry.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
