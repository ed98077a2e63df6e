"""Payment service layer tying gateway requests, webhooks and persistence together."""

import asyncio
import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, List, Union

from sqlalchemy.ext.asyncio import AsyncSession

from .amounts import MajorAmount, to_minor_units, format_for_display
from .builders import (
    build_order_request,
    build_payment_link_request,
    make_receipt_id,
    expiry_from_hours,
)
from .connectors.base import GatewayConnectorBase, CustomerDetails
from .database import (
    PaymentRecord,
    PaymentRecordRepository,
    PaymentAuditRepository,
    PaymentStatus,
    AuditAction,
)
from .dispatcher import WebhookDispatcher, DispatchResult
from .errors import (
    GatewayUnavailable,
    InvalidTransition,
    MissingRequiredField,
    RecordNotFound,
    Unauthorized,
)
from .receipts import ReceiptData, PartyDetails, generate_receipt_number, format_receipt_date
from .signatures import verify_webhook_signature, verify_payment_signature

logger = logging.getLogger(__name__)


class PaymentService:
    """Service class for the payment lifecycle."""

    def __init__(self, session: AsyncSession):
        """Initialize the service with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session
        self.payment_repo = PaymentRecordRepository(session)
        self.audit_repo = PaymentAuditRepository(session)

    async def create_order(
        self,
        connector: GatewayConnectorBase,
        amount: MajorAmount,
        appointment_id: str,
        patient_name: Optional[str] = None,
        doctor_name: Optional[str] = None,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        currency: str = "INR",
    ) -> PaymentRecord:
        """Create a gateway order for an appointment and a pending record for it.

        Args:
            connector: Gateway client owned by the caller.
            amount: Amount in major units (rupees).
            appointment_id: Appointment the payment is for.

        Returns:
            The pending PaymentRecord.

        Raises:
            MissingRequiredField: If amount or appointment id is absent.
            InvalidAmount: If the amount is not positive.
            GatewayUnavailable: If the gateway call does not complete. Nothing
                is persisted in that case.
        """
        if amount is None:
            raise MissingRequiredField("amount")
        if not appointment_id:
            raise MissingRequiredField("appointment_id")
        request = build_order_request(
            to_minor_units(amount),
            make_receipt_id(appointment_id),
            notes={
                "appointmentId": appointment_id,
                "patientName": patient_name or "",
                "doctorName": doctor_name or "",
            },
            currency=currency,
        )
        order = await asyncio.to_thread(connector.create_order, request)

        record = await self.payment_repo.create(
            gateway_order_id=order.id,
            amount=request.amount,
            currency=request.currency,
            appointment_id=appointment_id,
            patient_id=patient_id,
            doctor_id=doctor_id,
            receipt=request.receipt,
            notes=request.notes,
        )
        logger.info(f"Created order {order.id} for appointment {appointment_id}")
        return record

    async def create_payment_link(
        self,
        connector: GatewayConnectorBase,
        amount: MajorAmount,
        patient_name: str,
        patient_phone: str,
        patient_email: Optional[str] = None,
        appointment_id: Optional[str] = None,
        doctor_name: Optional[str] = None,
        description: Optional[str] = None,
        expire_in_hours: Optional[float] = None,
        callback_url: Optional[str] = None,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        currency: str = "INR",
    ) -> PaymentRecord:
        """Create a payment link sent to the patient's phone.

        The pending record is keyed by the order id the gateway creates for the
        link, since that is the id payment webhooks carry.

        Raises:
            GatewayUnavailable: If the gateway call fails, or the link comes
                back without an order id. Nothing is persisted in either case.
        """
        if amount is None:
            raise MissingRequiredField("amount")
        if not patient_name:
            raise MissingRequiredField("patient_name")
        request = build_payment_link_request(
            to_minor_units(amount),
            description or f"Consultation fee for Dr. {doctor_name or 'Doctor'}",
            CustomerDetails(name=patient_name, contact=patient_phone, email=patient_email),
            expire_by=expiry_from_hours(expire_in_hours) if expire_in_hours is not None else None,
            currency=currency,
            notes={
                "appointmentId": appointment_id or "",
                "patientName": patient_name,
                "doctorName": doctor_name or "",
            },
            receipt=make_receipt_id(appointment_id) if appointment_id else None,
            callback_url=callback_url,
        )
        link = await asyncio.to_thread(connector.create_payment_link, request)
        if not link.order_id:
            logger.error(f"Payment link {link.id} returned without an order id")
            raise GatewayUnavailable(f"Payment link {link.id} has no order id to match webhooks against")

        record = await self.payment_repo.create(
            gateway_order_id=link.order_id,
            amount=request.amount,
            currency=request.currency,
            appointment_id=appointment_id,
            patient_id=patient_id,
            doctor_id=doctor_id,
            receipt=request.receipt,
            payment_link_id=link.id,
            short_url=link.short_url,
            notes=request.notes,
        )
        logger.info(f"Created payment link {link.id} for payment {record.id}")
        return record

    async def handle_webhook(
        self,
        body: bytes,
        signature: Optional[str],
        secret: Optional[str],
    ) -> DispatchResult:
        """Verify, parse and dispatch one webhook delivery.

        Raises:
            MissingSecret: If the webhook secret is not configured.
            Unauthorized: If the signature does not match. No record is read
                and nothing about the payload is logged.
        """
        if not verify_webhook_signature(body, signature, secret):
            logger.warning("Rejected webhook delivery: invalid signature")
            raise Unauthorized("Invalid webhook signature")
        dispatcher = WebhookDispatcher(self.session)
        result = await dispatcher.dispatch(body)
        logger.info(f"Webhook {result.event_type or '<unparsed>'} -> {result.outcome.value}")
        return result

    async def confirm_checkout(
        self,
        order_id: str,
        payment_id: str,
        signature: Optional[str],
        key_secret: Optional[str],
    ) -> PaymentRecord:
        """Verify a client-side checkout confirmation.

        The callback never changes the record's status: completion comes only
        from the payment.captured or payment.authorized webhook. A verified
        callback is written to the audit trail.

        Returns:
            The record for the order, in whatever status it currently has.

        Raises:
            MissingSecret: If the key secret is not configured.
            Unauthorized: If the callback signature does not match.
            RecordNotFound: If the order is unknown.
        """
        if not order_id:
            raise MissingRequiredField("order_id")
        if not payment_id:
            raise MissingRequiredField("payment_id")
        if not verify_payment_signature(order_id, payment_id, signature, key_secret):
            logger.warning(f"Rejected checkout confirmation for order {order_id}")
            raise Unauthorized("Invalid payment signature")
        record = await self.payment_repo.get_by_gateway_order_id(order_id)
        if record is None:
            raise RecordNotFound(f"No payment record for order {order_id}")
        await self.audit_repo.create(
            payment_id=record.id,
            action=AuditAction.CHECKOUT_VERIFIED.value,
            previous_status=record.status,
            new_status=record.status,
            gateway_event="checkout.callback",
            details={"gateway_payment_id": payment_id},
        )
        logger.info(f"Checkout verified for order {order_id}, payment {record.id} is {record.status}")
        return record

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        return await self.payment_repo.get_by_id(payment_id)

    async def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[PaymentRecord]:
        return await self.payment_repo.get_by_gateway_order_id(gateway_order_id)

    async def get_history(self, payment_id: str) -> List[Dict[str, Any]]:
        """Audit trail for a payment, oldest first."""
        entries = await self.audit_repo.get_by_payment_id(payment_id)
        return [e.to_dict() for e in entries]

    async def list_pending(self, limit: int = 100) -> List[PaymentRecord]:
        """Pending payments that may need follow-up with the patient."""
        return await self.payment_repo.list_by_status(PaymentStatus.PENDING.value, limit=limit)

    async def get_stats(self, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Payment statistics over the last ``days`` days.

        Amounts are in minor units.
        """
        now = now or datetime.utcnow()
        records = await self.payment_repo.list_created_since(now - timedelta(days=days))

        completed = [r for r in records if r.status == PaymentStatus.COMPLETED.value]
        pending = [r for r in records if r.status == PaymentStatus.PENDING.value]
        failed = [r for r in records if r.status == PaymentStatus.FAILED.value]
        total_amount = sum(r.amount for r in completed)

        daily_revenue: Dict[str, int] = {}
        for record in completed:
            day = (record.completed_at or record.created_at).date().isoformat()
            daily_revenue[day] = daily_revenue.get(day, 0) + record.amount

        average = 0
        if completed:
            average = int(
                (Decimal(total_amount) / len(completed)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            )
        return {
            "total": len(records),
            "completed": len(completed),
            "pending": len(pending),
            "failed": len(failed),
            "total_amount": total_amount,
            "average_amount": average,
            "daily_revenue": daily_revenue,
        }

    async def build_receipt(
        self,
        payment_id: str,
        payer: Union[PartyDetails, Dict[str, Any]],
        payee: Union[PartyDetails, Dict[str, Any]],
        payment_method: Optional[str] = None,
        service_description: Optional[str] = None,
    ) -> ReceiptData:
        """Resolve the receipt fields for a completed payment.

        Raises:
            RecordNotFound: If the payment does not exist.
            InvalidTransition: If the payment has not completed.
        """
        record = await self.payment_repo.get_by_id(payment_id)
        if record is None:
            raise RecordNotFound(f"Payment {payment_id} not found")
        if record.status != PaymentStatus.COMPLETED.value:
            raise InvalidTransition(f"Payment {payment_id} is {record.status}, no receipt available")

        when = record.completed_at or record.updated_at
        return ReceiptData(
            receipt_number=generate_receipt_number(record.id, when),
            date=format_receipt_date(when),
            payer=payer if isinstance(payer, PartyDetails) else PartyDetails(**payer),
            payee=payee if isinstance(payee, PartyDetails) else PartyDetails(**payee),
            amount=record.amount,
            amount_display=format_for_display(record.amount, record.currency),
            currency=record.currency,
            payment_method=payment_method,
            external_payment_id=record.gateway_payment_id,
            service_description=service_description,
        )
