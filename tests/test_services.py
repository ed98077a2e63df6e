"""Tests for the payment service layer."""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from clinic_payments.connectors import SimulatorConnector, SimulatorConfig
from clinic_payments.dispatcher import DispatchOutcome, WebhookDispatcher
from clinic_payments.errors import (
    GatewayUnavailable,
    InvalidAmount,
    InvalidExpiry,
    InvalidTransition,
    MissingRequiredField,
    MissingSecret,
    RecordNotFound,
    Unauthorized,
)
from clinic_payments.receipts import PartyDetails
from clinic_payments.services import PaymentService
from clinic_payments.signatures import compute_signature


@pytest.fixture
def simulator(webhook_secret):
    return SimulatorConnector(SimulatorConfig(webhook_secret=webhook_secret, seed=7))


@pytest.fixture
def service(db_session):
    return PaymentService(db_session)


class TestCreateOrder:
    """Tests for PaymentService.create_order."""

    async def test_creates_pending_record(self, service, simulator):
        record = await service.create_order(
            simulator, Decimal("500.00"), "appt42",
            patient_name="Asha", doctor_name="Rao", patient_id="p1", doctor_id="d1",
        )

        assert record.status == "pending"
        assert record.amount == 50000
        assert record.currency == "INR"
        assert record.gateway_order_id.startswith("order_")
        assert record.receipt.startswith("appt_appt42_")
        assert record.notes == {"appointmentId": "appt42", "patientName": "Asha", "doctorName": "Rao"}
        assert simulator.get_order(record.gateway_order_id).amount == 50000

    async def test_missing_fields(self, service, simulator):
        with pytest.raises(MissingRequiredField):
            await service.create_order(simulator, None, "appt42")
        with pytest.raises(MissingRequiredField):
            await service.create_order(simulator, Decimal("500"), "")

    async def test_invalid_amount(self, service, simulator):
        with pytest.raises(InvalidAmount):
            await service.create_order(simulator, Decimal("-10"), "appt42")

    async def test_gateway_unavailable_persists_nothing(self, service):
        down = SimulatorConnector(SimulatorConfig(unavailable_rate=1.0))
        with pytest.raises(GatewayUnavailable):
            await service.create_order(down, Decimal("500.00"), "appt42")
        assert await service.list_pending() == []


class TestCreatePaymentLink:
    """Tests for PaymentService.create_payment_link."""

    async def test_creates_link_record(self, service, simulator):
        record = await service.create_payment_link(
            simulator, Decimal("750"), "Asha", "+919800000000",
            appointment_id="appt7", doctor_name="Rao", expire_in_hours=24,
        )

        assert record.payment_link_id.startswith("plink_")
        assert record.short_url.startswith("https://rzp.io/l/")
        assert record.amount == 75000
        order = simulator.get_order(record.gateway_order_id)
        assert order.payment_link_id == record.payment_link_id

    async def test_missing_phone(self, service, simulator):
        with pytest.raises(MissingRequiredField) as exc_info:
            await service.create_payment_link(simulator, Decimal("750"), "Asha", None)
        assert exc_info.value.field_name == "customer.contact"

    async def test_link_without_order_id_is_rejected(self, service):
        """A link webhooks can never match is not persisted."""
        class NoOrderSimulator(SimulatorConnector):
            def create_payment_link(self, request):
                link = super().create_payment_link(request)
                return link.model_copy(update={"order_id": None})

        with pytest.raises(GatewayUnavailable):
            await service.create_payment_link(NoOrderSimulator(), Decimal("750"), "Asha", "+919800000000")
        assert await service.list_pending() == []

    async def test_zero_expiry_is_rejected(self, service, simulator):
        with pytest.raises(InvalidExpiry):
            await service.create_payment_link(
                simulator, Decimal("750"), "Asha", "+919800000000", expire_in_hours=0
            )
        assert await service.list_pending() == []


class TestHandleWebhook:
    """Tests for PaymentService.handle_webhook."""

    async def test_captured_delivery(self, service, simulator, webhook_secret):
        record = await service.create_order(simulator, Decimal("500.00"), "appt42")
        body, signature = simulator.build_webhook(record.gateway_order_id, payment_id="pay_123")

        result = await service.handle_webhook(body, signature, webhook_secret)

        assert result.outcome == DispatchOutcome.APPLIED
        updated = await service.get_payment(record.id)
        assert updated.status == "completed"
        assert updated.gateway_payment_id == "pay_123"

    async def test_invalid_signature_touches_nothing(self, service, simulator, webhook_secret):
        record = await service.create_order(simulator, Decimal("500.00"), "appt42")
        body, signature = simulator.build_webhook(record.gateway_order_id)
        forged = compute_signature(body, "not_the_secret")

        with patch.object(WebhookDispatcher, "dispatch", new_callable=AsyncMock) as dispatch:
            with pytest.raises(Unauthorized):
                await service.handle_webhook(body, forged, webhook_secret)
            dispatch.assert_not_called()
        assert (await service.get_payment(record.id)).status == "pending"

    async def test_missing_signature_is_unauthorized(self, service):
        with pytest.raises(Unauthorized):
            await service.handle_webhook(b"{}", None, "whsec")

    async def test_missing_secret(self, service, simulator):
        body, signature = simulator.build_webhook("order_x")
        with pytest.raises(MissingSecret):
            await service.handle_webhook(body, signature, None)


class TestConfirmCheckout:
    """Tests for PaymentService.confirm_checkout."""

    async def test_valid_callback_leaves_record_pending(self, service, simulator, key_secret, webhook_secret):
        record = await service.create_order(simulator, Decimal("500.00"), "appt42")
        order_id = record.gateway_order_id
        signature = compute_signature(f"{order_id}|pay_cb", key_secret)

        confirmed = await service.confirm_checkout(order_id, "pay_cb", signature, key_secret)

        assert confirmed.id == record.id
        assert confirmed.status == "pending"
        assert confirmed.gateway_payment_id is None
        history = await service.get_history(record.id)
        assert [h["action"] for h in history] == ["payment_created", "checkout_verified"]
        assert history[1]["details"] == {"gateway_payment_id": "pay_cb"}

        # Completion still comes from the webhook
        body, webhook_signature = simulator.build_webhook(order_id, payment_id="pay_cb")
        webhook = await service.handle_webhook(body, webhook_signature, webhook_secret)
        assert webhook.outcome == DispatchOutcome.APPLIED
        completed = await service.get_payment(record.id)
        assert completed.status == "completed"
        assert completed.gateway_payment_id == "pay_cb"

    async def test_callback_after_completion(self, service, simulator, key_secret, webhook_secret):
        record = await service.create_order(simulator, Decimal("500.00"), "appt42")
        order_id = record.gateway_order_id
        body, webhook_signature = simulator.build_webhook(order_id, payment_id="pay_cb")
        await service.handle_webhook(body, webhook_signature, webhook_secret)

        signature = compute_signature(f"{order_id}|pay_cb", key_secret)
        confirmed = await service.confirm_checkout(order_id, "pay_cb", signature, key_secret)

        assert confirmed.status == "completed"

    async def test_bad_signature(self, service, simulator, key_secret):
        record = await service.create_order(simulator, Decimal("500.00"), "appt42")
        with pytest.raises(Unauthorized):
            await service.confirm_checkout(record.gateway_order_id, "pay_cb", "bad", key_secret)
        assert (await service.get_payment(record.id)).status == "pending"

    async def test_unknown_order(self, service, key_secret):
        signature = compute_signature("order_none|pay_cb", key_secret)
        with pytest.raises(RecordNotFound):
            await service.confirm_checkout("order_none", "pay_cb", signature, key_secret)


class TestQueries:
    """Tests for history, stats and receipts."""

    async def test_history(self, service, simulator, webhook_secret):
        record = await service.create_order(simulator, Decimal("500.00"), "appt42")
        body, signature = simulator.build_webhook(record.gateway_order_id)
        await service.handle_webhook(body, signature, webhook_secret)

        history = await service.get_history(record.id)

        assert [h["action"] for h in history] == ["payment_created", "payment_completed"]
        assert history[1]["gateway_event"] == "payment.captured"

    async def test_stats(self, service, simulator, webhook_secret):
        paid = await service.create_order(simulator, Decimal("500.00"), "a1")
        paid_too = await service.create_order(simulator, Decimal("250.01"), "a2")
        failed = await service.create_order(simulator, Decimal("100"), "a3")
        await service.create_order(simulator, Decimal("100"), "a4")
        for record, event in ((paid, "payment.captured"), (paid_too, "payment.captured"), (failed, "payment.failed")):
            body, signature = simulator.build_webhook(record.gateway_order_id, event=event)
            await service.handle_webhook(body, signature, webhook_secret)

        stats = await service.get_stats(days=30)

        assert stats["total"] == 4
        assert stats["completed"] == 2
        assert stats["pending"] == 1
        assert stats["failed"] == 1
        assert stats["total_amount"] == 75001
        assert stats["average_amount"] == 37501
        assert sum(stats["daily_revenue"].values()) == 75001

    async def test_stats_window(self, service, simulator):
        await service.create_order(simulator, Decimal("500.00"), "a1")
        stats = await service.get_stats(days=1, now=datetime.utcnow() + timedelta(days=3))
        assert stats["total"] == 0
        assert stats["average_amount"] == 0

    async def test_receipt_for_completed_payment(self, service, simulator, webhook_secret):
        record = await service.create_order(simulator, Decimal("50000"), "appt42")
        body, signature = simulator.build_webhook(record.gateway_order_id, payment_id="pay_rcpt")
        await service.handle_webhook(body, signature, webhook_secret)

        receipt = await service.build_receipt(
            record.id,
            payer={"name": "Asha", "phone": "+919800000000"},
            payee=PartyDetails(name="Dr. Rao", qualification="MBBS", clinic_name="Rao Clinic"),
            payment_method="UPI",
        )

        completed_at = (await service.get_payment(record.id)).completed_at
        assert receipt.receipt_number == f"RCP-{completed_at:%y%m}-{record.id[-6:].upper()}"
        assert receipt.amount == 5000000
        assert receipt.amount_display == "₹50,000.00"
        assert receipt.external_payment_id == "pay_rcpt"
        assert receipt.payer.name == "Asha"

    async def test_receipt_requires_completion(self, service, simulator):
        record = await service.create_order(simulator, Decimal("500.00"), "appt42")
        party = {"name": "Someone"}
        with pytest.raises(InvalidTransition):
            await service.build_receipt(record.id, payer=party, payee=party)
        with pytest.raises(RecordNotFound):
            await service.build_receipt("missing", payer=party, payee=party)
