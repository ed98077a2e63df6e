"""Tests for webhook envelope parsing."""

import json
import pytest

from clinic_payments.errors import MalformedEvent
from clinic_payments.events import (
    parse_event,
    PaymentSettled,
    PaymentFailed,
    OrderPaid,
    UnrecognizedEvent,
)


class TestParseEvent:
    """Tests for parse_event."""

    @pytest.mark.parametrize("event_type", ["payment.captured", "payment.authorized"])
    def test_settlement_events(self, event_body, event_type):
        event = parse_event(event_body(event_type))
        assert isinstance(event, PaymentSettled)
        assert event.event_type == event_type
        assert event.order_id == "order_test_123"
        assert event.payment_id == "pay_123"

    def test_failed_with_description(self, event_body):
        event = parse_event(event_body("payment.failed", error_description="card_declined"))
        assert isinstance(event, PaymentFailed)
        assert event.error_description == "card_declined"

    def test_failed_without_description(self, event_body):
        event = parse_event(event_body("payment.failed"))
        assert isinstance(event, PaymentFailed)
        assert event.error_description is None

    def test_order_paid(self, event_body):
        event = parse_event(event_body("order.paid"))
        assert isinstance(event, OrderPaid)
        assert event.order_id == "order_test_123"

    def test_unknown_type_is_explicit_variant(self, event_body):
        event = parse_event(event_body("refund.processed"))
        assert isinstance(event, UnrecognizedEvent)
        assert event.event_type == "refund.processed"

    def test_accepts_str(self, event_body):
        assert isinstance(parse_event(event_body("order.paid").decode()), OrderPaid)


class TestMalformedEvents:
    """Tests for malformed bodies."""

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[]",
            b'"payment.captured"',
            b"{}",
            b'{"event": 5, "payload": {}}',
        ],
    )
    def test_bad_envelopes(self, raw):
        with pytest.raises(MalformedEvent):
            parse_event(raw)

    def test_captured_without_payment(self):
        raw = json.dumps({"event": "payment.captured", "payload": {"order": {"entity": {}}}})
        with pytest.raises(MalformedEvent) as exc_info:
            parse_event(raw)
        assert "payment.entity" in exc_info.value.message

    def test_captured_without_payment_id(self, event_body):
        with pytest.raises(MalformedEvent):
            parse_event(event_body("payment.captured", payment_id=None))

    def test_failed_without_order_id(self, event_body):
        with pytest.raises(MalformedEvent):
            parse_event(event_body("payment.failed", order_id=None))

    def test_order_paid_without_order(self):
        raw = json.dumps({"event": "order.paid", "payload": {}})
        with pytest.raises(MalformedEvent):
            parse_event(raw)
