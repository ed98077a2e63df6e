"""Tests for the pure payment transition rules."""

import pytest
from datetime import datetime

from clinic_payments.database import PaymentStatus, AuditAction
from clinic_payments.errors import InvalidTransition
from clinic_payments.state_machine import (
    DEFAULT_FAILURE_REASON,
    decide_transition,
    validate_transition_request,
)


class TestDecideTransition:
    """Tests for decide_transition."""

    def test_pending_to_completed(self):
        transition = decide_transition("pending", "completed", gateway_payment_id="pay_123")
        assert transition.new_status == PaymentStatus.COMPLETED
        assert transition.gateway_payment_id == "pay_123"
        assert transition.audit_action == AuditAction.PAYMENT_COMPLETED

    def test_pending_to_failed_with_reason(self):
        transition = decide_transition(PaymentStatus.PENDING, PaymentStatus.FAILED, failure_reason="card_declined")
        assert transition.new_status == PaymentStatus.FAILED
        assert transition.failure_reason == "card_declined"
        assert transition.audit_action == AuditAction.PAYMENT_FAILED

    def test_failure_reason_defaults(self):
        transition = decide_transition("pending", "failed")
        assert transition.failure_reason == DEFAULT_FAILURE_REASON

    @pytest.mark.parametrize("current", ["completed", "failed"])
    @pytest.mark.parametrize("target", ["completed", "failed"])
    def test_terminal_states_are_no_ops(self, current, target):
        assert decide_transition(current, target, gateway_payment_id="pay_999") is None

    def test_completion_requires_payment_id(self):
        with pytest.raises(InvalidTransition):
            decide_transition("pending", "completed")

    def test_nothing_leads_back_to_pending(self):
        with pytest.raises(InvalidTransition):
            validate_transition_request("pending")

    def test_unknown_target(self):
        with pytest.raises(InvalidTransition):
            validate_transition_request("refunded")


class TestColumnValues:
    """Tests for the columns a transition writes."""

    def test_completed_columns(self):
        now = datetime(2026, 10, 18, 12, 0, 0)
        values = validate_transition_request("completed", gateway_payment_id="pay_1").column_values(now)
        assert values == {
            "status": "completed",
            "updated_at": now,
            "gateway_payment_id": "pay_1",
            "completed_at": now,
        }

    def test_failed_columns(self):
        now = datetime(2026, 10, 18, 12, 0, 0)
        values = validate_transition_request("failed", failure_reason="expired").column_values(now)
        assert values == {"status": "failed", "updated_at": now, "failure_reason": "expired"}
