"""Tests for GatewayConnectorBase and the gateway request models."""

import pytest
from abc import ABC
from pydantic import ValidationError

from clinic_payments.connectors.base import (
    GatewayConnectorBase,
    OrderRequest,
    PaymentLinkRequest,
    CustomerDetails,
    GatewayOrder,
)


class TestGatewayConnectorBaseAbstraction:
    """Tests to verify GatewayConnectorBase is properly abstract."""

    def test_cannot_instantiate_directly(self):
        with pytest.raises(TypeError):
            GatewayConnectorBase()

    def test_is_abstract_class(self):
        assert issubclass(GatewayConnectorBase, ABC)

    def test_partial_implementation_fails(self):
        """A connector that cannot create links is incomplete."""
        class OrdersOnly(GatewayConnectorBase):
            def create_order(self, request):
                return None

        with pytest.raises(TypeError):
            OrdersOnly()

    def test_complete_implementation(self):
        class Complete(GatewayConnectorBase):
            def create_order(self, request):
                return GatewayOrder(id="order_1", amount=request.amount, currency=request.currency)

            def create_payment_link(self, request):
                raise NotImplementedError

        connector = Complete()
        assert connector.health_check() == {"ok": True}
        assert connector.create_order(OrderRequest(amount=100, receipt="r")).id == "order_1"


class TestRequestModels:
    """Tests for request model validation."""

    def test_order_request_requires_receipt(self):
        with pytest.raises(ValidationError):
            OrderRequest(amount=100)

    def test_order_request_defaults(self):
        request = OrderRequest(amount=100, receipt="r")
        assert request.currency == "INR"
        assert request.notes == {}

    def test_customer_payload_omits_missing_email(self):
        assert CustomerDetails(contact="+919800000000").to_gateway_payload() == {
            "name": "",
            "contact": "+919800000000",
        }

    def test_link_request_requires_customer(self):
        with pytest.raises(ValidationError):
            PaymentLinkRequest(amount=100, description="Fee")
