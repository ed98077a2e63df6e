"""Payment gateway connectors."""

from .base import (
    GatewayConnectorBase,
    OrderRequest,
    PaymentLinkRequest,
    CustomerDetails,
    NotifySettings,
    GatewayOrder,
    GatewayPaymentLink,
)
from .razorpay_connector import RazorpayConnector
from .simulator_connector import (
    SimulatorConnector,
    SimulatorConfig,
    SimulatedOrder,
)

__all__ = [
    # Base classes and models
    "GatewayConnectorBase",
    "OrderRequest",
    "PaymentLinkRequest",
    "CustomerDetails",
    "NotifySettings",
    "GatewayOrder",
    "GatewayPaymentLink",
    # Connectors
    "RazorpayConnector",
    "SimulatorConnector",
    "SimulatorConfig",
    "SimulatedOrder",
]
