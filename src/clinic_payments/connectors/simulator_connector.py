"""Simulator gateway for exercising payment flows without real gateway calls."""

import json
import time
import uuid
import random
import logging
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..errors import GatewayUnavailable
from ..signatures import compute_signature
from .base import (
    GatewayConnectorBase,
    OrderRequest,
    PaymentLinkRequest,
    GatewayOrder,
    GatewayPaymentLink,
)

logger = logging.getLogger(__name__)


@dataclass
class SimulatedOrder:
    """In-memory representation of a simulated order."""
    id: str
    amount: int
    currency: str
    receipt: Optional[str]
    status: str = "created"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: Dict[str, str] = field(default_factory=dict)
    payment_link_id: Optional[str] = None


@dataclass
class SimulatorConfig:
    """Configuration for simulator behavior."""
    unavailable_rate: float = 0.0  # 0.0 to 1.0
    delay_ms: int = 0  # Simulated response delay in ms
    webhook_secret: str = "sim_webhook_secret"
    seed: Optional[int] = None  # Random seed for reproducibility


class SimulatorConnector(GatewayConnectorBase):
    """
    Simulator gateway for local development and tests.

    Features:
    - In-memory order and payment link storage
    - Configurable unavailability rate
    - Delayed response simulation
    - Signed webhook deliveries for orders it created
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self._orders: Dict[str, SimulatedOrder] = {}
        self._links: Dict[str, GatewayPaymentLink] = {}
        self._rng = random.Random(self.config.seed)
        logger.info("SimulatorConnector initialized")

    def _generate_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:14]}"

    def _apply_delay(self) -> None:
        if self.config.delay_ms > 0:
            time.sleep(self.config.delay_ms / 1000.0)

    def _check_available(self) -> None:
        if self._rng.random() < self.config.unavailable_rate:
            raise GatewayUnavailable("Simulated gateway outage")

    def create_order(self, request: OrderRequest) -> GatewayOrder:
        self._apply_delay()
        self._check_available()
        order = SimulatedOrder(
            id=self._generate_id("order"),
            amount=request.amount,
            currency=request.currency,
            receipt=request.receipt,
            notes=dict(request.notes),
        )
        self._orders[order.id] = order
        logger.debug(f"Simulated order {order.id} for {order.amount} {order.currency}")
        return GatewayOrder(
            id=order.id,
            amount=order.amount,
            currency=order.currency,
            receipt=order.receipt,
            status=order.status,
            raw_gateway_response={"id": order.id, "simulator": True},
        )

    def create_payment_link(self, request: PaymentLinkRequest) -> GatewayPaymentLink:
        self._apply_delay()
        self._check_available()
        link_id = self._generate_id("plink")
        order = SimulatedOrder(
            id=self._generate_id("order"),
            amount=request.amount,
            currency=request.currency,
            receipt=request.receipt,
            notes=dict(request.notes),
            payment_link_id=link_id,
        )
        self._orders[order.id] = order
        link = GatewayPaymentLink(
            id=link_id,
            short_url=f"https://rzp.io/l/{link_id.split('_', 1)[1]}",
            amount=request.amount,
            currency=request.currency,
            status="created",
            expire_by=request.expire_by,
            order_id=order.id,
            raw_gateway_response={"id": link_id, "simulator": True},
        )
        self._links[link_id] = link
        return link

    def get_order(self, order_id: str) -> Optional[SimulatedOrder]:
        return self._orders.get(order_id)

    def build_webhook(
        self,
        order_id: str,
        event: str = "payment.captured",
        payment_id: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> Tuple[bytes, str]:
        """Build a signed webhook delivery for an order.

        Returns:
            Tuple of (raw body, hex signature) as the gateway would send them.
        """
        order = self._orders.get(order_id)
        amount = order.amount if order else 0
        currency = order.currency if order else "INR"
        if event == "order.paid":
            payload = {
                "order": {
                    "entity": {
                        "id": order_id,
                        "amount": amount,
                        "currency": currency,
                        "status": "paid",
                    }
                }
            }
        else:
            payment_id = payment_id or self._generate_id("pay")
            entity = {
                "id": payment_id,
                "order_id": order_id,
                "amount": amount,
                "currency": currency,
                "status": "failed" if event == "payment.failed" else "captured",
                "method": "upi",
            }
            if error_description is not None:
                entity["error_description"] = error_description
            if order and event in ("payment.captured", "payment.authorized"):
                order.status = "paid"
            payload = {"payment": {"entity": entity}}
        body = json.dumps(
            {"entity": "event", "event": event, "payload": payload, "created_at": int(time.time())}
        ).encode("utf-8")
        return body, compute_signature(body, self.config.webhook_secret)

    def health_check(self) -> Dict[str, Any]:
        return {"ok": True, "provider": "simulator", "orders": len(self._orders)}
