import logging
from typing import Dict, Any, Optional

import httpx

from ..errors import GatewayUnavailable
from .base import (
    GatewayConnectorBase,
    OrderRequest,
    PaymentLinkRequest,
    GatewayOrder,
    GatewayPaymentLink,
)

logger = logging.getLogger(__name__)

RAZORPAY_API_BASE = "https://api.razorpay.com/v1"


class RazorpayConnector(GatewayConnectorBase):
    """
    Razorpay connector over the REST API. The instance is created once at
    process startup and handed to whoever needs it; there is no module level
    client. Every call is bounded by ``timeout`` seconds and is never retried
    here.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        timeout: float = 10.0,
        base_url: str = RAZORPAY_API_BASE,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not key_id or not key_secret:
            raise ValueError("Razorpay key id and key secret are required")
        self.key_id = key_id
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise GatewayUnavailable(f"Razorpay {path} timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            description = _error_description(e.response)
            logger.error(f"Razorpay {path} returned {e.response.status_code}: {description}")
            raise GatewayUnavailable(f"Razorpay {path} failed: {description}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GatewayUnavailable(f"Razorpay {path} failed: {e}") from e

    def create_order(self, request: OrderRequest) -> GatewayOrder:
        order = self._post("/orders", request.to_gateway_payload())
        return GatewayOrder(
            id=order["id"],
            amount=order.get("amount", request.amount),
            currency=order.get("currency", request.currency),
            receipt=order.get("receipt"),
            status=order.get("status"),
            raw_gateway_response=order,
        )

    def create_payment_link(self, request: PaymentLinkRequest) -> GatewayPaymentLink:
        link = self._post("/payment_links", request.to_gateway_payload())
        return GatewayPaymentLink(
            id=link["id"],
            short_url=link.get("short_url"),
            amount=link.get("amount", request.amount),
            currency=link.get("currency", request.currency),
            status=link.get("status"),
            expire_by=link.get("expire_by") or None,
            order_id=link.get("order_id") or None,
            raw_gateway_response=link,
        )

    def close(self) -> None:
        self._client.close()

    def health_check(self) -> Dict[str, Any]:
        return {"ok": True, "provider": "razorpay", "key_id": self.key_id}


def _error_description(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["description"]
    except (ValueError, KeyError, TypeError):
        return response.text[:200]
