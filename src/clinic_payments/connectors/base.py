from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


# Canonical request models
class OrderRequest(BaseModel):
    amount: int  # minor units
    currency: str = "INR"
    receipt: str
    notes: Dict[str, str] = Field(default_factory=dict)

    def to_gateway_payload(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "currency": self.currency,
            "receipt": self.receipt,
            "notes": dict(self.notes),
        }


class CustomerDetails(BaseModel):
    name: Optional[str] = None
    contact: Optional[str] = None  # phone, the reachable channel for a link
    email: Optional[str] = None

    def to_gateway_payload(self) -> Dict[str, Any]:
        payload = {"name": self.name or "", "contact": self.contact}
        if self.email:
            payload["email"] = self.email
        return payload


class NotifySettings(BaseModel):
    sms: bool = True
    email: bool = False


class PaymentLinkRequest(BaseModel):
    amount: int  # minor units
    currency: str = "INR"
    description: str
    customer: CustomerDetails
    notify: NotifySettings = Field(default_factory=NotifySettings)
    expire_by: Optional[int] = None  # unix timestamp
    receipt: Optional[str] = None
    callback_url: Optional[str] = None
    notes: Dict[str, str] = Field(default_factory=dict)

    def to_gateway_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "amount": self.amount,
            "currency": self.currency,
            "description": self.description,
            "customer": self.customer.to_gateway_payload(),
            "notify": self.notify.model_dump(),
            "notes": dict(self.notes),
        }
        if self.expire_by is not None:
            payload["expire_by"] = self.expire_by
        if self.receipt:
            payload["reference_id"] = self.receipt
        if self.callback_url:
            payload["callback_url"] = self.callback_url
            payload["callback_method"] = "get"
        return payload


# Canonical gateway responses
class GatewayOrder(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None
    raw_gateway_response: Optional[Dict[str, Any]] = None


class GatewayPaymentLink(BaseModel):
    id: str
    short_url: Optional[str] = None
    amount: int
    currency: str
    status: Optional[str] = None
    expire_by: Optional[int] = None
    order_id: Optional[str] = None
    raw_gateway_response: Optional[Dict[str, Any]] = None


class GatewayConnectorBase(ABC):
    """
    Minimal gateway client interface. Implementations send fully formed
    requests and must not retry on their own: a blind retry of order
    creation can create a duplicate order. Failures surface as
    GatewayUnavailable.
    """

    @abstractmethod
    def create_order(self, request: OrderRequest) -> GatewayOrder:
        raise NotImplementedError

    @abstractmethod
    def create_payment_link(self, request: PaymentLinkRequest) -> GatewayPaymentLink:
        raise NotImplementedError

    def health_check(self) -> Dict[str, Any]:
        return {"ok": True}
