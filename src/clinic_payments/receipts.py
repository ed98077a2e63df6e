"""Receipt data handed to the document renderer."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PartyDetails(BaseModel):
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    qualification: Optional[str] = None
    clinic_name: Optional[str] = None


class ReceiptData(BaseModel):
    """Fully resolved receipt fields. Rendering is done elsewhere."""
    receipt_number: str
    date: str
    payer: PartyDetails
    payee: PartyDetails
    amount: int  # minor units
    amount_display: str
    currency: str
    payment_method: Optional[str] = None
    external_payment_id: Optional[str] = None
    service_description: Optional[str] = None


def generate_receipt_number(payment_id: str, when: datetime) -> str:
    """``RCP-<YY><MM>-<last six characters of the payment id>``."""
    return f"RCP-{when:%y%m}-{payment_id[-6:].upper()}"


def format_receipt_date(when: datetime) -> str:
    return f"{when.day} {when:%B %Y}"
