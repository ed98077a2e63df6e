"""SQLAlchemy models for payment records and their audit trail."""

import uuid
import json
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Text,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
import enum


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class PaymentStatus(str, enum.Enum):
    """Payment record statuses. Only PENDING is non-terminal."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class AuditAction(str, enum.Enum):
    """Actions recorded in the payment audit trail."""
    PAYMENT_CREATED = "payment_created"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    CHECKOUT_VERIFIED = "checkout_verified"


class PaymentRecord(Base):
    """Authoritative payment record, correlated to webhooks by gateway order id."""
    __tablename__ = "payment_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    gateway_order_id: Mapped[str] = mapped_column(String(255), nullable=False)
    gateway_payment_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # References into the clinic records
    appointment_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    patient_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    doctor_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    receipt: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_link_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    short_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Notes sent to the gateway, stored as JSON
    notes_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    audit_entries: Mapped[List["PaymentAuditEntry"]] = relationship(
        "PaymentAuditEntry",
        back_populates="payment",
        order_by="PaymentAuditEntry.created_at.desc()",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_records_amount_positive"),
        Index("ix_payment_records_gateway_order_id", "gateway_order_id", unique=True),
        Index("ix_payment_records_status", "status"),
        Index("ix_payment_records_created_at", "created_at"),
        Index("ix_payment_records_appointment_id", "appointment_id"),
    )

    @property
    def notes(self) -> Optional[Dict[str, str]]:
        """Get notes as dictionary."""
        if self.notes_json:
            return json.loads(self.notes_json)
        return None

    @notes.setter
    def notes(self, value: Optional[Dict[str, str]]) -> None:
        """Set notes from dictionary."""
        if value is not None:
            self.notes_json = json.dumps(value)
        else:
            self.notes_json = None

    @property
    def is_terminal(self) -> bool:
        return self.status != PaymentStatus.PENDING.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert payment record to dictionary representation."""
        return {
            "id": self.id,
            "gateway_order_id": self.gateway_order_id,
            "gateway_payment_id": self.gateway_payment_id,
            "status": self.status,
            "amount": self.amount,
            "currency": self.currency,
            "failure_reason": self.failure_reason,
            "appointment_id": self.appointment_id,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "receipt": self.receipt,
            "payment_link_id": self.payment_link_id,
            "short_url": self.short_url,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class PaymentAuditEntry(Base):
    """Append-only audit row for every effective change to a payment record."""
    __tablename__ = "payment_audit_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payment_id: Mapped[str] = mapped_column(String(36), ForeignKey("payment_records.id"), nullable=False, index=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)

    # Webhook event type that caused the change, if any
    gateway_event: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    payment: Mapped["PaymentRecord"] = relationship("PaymentRecord", back_populates="audit_entries")

    __table_args__ = (
        Index("ix_payment_audit_log_action", "action"),
        Index("ix_payment_audit_log_created_at", "created_at"),
    )

    @property
    def details(self) -> Optional[Dict[str, Any]]:
        if self.details_json:
            return json.loads(self.details_json)
        return None

    @details.setter
    def details(self, value: Optional[Dict[str, Any]]) -> None:
        if value is not None:
            self.details_json = json.dumps(value, default=str)
        else:
            self.details_json = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert audit entry to dictionary representation."""
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "action": self.action,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "gateway_event": self.gateway_event,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
