"""Database module for payment record persistence."""

from .models import (
    PaymentRecord,
    PaymentAuditEntry,
    Base,
    PaymentStatus,
    AuditAction,
)
from .session import (
    get_db,
    init_db,
    close_db,
    create_async_engine,
    create_tables,
    get_async_session_factory,
    get_db_context,
)
from .repository import (
    PaymentRecordRepository,
    PaymentAuditRepository,
    TransitionResult,
)

__all__ = [
    # Models
    "PaymentRecord",
    "PaymentAuditEntry",
    "Base",
    "PaymentStatus",
    "AuditAction",
    # Session management
    "get_db",
    "init_db",
    "close_db",
    "create_async_engine",
    "create_tables",
    "get_async_session_factory",
    "get_db_context",
    # Repositories
    "PaymentRecordRepository",
    "PaymentAuditRepository",
    "TransitionResult",
]
