# clinic_payments package
__version__ = "0.1.0"

from .database import (
    PaymentRecord,
    PaymentAuditEntry,
    PaymentStatus,
    AuditAction,
    init_db,
    close_db,
    get_db,
)
from .errors import (
    PaymentError,
    InvalidAmount,
    InvalidExpiry,
    MissingRequiredField,
    MissingSecret,
    Unauthorized,
    MalformedEvent,
    RecordNotFound,
    InvalidTransition,
    GatewayUnavailable,
)
from .amounts import to_minor_units, to_major_units, format_for_display
from .signatures import verify_webhook_signature, verify_payment_signature
from .builders import build_order_request, build_payment_link_request
from .events import parse_event
from .state_machine import decide_transition
from .dispatcher import WebhookDispatcher, DispatchOutcome, DispatchResult
from .services import PaymentService
