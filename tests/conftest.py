"""Shared test fixtures and configuration."""

import json
import os
import pytest
from typing import Dict, Any, Optional

# Set up test environment variables before importing modules
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_dummy_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

WEBHOOK_SECRET = "whsec_test_secret"
KEY_SECRET = "rzp_test_key_secret"


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET


@pytest.fixture
def key_secret() -> str:
    return KEY_SECRET


@pytest.fixture
def event_body():
    """Return a builder for raw webhook bodies."""
    def _build(
        event: str,
        order_id: Optional[str] = "order_test_123",
        payment_id: Optional[str] = "pay_123",
        error_description: Optional[str] = None,
    ) -> bytes:
        payload: Dict[str, Any]
        if event == "order.paid":
            payload = {"order": {"entity": {"id": order_id, "status": "paid"}}}
        else:
            entity: Dict[str, Any] = {"id": payment_id, "order_id": order_id, "amount": 50000}
            if error_description is not None:
                entity["error_description"] = error_description
            payload = {"payment": {"entity": entity}}
        return json.dumps({"entity": "event", "event": event, "payload": payload}).encode()
    return _build


# Database fixtures
@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing."""
    from clinic_payments.database import create_async_engine, create_tables

    engine = create_async_engine(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a database session for testing."""
    from clinic_payments.database import get_async_session_factory

    session_factory = get_async_session_factory(db_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def pending_record(db_session):
    """A pending 500.00 INR record for order_test_123."""
    from clinic_payments.database import PaymentRecordRepository

    repo = PaymentRecordRepository(db_session)
    record = await repo.create(
        gateway_order_id="order_test_123",
        amount=50000,
        appointment_id="appt_1",
        receipt="appt_appt_1_1700000000000",
    )
    await db_session.commit()
    return record
