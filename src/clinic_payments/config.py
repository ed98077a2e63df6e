"""Runtime configuration read from the environment."""

import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./clinic_payments.db"
DEFAULT_CURRENCY = "INR"
DEFAULT_GATEWAY_TIMEOUT_SECONDS = 10.0
DEFAULT_RATE_LIMIT = "30/minute"


def get_database_url() -> str:
    """
    Get database URL from environment variable.
    Plain PostgreSQL URLs are rewritten to the asyncpg driver.
    """
    db_url = os.getenv("DATABASE_URL")
    if db_url:
        if db_url.startswith("postgresql://"):
            db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif db_url.startswith("postgres://"):
            db_url = db_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return db_url
    return DEFAULT_DATABASE_URL


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, built once at startup and passed explicitly."""
    key_id: Optional[str] = None
    key_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
    database_url: str = DEFAULT_DATABASE_URL
    gateway_timeout_seconds: float = DEFAULT_GATEWAY_TIMEOUT_SECONDS
    currency: str = DEFAULT_CURRENCY
    rate_limit: str = DEFAULT_RATE_LIMIT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            key_id=os.getenv("RAZORPAY_KEY_ID") or None,
            key_secret=os.getenv("RAZORPAY_KEY_SECRET") or None,
            webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET") or None,
            database_url=get_database_url(),
            gateway_timeout_seconds=_float_env(
                "GATEWAY_TIMEOUT_SECONDS", DEFAULT_GATEWAY_TIMEOUT_SECONDS
            ),
            currency=(os.getenv("PAYMENT_CURRENCY") or DEFAULT_CURRENCY).upper(),
            rate_limit=os.getenv("PAYMENT_RATE_LIMIT") or DEFAULT_RATE_LIMIT,
        )

    @property
    def gateway_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)
