"""
Centralized configuration module for application-wide settings.

This module provides centralized configuration for timezone handling,
database location and the booking/entitlement rules, so every service
reads the same values from the environment.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()

# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from environment variable.

    Returns:
        ZoneInfo: Application timezone (defaults to UTC if not configured)

    Environment Variables:
        TZ: Timezone identifier (e.g., 'Europe/Belgrade', 'UTC')
            Default: 'UTC'
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


# Global timezone instance - initialized once at import time
APP_TZ = get_app_timezone()


def now_local() -> datetime:
    """Current wall-clock time in the application timezone, as a naive datetime.

    Appointment times are stored naive in local time, so every comparison
    against "now" goes through this function.
    """
    return datetime.now(APP_TZ).replace(tzinfo=None)


def log_timezone_config():
    """Log the active timezone configuration at startup."""
    logger.info(
        "Timezone configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "tz_env_var": os.getenv("TZ", "UTC"),
            }
        },
    )


# ===========================
# Database Configuration
# ===========================


def get_database_url() -> str:
    """Return DATABASE_URL, defaulting to a local SQLite file in development."""
    return os.getenv("DATABASE_URL", "sqlite:///./fitcenter.db")


# ===========================
# Booking Policy Configuration
# ===========================


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            f"Invalid integer for {name}: '{raw}'. Using default {default}.",
            extra={"context": {"variable": name, "value": raw}},
        )
        return default


@dataclass(frozen=True)
class BookingPolicy:
    """Time-window and entitlement rules applied by the booking services.

    The two purchase validity windows are kept separate on purpose: manual
    grants and payment-confirmed purchases expire on different schedules.
    """

    opening_hour: int = 8
    last_start_hour: int = 22
    lead_time_minutes: int = 120
    member_buffer_minutes: int = 30
    cancellation_notice_minutes: int = 60
    manual_purchase_validity_days: int = 30
    paid_purchase_validity_months: int = 12


def load_booking_policy() -> BookingPolicy:
    """
    Build the booking policy from environment variables.

    Environment Variables:
        OPENING_HOUR: first hour an appointment may start (default 8)
        LAST_START_HOUR: last hour an appointment may start (default 22)
        BOOKING_LEAD_TIME_MINUTES: minimum notice for new appointments (default 120)
        MEMBER_BUFFER_MINUTES: gap required around a member's appointments (default 30)
        CANCELLATION_NOTICE_MINUTES: minimum notice to cancel an appointment (default 60)
        MANUAL_PURCHASE_VALIDITY_DAYS: expiry of manually granted purchases (default 30)
        PAID_PURCHASE_VALIDITY_MONTHS: expiry of payment-confirmed purchases (default 12)
    """
    return BookingPolicy(
        opening_hour=_env_int("OPENING_HOUR", 8),
        last_start_hour=_env_int("LAST_START_HOUR", 22),
        lead_time_minutes=_env_int("BOOKING_LEAD_TIME_MINUTES", 120),
        member_buffer_minutes=_env_int("MEMBER_BUFFER_MINUTES", 30),
        cancellation_notice_minutes=_env_int("CANCELLATION_NOTICE_MINUTES", 60),
        manual_purchase_validity_days=_env_int("MANUAL_PURCHASE_VALIDITY_DAYS", 30),
        paid_purchase_validity_months=_env_int("PAID_PURCHASE_VALIDITY_MONTHS", 12),
    )


# Global policy - cached at module load time
BOOKING_POLICY = load_booking_policy()


def log_booking_policy():
    """Log the active booking policy at startup."""
    logger.info(
        "Booking policy configuration initialized",
        extra={"context": dict(BOOKING_POLICY.__dict__)},
    )


# ===========================
# Token Configuration
# ===========================


def get_jwt_secret_key() -> str:
    """Get the secret used to verify bearer tokens.

    Raises:
        ValueError: In production when the secret is missing or weak.
    """
    secret = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret-change-me")
    if os.getenv("FLASK_ENV") == "production":
        if secret == "dev-jwt-secret-change-me" or len(secret) < 32:
            raise ValueError(
                "Production deployment requires strong JWT_SECRET_KEY (min 32 chars). "
                "Set JWT_SECRET_KEY environment variable."
            )
    return secret


JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
