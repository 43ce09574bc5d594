"""
Centralized configuration with environment variable overrides.

Application-level knobs (store timeouts, retry policy, booking policy,
notification sender, log level) live here. Facility availability rules are
NOT read from here: they arrive as immutable ``AvailabilityConfig`` snapshots
through a config source and are passed explicitly to every call.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_engine.logging_context import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class StoreConfig:
    """Persistence collaborator timeouts and read-retry policy."""

    timeout_seconds: float = _safe_float("STORE_TIMEOUT_SECONDS", "5.0")
    read_retries: int = _safe_int("STORE_READ_RETRIES", "2")
    retry_backoff_seconds: float = _safe_float("STORE_RETRY_BACKOFF_SECONDS", "0.2")


@dataclass(frozen=True)
class BookingPolicyConfig:
    """Booking lifecycle policy."""

    require_confirmation: bool = _safe_bool("BOOKING_REQUIRE_CONFIRMATION", "false")
    reminder_lead_hours: int = _safe_int("REMINDER_LEAD_HOURS", "24")
    booking_id_prefix: str = os.getenv("BOOKING_ID_PREFIX", "BK")


@dataclass(frozen=True)
class NotificationConfig:
    """Outbound confirmation / cancellation messages."""

    enabled: bool = _safe_bool("NOTIFICATIONS_ENABLED", "true")
    sender_name: str = os.getenv("NOTIFICATION_SENDER", "Scheduling Desk")
    support_email: str = os.getenv("SUPPORT_EMAIL", "support@example.com")


@dataclass(frozen=True)
class FacilityDefaults:
    """Fallbacks used when a facility has no stored availability config."""

    timezone: str = os.getenv("DEFAULT_TIMEZONE", "America/New_York")
    config_path: str = os.getenv("AVAILABILITY_CONFIG_PATH", "")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    store: StoreConfig = field(default_factory=StoreConfig)
    booking: BookingPolicyConfig = field(default_factory=BookingPolicyConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    facility: FacilityDefaults = field(default_factory=FacilityDefaults)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "booking-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.store.timeout_seconds <= 0:
        raise ValueError(
            f"STORE_TIMEOUT_SECONDS must be > 0, got {config.store.timeout_seconds}"
        )
    if config.store.read_retries < 0:
        raise ValueError(
            f"STORE_READ_RETRIES must be >= 0, got {config.store.read_retries}"
        )
    if config.store.retry_backoff_seconds < 0:
        raise ValueError(
            "STORE_RETRY_BACKOFF_SECONDS must be >= 0, "
            f"got {config.store.retry_backoff_seconds}"
        )
    if config.booking.reminder_lead_hours < 1:
        raise ValueError(
            f"REMINDER_LEAD_HOURS must be >= 1, got {config.booking.reminder_lead_hours}"
        )
    if not config.booking.booking_id_prefix.strip():
        raise ValueError("BOOKING_ID_PREFIX must not be empty")
    if config.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"LOG_LEVEL is not a logging level: {config.log_level!r}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging(config.log_level, config.service_name)
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
