"""
Environment configuration loader with validation for the flight escrow service.
"""

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from ..cache.config import ValkeyConfig
from ..payments.config import StripeConfig

_TRUE_VALUES = ("true", "1", "yes", "on")


class AppConfig(BaseModel):
    """Configuration model for the flight escrow service with validation."""

    # Database Configuration
    database_url: Optional[str] = Field(
        default=None, description="Database connection URL; built from DB_* variables when unset"
    )
    database_echo: bool = Field(default=False, description="Log SQL statements")

    # Payment Gateway Configuration
    stripe_secret_key: Optional[str] = Field(default=None, description="Stripe API secret key")
    stripe_webhook_secret: Optional[str] = Field(default=None, description="Stripe webhook signing secret")
    stripe_currency: str = Field(default="usd", min_length=3, max_length=3)
    stripe_timeout_seconds: float = Field(default=10.0, gt=0, description="Bound on every gateway call")
    stripe_max_network_retries: int = Field(default=2, ge=0)

    # Valkey Configuration (distributed locks, webhook de-duplication)
    valkey_enabled: bool = Field(default=False, description="Use Valkey for locks and event de-duplication")
    valkey_host: str = Field(default="localhost", description="Valkey server host")
    valkey_port: int = Field(default=6379, ge=1, le=65535, description="Valkey server port")
    valkey_password: Optional[str] = Field(default=None, description="Valkey server password")
    valkey_database: int = Field(default=0, ge=0, le=15, description="Valkey database number")
    valkey_connect_timeout: float = Field(
        default=1.0, gt=0, description="Bound on one connection attempt to Valkey"
    )
    valkey_outage_cooldown: float = Field(
        default=10.0, ge=0, description="Seconds to fail fast after Valkey was unreachable"
    )

    # Booking Lifecycle
    sweep_lookahead_days: int = Field(default=3, ge=1, description="Refund sweep departure window")
    sweep_lock_ttl_seconds: int = Field(default=900, ge=1)
    pending_hold_minutes: int = Field(
        default=30, ge=0, description="How long an unconfirmed hold counts against capacity"
    )
    webhook_event_ttl_seconds: int = Field(default=86400, ge=1)
    admin_bookings_limit: int = Field(default=50, ge=1)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000, ge=1, le=65535)
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("stripe_currency")
    @classmethod
    def lower_currency(cls, v: str) -> str:
        return v.lower()

    def stripe_config(self) -> StripeConfig:
        return StripeConfig(
            secret_key=self.stripe_secret_key,
            webhook_secret=self.stripe_webhook_secret,
            currency=self.stripe_currency,
            timeout_seconds=self.stripe_timeout_seconds,
            max_network_retries=self.stripe_max_network_retries,
        )

    def valkey_config(self) -> ValkeyConfig:
        return ValkeyConfig(
            host=self.valkey_host,
            port=self.valkey_port,
            password=self.valkey_password,
            database=self.valkey_database,
            socket_connect_timeout=self.valkey_connect_timeout,
            outage_cooldown=self.valkey_outage_cooldown,
        )


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        AppConfig: Validated configuration object

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    config_data: Dict[str, Any] = {
        "database_url": os.getenv("DATABASE_URL") or None,
        "database_echo": _flag("DATABASE_ECHO", "false"),
        "stripe_secret_key": os.getenv("STRIPE_SECRET_KEY") or None,
        "stripe_webhook_secret": os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        "stripe_currency": os.getenv("STRIPE_CURRENCY", "usd"),
        "stripe_timeout_seconds": float(os.getenv("STRIPE_TIMEOUT_SECONDS", "10")),
        "stripe_max_network_retries": int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "2")),
        "valkey_enabled": _flag("VALKEY_ENABLED", "false"),
        "valkey_host": os.getenv("VALKEY_HOST", "localhost"),
        "valkey_port": int(os.getenv("VALKEY_PORT", "6379")),
        "valkey_password": os.getenv("VALKEY_PASSWORD") or None,
        "valkey_database": int(os.getenv("VALKEY_DATABASE", "0")),
        "valkey_connect_timeout": float(os.getenv("VALKEY_CONNECT_TIMEOUT", "1.0")),
        "valkey_outage_cooldown": float(os.getenv("VALKEY_OUTAGE_COOLDOWN", "10.0")),
        "sweep_lookahead_days": int(os.getenv("SWEEP_LOOKAHEAD_DAYS", "3")),
        "sweep_lock_ttl_seconds": int(os.getenv("SWEEP_LOCK_TTL_SECONDS", "900")),
        "pending_hold_minutes": int(os.getenv("PENDING_HOLD_MINUTES", "30")),
        "webhook_event_ttl_seconds": int(os.getenv("WEBHOOK_EVENT_TTL_SECONDS", "86400")),
        "admin_bookings_limit": int(os.getenv("ADMIN_BOOKINGS_LIMIT", "50")),
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "5000")),
        "debug": _flag("DEBUG", "false"),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
    }

    try:
        return AppConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the service."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
    )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance, loading it if necessary.

    Returns:
        AppConfig: The global configuration object
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config
