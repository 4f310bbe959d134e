"""
Payment gateway configuration.

This module provides the configuration for the Stripe adapter, including
environment variable support and the network bounds for every gateway call.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class StripeConfig:
    """
    Configuration for the Stripe payment gateway adapter.

    ``timeout_seconds`` bounds every API call; a call past the bound is
    reported as a failed upstream call, never left hanging.
    """

    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    currency: str = "usd"
    timeout_seconds: float = 10.0
    max_network_retries: int = 2
    webhook_tolerance_seconds: int = 300

    @classmethod
    def from_env(cls) -> "StripeConfig":
        """
        Create StripeConfig from environment variables.

        Returns:
            StripeConfig: Configuration instance with values from environment
        """
        return cls(
            secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
            currency=os.getenv("STRIPE_CURRENCY", "usd").lower(),
            timeout_seconds=float(os.getenv("STRIPE_TIMEOUT_SECONDS", "10")),
            max_network_retries=int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "2")),
            webhook_tolerance_seconds=int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300")),
        )

    def __str__(self) -> str:
        """String representation hiding sensitive information."""
        key_display = "***" if self.secret_key else "None"
        hook_display = "***" if self.webhook_secret else "None"
        return (
            f"StripeConfig(secret_key={key_display}, webhook_secret={hook_display}, "
            f"currency={self.currency}, timeout={self.timeout_seconds}s)"
        )
