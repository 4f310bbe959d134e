"""
Payment gateway package.

Wraps the external payment processor: authorization holds, capture, cancel,
refund and signed webhook events.
"""

from .config import StripeConfig
from .gateway import (
    PaymentGateway,
    StripeGateway,
    map_intent_status,
    to_minor_units,
    from_minor_units,
)

__all__ = [
    "StripeConfig",
    "PaymentGateway",
    "StripeGateway",
    "map_intent_status",
    "to_minor_units",
    "from_minor_units",
]
