"""
Enums for the flight escrow service.

This module contains the enumeration types shared by the ledger, the
lifecycle engine and the HTTP layer.
"""

from enum import Enum


class FlightStatus(str, Enum):
    """Flight lifecycle status."""
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"      # Minimum seats not met, bookings refunded


class BookingStatus(str, Enum):
    """Booking lifecycle status."""
    PENDING = "PENDING"        # Hold created, seats not committed
    CONFIRMED = "CONFIRMED"    # Hold authorized, seats committed
    PAID = "PAID"              # Hold captured
    CANCELLED = "CANCELLED"    # Hold failed
    REFUNDED = "REFUNDED"      # Hold released or funds returned

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CANCELLED, BookingStatus.REFUNDED)

    @property
    def holds_seats(self) -> bool:
        return self in (BookingStatus.CONFIRMED, BookingStatus.PAID)


class HoldStatus(str, Enum):
    """Mirror of the payment processor's authorization hold state."""
    REQUIRES_PAYMENT = "requires_payment"
    REQUIRES_CAPTURE = "requires_capture"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"
    FAILED = "failed"


class PaymentEventType(str, Enum):
    """Webhook event kinds the reconciler acts on."""
    HOLD_AUTHORIZED = "payment_intent.amount_capturable_updated"
    HOLD_SUCCEEDED = "payment_intent.succeeded"
    HOLD_FAILED = "payment_intent.payment_failed"
    HOLD_CANCELED = "payment_intent.canceled"


class EscrowAction(str, Enum):
    """Admin escrow actions on a single booking."""
    CAPTURE = "capture"
    REFUND = "refund"


class RefundOutcome(str, Enum):
    """Per-booking result of a refund sweep."""
    REFUNDED = "refunded"
    FAILED = "failed"
    SKIPPED = "skipped"      # Closed by a webhook before the sweep reached it
