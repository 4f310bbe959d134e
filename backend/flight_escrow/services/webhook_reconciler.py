"""
Webhook reconciler.

Turns verified payment processor events into booking transitions. Deliveries
may be duplicated, reordered or concurrent with API calls; every transition in
the lifecycle engine is idempotent, and processed event ids are additionally
remembered in Valkey (when configured) so redeliveries short-circuit.
"""

import logging
from typing import Callable, Dict, Optional

from valkey.exceptions import ValkeyError

from ..cache.config import ValkeyConnectionError
from ..cache.keys import CacheKeyPrefix
from ..exceptions import ConflictError
from ..models.booking import BookingModel
from ..models.enums import BookingStatus, PaymentEventType
from ..models.payment import PaymentEventModel
from ..models.sweep import ReconcileResultModel
from ..payments.gateway import PaymentGateway
from .booking_engine import BookingEngine
from .lock_manager import DistributedLockManager

logger = logging.getLogger(__name__)


class WebhookReconciler:
    """
    Applies payment events to bookings.

    Args:
        gateway: Adapter that verifies and parses deliveries
        engine: Lifecycle engine that performs the transitions
        webhook_secret: Signing secret; the gateway's configured one when None
        lock_manager: Optional Valkey-backed marker store for processed events
        event_ttl_seconds: How long a processed event id is remembered
    """

    def __init__(self, gateway: PaymentGateway, engine: BookingEngine,
                 webhook_secret: Optional[str] = None,
                 lock_manager: Optional[DistributedLockManager] = None,
                 event_ttl_seconds: int = 86400):
        self.gateway = gateway
        self.engine = engine
        self.webhook_secret = webhook_secret
        self.lock_manager = lock_manager
        self.event_ttl_seconds = event_ttl_seconds

        self._handlers: Dict[str, Callable[[BookingModel], str]] = {
            PaymentEventType.HOLD_AUTHORIZED.value: self._on_hold_authorized,
            PaymentEventType.HOLD_SUCCEEDED.value: self._on_hold_authorized,
            PaymentEventType.HOLD_FAILED.value: self._on_hold_failed,
            PaymentEventType.HOLD_CANCELED.value: self._on_hold_canceled,
        }

    def handle(self, raw_body: bytes, signature_header: Optional[str]) -> ReconcileResultModel:
        """
        Verify a raw delivery and apply it.

        Raises:
            SignatureInvalidError: Delivery is not authentic; nothing was processed
        """
        event = self.gateway.verify_and_parse_event(raw_body, signature_header, self.webhook_secret)
        return self.dispatch(event)

    def dispatch(self, event: PaymentEventModel) -> ReconcileResultModel:
        """Apply an already verified event."""
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.debug(f"Ignoring webhook event {event.event_id} of type {event.event_type}")
            return self._result(event, None, "ignored")

        if self._already_processed(event.event_id):
            logger.info(f"Webhook event {event.event_id} already processed")
            return self._result(event, None, "duplicate")

        booking = self.engine.find_booking_by_hold(event.hold_id) if event.hold_id else None
        if booking is None:
            logger.warning(f"Webhook event {event.event_id} ({event.event_type}) references "
                           f"unknown hold {event.hold_id}; dropped")
            return self._result(event, None, "dropped")

        action = handler(booking)
        self._remember(event.event_id)
        logger.info(f"Webhook event {event.event_id} ({event.event_type}) on booking "
                    f"{booking.id}: {action}")
        return self._result(event, booking.id, action)

    # Event handlers

    def _on_hold_authorized(self, booking: BookingModel) -> str:
        if booking.status != BookingStatus.PENDING:
            return "noop"
        try:
            self.engine.confirm_booking(booking.id)
        except ConflictError as e:
            logger.warning(f"Booking {booking.id} could not be confirmed: {e.message}")
            if self.engine.get_booking(booking.id).status == BookingStatus.PENDING:
                self.engine.refund_booking(booking.id)
            return "released"
        return "confirmed"

    def _on_hold_failed(self, booking: BookingModel) -> str:
        if booking.status != BookingStatus.PENDING:
            return "noop"
        self.engine.cancel_booking(booking.id)
        return "cancelled"

    def _on_hold_canceled(self, booking: BookingModel) -> str:
        if booking.status != BookingStatus.PENDING:
            return "noop"
        self.engine.mark_hold_canceled(booking.id)
        return "refunded"

    # Event de-duplication

    def _already_processed(self, event_id: str) -> bool:
        if self.lock_manager is None:
            return False
        try:
            return self.lock_manager.is_marked(CacheKeyPrefix.WEBHOOK_EVENT, event_id)
        except (ValkeyConnectionError, ValkeyError) as e:
            logger.warning(f"Could not check webhook event {event_id} in Valkey: {e}")
            return False

    def _remember(self, event_id: str) -> None:
        if self.lock_manager is None:
            return
        try:
            self.lock_manager.mark(CacheKeyPrefix.WEBHOOK_EVENT, event_id, self.event_ttl_seconds)
        except (ValkeyConnectionError, ValkeyError) as e:
            logger.warning(f"Could not record webhook event {event_id} in Valkey: {e}")

    @staticmethod
    def _result(event: PaymentEventModel, booking_id: Optional[str], action: str) -> ReconcileResultModel:
        return ReconcileResultModel(
            event_id=event.event_id,
            event_type=event.event_type,
            booking_id=booking_id,
            action=action,
        )
