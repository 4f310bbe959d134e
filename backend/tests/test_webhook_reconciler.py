"""
Tests for webhook reconciliation of payment events into booking state.
"""

import time
from unittest.mock import MagicMock, patch

import pytest
from valkey.exceptions import ConnectionError as ValkeyConnectionFailure

from conftest import VALID_SIGNATURE, make_event
from flight_escrow.cache.client import ValkeyClient
from flight_escrow.cache.config import ValkeyConfig
from flight_escrow.exceptions import SignatureInvalidError
from flight_escrow.models.enums import BookingStatus, FlightStatus, HoldStatus, PaymentEventType
from flight_escrow.services.lock_manager import DistributedLockManager
from flight_escrow.services.webhook_reconciler import WebhookReconciler

AUTHORIZED = PaymentEventType.HOLD_AUTHORIZED.value
SUCCEEDED = PaymentEventType.HOLD_SUCCEEDED.value
FAILED = PaymentEventType.HOLD_FAILED.value
CANCELED = PaymentEventType.HOLD_CANCELED.value


@pytest.fixture
def reconciler(gateway, engine, lock_manager):
    return WebhookReconciler(gateway, engine, webhook_secret="whsec_test", lock_manager=lock_manager)


@pytest.fixture
def pending(engine, make_flight):
    """A PENDING two-seat booking on a ten-seat flight: (flight_id, booking)."""
    flight_id = make_flight(total_seats=10)
    created = engine.create_booking(flight_id, "Ada", "ada@example.com", 2)
    return flight_id, engine.get_booking(created.booking_id)


def test_authorized_event_confirms_booking(reconciler, engine, pending, read_flight):
    flight_id, booking = pending

    result = reconciler.handle(make_event("evt_1", AUTHORIZED, booking.payment_hold_id),
                               VALID_SIGNATURE)

    assert result.action == "confirmed"
    assert result.booking_id == booking.id
    assert engine.get_booking(booking.id).status == BookingStatus.CONFIRMED
    assert read_flight(flight_id)["sold"] == 2


def test_duplicate_delivery_equals_single_delivery(reconciler, engine, pending, read_flight):
    flight_id, booking = pending
    body = make_event("evt_1", AUTHORIZED, booking.payment_hold_id)

    first = reconciler.handle(body, VALID_SIGNATURE)
    second = reconciler.handle(body, VALID_SIGNATURE)

    assert first.action == "confirmed"
    assert second.action == "duplicate"
    assert read_flight(flight_id)["sold"] == 2


def test_redelivery_without_valkey_is_still_idempotent(gateway, engine, pending, read_flight):
    flight_id, booking = pending
    reconciler = WebhookReconciler(gateway, engine)

    reconciler.handle(make_event("evt_1", AUTHORIZED, booking.payment_hold_id), VALID_SIGNATURE)
    again = reconciler.handle(make_event("evt_2", SUCCEEDED, booking.payment_hold_id),
                              VALID_SIGNATURE)

    assert again.action == "noop"
    assert read_flight(flight_id)["sold"] == 2


def test_failed_event_cancels_pending_booking(reconciler, engine, pending, read_flight):
    flight_id, booking = pending

    result = reconciler.handle(make_event("evt_f", FAILED, booking.payment_hold_id),
                               VALID_SIGNATURE)

    assert result.action == "cancelled"
    assert engine.get_booking(booking.id).status == BookingStatus.CANCELLED
    assert read_flight(flight_id)["available"] == 10


def test_failed_event_after_confirmation_is_noop(reconciler, engine, pending):
    _, booking = pending
    engine.confirm_booking(booking.id)

    result = reconciler.handle(make_event("evt_f", FAILED, booking.payment_hold_id),
                               VALID_SIGNATURE)

    assert result.action == "noop"
    assert engine.get_booking(booking.id).status == BookingStatus.CONFIRMED


def test_canceled_event_closes_pending_booking(reconciler, engine, pending, read_flight):
    flight_id, booking = pending

    result = reconciler.handle(make_event("evt_c", CANCELED, booking.payment_hold_id),
                               VALID_SIGNATURE)

    closed = engine.get_booking(booking.id)
    assert result.action == "refunded"
    assert closed.status == BookingStatus.REFUNDED
    assert closed.refund_amount == closed.total_amount
    assert read_flight(flight_id)["available"] == 10


def test_authorization_after_seats_ran_out_releases_hold(reconciler, engine, gateway, ledger,
                                                         pending, read_flight):
    flight_id, booking = pending
    with ledger.transaction() as session:
        flight = ledger.lock_flight(session, flight_id)
        ledger.commit_seats(session, flight, 9)

    result = reconciler.handle(make_event("evt_1", AUTHORIZED, booking.payment_hold_id),
                               VALID_SIGNATURE)

    assert result.action == "released"
    assert engine.get_booking(booking.id).status == BookingStatus.REFUNDED
    assert ("cancel_hold", booking.payment_hold_id) in gateway.calls
    assert read_flight(flight_id)["sold"] == 9


def test_authorization_after_flight_closed_releases_hold(reconciler, engine, gateway, ledger,
                                                          pending, read_flight):
    flight_id, booking = pending
    gateway.authorize(booking.payment_hold_id)
    with ledger.transaction() as session:
        flight = ledger.lock_flight(session, flight_id)
        ledger.set_flight_status(session, flight, FlightStatus.REFUNDED)

    result = reconciler.handle(make_event("evt_1", AUTHORIZED, booking.payment_hold_id),
                               VALID_SIGNATURE)

    assert result.action == "released"
    assert engine.get_booking(booking.id).status == BookingStatus.REFUNDED
    assert gateway.holds[booking.payment_hold_id]["status"] == HoldStatus.CANCELED
    assert read_flight(flight_id)["sold"] == 0


def test_bad_signature_changes_nothing(reconciler, engine, pending, mock_valkey):
    _, booking = pending

    with pytest.raises(SignatureInvalidError):
        reconciler.handle(make_event("evt_1", AUTHORIZED, booking.payment_hold_id), "t=1,v1=forged")

    assert engine.get_booking(booking.id).status == BookingStatus.PENDING
    assert mock_valkey.data == {}


def test_unknown_hold_is_dropped(reconciler, mock_valkey):
    result = reconciler.handle(make_event("evt_x", AUTHORIZED, "pi_unknown"), VALID_SIGNATURE)

    assert result.action == "dropped"
    assert result.booking_id is None
    assert mock_valkey.data == {}


def test_unrelated_event_type_is_ignored(reconciler):
    result = reconciler.handle(make_event("evt_y", "charge.dispute.created", "pi_1"), VALID_SIGNATURE)
    assert result.action == "ignored"


def test_valkey_outage_does_not_block_processing(gateway, engine, pending):
    _, booking = pending
    lock_manager = MagicMock()
    lock_manager.is_marked.side_effect = ValkeyConnectionFailure("connection refused")
    lock_manager.mark.side_effect = ValkeyConnectionFailure("connection refused")
    reconciler = WebhookReconciler(gateway, engine, lock_manager=lock_manager)

    result = reconciler.handle(make_event("evt_1", AUTHORIZED, booking.payment_hold_id),
                               VALID_SIGNATURE)

    assert result.action == "confirmed"
    lock_manager.mark.assert_called_once()


def test_unreachable_valkey_does_not_stall_webhooks(gateway, engine, make_flight):
    flight_id = make_flight(total_seats=10)
    created = [engine.create_booking(flight_id, "Ada", "ada@example.com", 1) for _ in range(2)]
    bookings = [engine.get_booking(c.booking_id) for c in created]
    valkey_client = ValkeyClient(ValkeyConfig(host="127.0.0.1", port=1, socket_connect_timeout=0.5,
                                              socket_timeout=0.5, outage_cooldown=60))
    reconciler = WebhookReconciler(gateway, engine,
                                   lock_manager=DistributedLockManager(valkey_client))

    started = time.monotonic()
    with patch.object(valkey_client, "connect", wraps=valkey_client.connect) as connect:
        results = [
            reconciler.handle(make_event(f"evt_{i}", AUTHORIZED, booking.payment_hold_id),
                              VALID_SIGNATURE)
            for i, booking in enumerate(bookings)
        ]
    elapsed = time.monotonic() - started

    assert [r.action for r in results] == ["confirmed", "confirmed"]
    assert connect.call_count == 1
    assert elapsed < 3.0
