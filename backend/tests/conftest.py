"""
Shared fixtures for the flight escrow test suite.

Provides an in-memory SQLite ledger, a fake payment gateway that mimics
Stripe's manual-capture PaymentIntent states, and a mock Valkey client so no
external service is needed.
"""

import json
import threading
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

import pytest

from flight_escrow.database.config import DatabaseConfig
from flight_escrow.database.ledger import LedgerStore
from flight_escrow.database.models import Flight
from flight_escrow.exceptions import SignatureInvalidError, UpstreamPaymentError
from flight_escrow.models.enums import FlightStatus, HoldStatus
from flight_escrow.models.payment import GatewayResultModel, HoldModel, PaymentEventModel
from flight_escrow.services.booking_engine import BookingEngine
from flight_escrow.services.lock_manager import DistributedLockManager
from flight_escrow.utils.time import utcnow

VALID_SIGNATURE = "t=1,v1=valid"


class FakeGateway:
    """In-memory payment gateway with Stripe-like hold states."""

    def __init__(self):
        self.holds: Dict[str, Dict[str, Any]] = {}
        self.calls = []
        self.fail_on = set()
        self._counter = 0
        self._lock = threading.Lock()

    def _check(self, operation: str, hold_id: Optional[str] = None) -> None:
        self.calls.append((operation, hold_id))
        if operation in self.fail_on:
            raise UpstreamPaymentError(f"Payment gateway {operation} failed: simulated outage")

    def create_hold(self, amount: Decimal, metadata: Dict[str, str],
                    idempotency_key: Optional[str] = None) -> HoldModel:
        self._check("create_hold")
        with self._lock:
            self._counter += 1
            hold_id = f"pi_test_{self._counter}"
        self.holds[hold_id] = {
            "status": HoldStatus.REQUIRES_PAYMENT,
            "amount": Decimal(amount),
            "metadata": dict(metadata),
        }
        return HoldModel(hold_id=hold_id, status=HoldStatus.REQUIRES_PAYMENT,
                         amount=amount, client_secret=f"{hold_id}_secret")

    def authorize(self, hold_id: str) -> None:
        """Simulate the traveler completing card authorization."""
        self.holds[hold_id]["status"] = HoldStatus.REQUIRES_CAPTURE

    def set_status(self, hold_id: str, status: HoldStatus) -> None:
        self.holds[hold_id]["status"] = status

    def retrieve_hold(self, hold_id: str) -> HoldModel:
        self._check("retrieve_hold", hold_id)
        hold = self.holds[hold_id]
        return HoldModel(hold_id=hold_id, status=hold["status"], amount=hold["amount"])

    def capture_hold(self, hold_id: str) -> GatewayResultModel:
        self._check("capture_hold", hold_id)
        hold = self.holds[hold_id]
        noop = hold["status"] == HoldStatus.SUCCEEDED
        hold["status"] = HoldStatus.SUCCEEDED
        return GatewayResultModel(hold_id=hold_id, status=HoldStatus.SUCCEEDED, noop=noop)

    def cancel_hold(self, hold_id: str) -> GatewayResultModel:
        self._check("cancel_hold", hold_id)
        hold = self.holds[hold_id]
        noop = hold["status"] == HoldStatus.CANCELED
        hold["status"] = HoldStatus.CANCELED
        return GatewayResultModel(hold_id=hold_id, status=HoldStatus.CANCELED, noop=noop)

    def refund(self, hold_id: str, amount: Optional[Decimal] = None) -> GatewayResultModel:
        self._check("refund", hold_id)
        hold = self.holds[hold_id]
        if hold["status"] in (HoldStatus.REQUIRES_CAPTURE, HoldStatus.REQUIRES_PAYMENT):
            hold["status"] = HoldStatus.CANCELED
            return GatewayResultModel(hold_id=hold_id, status=HoldStatus.CANCELED)
        if hold.get("refunded"):
            return GatewayResultModel(hold_id=hold_id, status=hold["status"], noop=True)
        hold["refunded"] = True
        return GatewayResultModel(hold_id=hold_id, status=hold["status"], refund_id=f"re_{hold_id}")

    def verify_and_parse_event(self, raw_body: bytes, signature_header: Optional[str],
                               secret: Optional[str] = None) -> PaymentEventModel:
        self.calls.append(("verify_and_parse_event", None))
        if signature_header != VALID_SIGNATURE:
            raise SignatureInvalidError("Webhook signature verification failed")
        event = json.loads(raw_body)
        return PaymentEventModel(
            event_id=event["id"],
            event_type=event["type"],
            hold_id=event["data"]["object"]["id"],
        )


def make_event(event_id: str, event_type: str, hold_id: str) -> bytes:
    """Raw webhook body in Stripe's event shape."""
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": hold_id, "object": "payment_intent"}},
    }).encode("utf-8")


class MockValkeyClient:
    """Mock Valkey client exposing the ValkeyClient surface the lock manager uses."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.set_calls = []
        self.unavailable_marks = 0
        self.client = self

    def ensure_connection(self, max_attempts=None):
        pass

    def mark_unavailable(self):
        self.unavailable_marks += 1

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, nx=False, ex=None):
        self.set_calls.append((key, ex))
        if nx and key in self.data:
            return False
        self.data[key] = value
        self.ttls[key] = ex
        return True

    def exists(self, key):
        return 1 if key in self.data else 0

    def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    def eval(self, script, num_keys, *args):
        if "get" in script and "del" in script:
            key, expected_value = args[0], args[1]
            if self.data.get(key) == expected_value:
                return self.delete(key)
            return 0
        return 0


@pytest.fixture
def db_config():
    """In-memory SQLite database with the ledger tables."""
    config = DatabaseConfig(database_url="sqlite:///:memory:")
    config.initialize()
    config.create_tables()
    yield config
    config.close()


@pytest.fixture
def ledger(db_config):
    return LedgerStore(db_config)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def engine(ledger, gateway):
    return BookingEngine(ledger, gateway)


@pytest.fixture
def mock_valkey():
    return MockValkeyClient()


@pytest.fixture
def lock_manager(mock_valkey):
    return DistributedLockManager(mock_valkey)


@pytest.fixture
def make_flight(ledger):
    """Factory inserting a SCHEDULED flight; returns its id."""
    counter = {"n": 0}

    def _make_flight(total_seats=10, price="100.00", minimum_seats=5,
                     departs_in=timedelta(days=2), sold_seats=0, status=FlightStatus.SCHEDULED):
        counter["n"] += 1
        departure = utcnow() + departs_in
        with ledger.transaction() as session:
            flight = Flight(
                flight_number=f"FE{100 + counter['n']}",
                origin="Lisbon",
                destination="Boston",
                departure_time=departure,
                arrival_time=departure + timedelta(hours=7),
                price=Decimal(price),
                total_seats=total_seats,
                available_seats=total_seats - sold_seats,
                sold_seats=sold_seats,
                minimum_seats=minimum_seats,
                status=status,
                version=0,
            )
            ledger.add_flight(session, flight)
            return flight.id

    return _make_flight


@pytest.fixture
def read_flight(ledger):
    """Fresh seat counters and status of a flight."""

    def _read_flight(flight_id):
        with ledger.transaction() as session:
            flight = ledger.get_flight(session, flight_id)
            session.refresh(flight)
            return {
                "available": flight.available_seats,
                "sold": flight.sold_seats,
                "total": flight.total_seats,
                "status": flight.status,
            }

    return _read_flight


@pytest.fixture
def confirmed_booking(engine, gateway):
    """Factory creating a booking, authorizing its hold and confirming it."""

    def _confirmed_booking(flight_id, seats=1, user_id="user-1"):
        created = engine.create_booking(flight_id, "Ada Traveler", "ada@example.com", seats,
                                        user_id=user_id)
        booking = engine.get_booking(created.booking_id)
        gateway.authorize(booking.payment_hold_id)
        return engine.confirm_booking(created.booking_id)

    return _confirmed_booking
