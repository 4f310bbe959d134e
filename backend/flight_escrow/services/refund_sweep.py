"""
Refund sweep for flights that miss their minimum passenger count.

Scans scheduled flights departing within the lookahead window. A flight whose
sold seats are below its minimum is first marked REFUNDED under its lock, so
no new booking can be created or confirmed on it, and then every open booking
is refunded through the lifecycle engine. One booking's failure never stops
the sweep; it is reported in the results for manual follow-up.

Closing the flight under its row lock also makes overlapping runs harmless:
only the run that moves a flight out of SCHEDULED refunds its bookings. The
Valkey run lock therefore only saves duplicate work, and a Valkey outage lets
the sweep run without it.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from ..cache.config import ValkeyConnectionError
from ..database.ledger import LedgerStore
from ..exceptions import ConflictError, EscrowError, InvalidStateError
from ..models.booking import BookingModel
from ..models.enums import BookingStatus, FlightStatus, RefundOutcome
from ..models.sweep import RefundResultModel, SweepReportModel
from ..utils.time import utcnow
from .booking_engine import BookingEngine
from .lock_manager import DistributedLockManager, LockInfo

logger = logging.getLogger(__name__)

SWEEP_LOCK_RESOURCE = "refund-sweep"


class RefundSweep:
    """
    Batch job that refunds under-sold flights close to departure.

    Args:
        ledger: Store used to select flights and bookings
        engine: Lifecycle engine that performs each refund
        lookahead_days: Departure window evaluated by each run
        lock_manager: Optional Valkey lock manager preventing overlapping runs
        lock_ttl_seconds: Expiry of the run lock
        clock: Returns the current naive UTC time
    """

    def __init__(self, ledger: LedgerStore, engine: BookingEngine, lookahead_days: int = 3,
                 lock_manager: Optional[DistributedLockManager] = None,
                 lock_ttl_seconds: int = 900,
                 clock: Callable[[], datetime] = utcnow):
        self.ledger = ledger
        self.engine = engine
        self.lookahead = timedelta(days=lookahead_days)
        self.lock_manager = lock_manager
        self.lock_ttl_seconds = lock_ttl_seconds
        self.clock = clock

    def run(self, now: Optional[datetime] = None) -> SweepReportModel:
        """
        Run one sweep.

        Raises:
            ConflictError: Another sweep currently holds the run lock
        """
        now = now or self.clock()
        if self.lock_manager is None:
            return self._sweep(now)

        try:
            lock = self.lock_manager.acquire_lock(SWEEP_LOCK_RESOURCE, self.lock_ttl_seconds)
        except ValkeyConnectionError as e:
            logger.warning(f"Refund sweep run lock unavailable, sweeping without it: {e}")
            return self._sweep(now)

        if lock is None:
            raise ConflictError("A refund sweep is already running")
        try:
            return self._sweep(now)
        finally:
            self._release(lock)

    def _release(self, lock: LockInfo) -> None:
        try:
            self.lock_manager.release_lock(lock)
        except ValkeyConnectionError as e:
            logger.warning(f"Could not release refund sweep lock, it expires in "
                           f"{lock.ttl_seconds}s: {e}")

    def _sweep(self, now: datetime) -> SweepReportModel:
        with self.ledger.transaction() as session:
            flights = self.ledger.sweep_candidates(session, now, now + self.lookahead)
            under_sold = [
                (flight.id, flight.flight_number)
                for flight in flights
                if flight.sold_seats < flight.minimum_seats
            ]
            flights_checked = len(flights)

        results: List[RefundResultModel] = []
        for flight_id, flight_number in under_sold:
            if self._close_flight(flight_id, flight_number):
                results.extend(self._refund_flight(flight_id, flight_number))

        refunded = sum(1 for r in results if r.status == RefundOutcome.REFUNDED)
        failed = sum(1 for r in results if r.status == RefundOutcome.FAILED)
        logger.info(f"Refund sweep checked {flights_checked} flight(s), refunded "
                    f"{refunded} booking(s), {failed} failure(s)")
        return SweepReportModel(results=results, flights_checked=flights_checked)

    def _close_flight(self, flight_id: int, flight_number: str) -> bool:
        """Mark the flight REFUNDED if it is still scheduled and under its minimum."""
        with self.ledger.transaction() as session:
            flight = self.ledger.lock_flight(session, flight_id)
            if flight.status != FlightStatus.SCHEDULED:
                return False
            if flight.sold_seats >= flight.minimum_seats:
                logger.info(f"Flight {flight_number} reached its minimum during the sweep")
                return False
            logger.info(f"Flight {flight_number} sold {flight.sold_seats}/{flight.minimum_seats} "
                        f"minimum seats; refunding bookings")
            self.ledger.set_flight_status(session, flight, FlightStatus.REFUNDED)
            return True

    def _refund_flight(self, flight_id: int, flight_number: str) -> List[RefundResultModel]:
        with self.ledger.transaction() as session:
            booking_ids = [b.id for b in self.ledger.refundable_bookings(session, flight_id)]

        results = []
        for booking_id in booking_ids:
            try:
                booking = self.engine.refund_booking(booking_id)
            except InvalidStateError:
                # Closed by a webhook after the bookings were listed.
                booking = self.engine.get_booking(booking_id)
            except EscrowError as e:
                logger.warning(f"Failed to refund booking {booking_id}: {e.message}")
                results.append(RefundResultModel(
                    booking_id=booking_id,
                    flight_number=flight_number,
                    status=RefundOutcome.FAILED,
                    error=e.message,
                ))
                continue
            except Exception as e:
                logger.exception(f"Unexpected error refunding booking {booking_id}")
                results.append(RefundResultModel(
                    booking_id=booking_id,
                    flight_number=flight_number,
                    status=RefundOutcome.FAILED,
                    error=str(e) or e.__class__.__name__,
                ))
                continue

            results.append(self._outcome(booking, flight_number))
        return results

    @staticmethod
    def _outcome(booking: BookingModel, flight_number: str) -> RefundResultModel:
        if booking.status == BookingStatus.REFUNDED:
            return RefundResultModel(
                booking_id=booking.id,
                flight_number=flight_number,
                status=RefundOutcome.REFUNDED,
                refund_amount=float(booking.refund_amount or booking.total_amount),
            )
        logger.info(f"Booking {booking.id} was already {booking.status.value}; nothing refunded")
        return RefundResultModel(
            booking_id=booking.id,
            flight_number=flight_number,
            status=RefundOutcome.SKIPPED,
            error=f"Booking was already {booking.status.value}",
        )
