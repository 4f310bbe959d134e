"""
Booking lifecycle engine.

Drives a booking through its escrow states and keeps the flight's seat
counters in lockstep:

    PENDING   --(hold authorized, confirm)--> CONFIRMED
    PENDING   --(hold failed)---------------> CANCELLED
    PENDING   --(hold released)-------------> REFUNDED
    CONFIRMED --(capture)-------------------> PAID
    CONFIRMED --(refund)--------------------> REFUNDED
    PAID      --(refund)--------------------> REFUNDED

Seats are committed only at confirmation, so a hold that never succeeds never
reserves inventory. Gateway calls run outside database transactions and the
local transition is written only after the gateway call succeeded. Every
local transition re-reads the booking under the flight lock, which makes each
one idempotent and safe to trigger from the API and from webhooks at once.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from ..database.ledger import LedgerStore
from ..database.models import Booking, Flight
from ..exceptions import (
    ConflictError,
    InvalidStateError,
    UpstreamPaymentError,
    ValidationFailedError,
)
from ..models.booking import BookingCreatedModel, BookingModel
from ..models.enums import BookingStatus, FlightStatus, HoldStatus
from ..payments.gateway import PaymentGateway
from ..utils.time import utcnow

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class BookingEngine:
    """
    Orchestrates booking state, seat inventory and payment holds.

    Args:
        ledger: Transactional store for flights and bookings
        gateway: Payment gateway adapter
        pending_hold_minutes: How long an unconfirmed booking counts against
            capacity when new bookings are checked
        clock: Returns the current naive UTC time
    """

    def __init__(self, ledger: LedgerStore, gateway: PaymentGateway,
                 pending_hold_minutes: int = 30,
                 clock: Callable[[], datetime] = utcnow):
        self.ledger = ledger
        self.gateway = gateway
        self.pending_hold_window = timedelta(minutes=pending_hold_minutes)
        self.clock = clock

    # Queries

    def get_booking(self, booking_id: str) -> BookingModel:
        with self.ledger.transaction() as session:
            return BookingModel.model_validate(self.ledger.get_booking(session, booking_id))

    def find_booking_by_hold(self, hold_id: str) -> Optional[BookingModel]:
        with self.ledger.transaction() as session:
            booking = self.ledger.find_booking_by_hold(session, hold_id)
            return BookingModel.model_validate(booking) if booking else None

    # Creation

    def _capacity(self, session: Session, flight: Flight, now: datetime) -> int:
        """Seats still bookable: available minus recent unconfirmed requests."""
        pending = self.ledger.pending_seats(session, flight.id, now - self.pending_hold_window)
        return flight.available_seats - pending

    def _check_bookable(self, session: Session, flight: Flight, seats: int, now: datetime) -> None:
        if flight.status != FlightStatus.SCHEDULED:
            raise InvalidStateError(f"Flight {flight.flight_number} is not open for booking")
        if self._capacity(session, flight, now) < seats:
            raise ConflictError(
                "Not enough seats available",
                detail={"flight_id": flight.id, "requested": seats},
            )

    def create_booking(self, flight_id: int, passenger_name: str, passenger_email: str,
                       seats: int, user_id: Optional[str] = None) -> BookingCreatedModel:
        """
        Create a PENDING booking backed by a new authorization hold.

        Capacity is checked before the hold is created and again, under the
        flight lock, before the booking row is written. If the second check
        fails the hold is released and ConflictError raised. Seats are not
        committed here.

        Raises:
            NotFoundError: Flight does not exist
            ConflictError: Not enough seats
            UpstreamPaymentError: Hold creation failed; nothing was persisted
        """
        if seats < 1:
            raise ValidationFailedError("At least one seat must be booked")

        now = self.clock()
        with self.ledger.transaction() as session:
            flight = self.ledger.get_flight(session, flight_id)
            self._check_bookable(session, flight, seats, now)
            amount = (Decimal(flight.price) * seats).quantize(_CENT)
            flight_number = flight.flight_number

        hold = self.gateway.create_hold(amount, {
            "flightId": str(flight_id),
            "flightNumber": flight_number,
            "userId": user_id or "",
            "seatsToBook": str(seats),
        })

        try:
            with self.ledger.transaction() as session:
                flight = self.ledger.lock_flight(session, flight_id)
                self._check_bookable(session, flight, seats, now)
                booking = Booking(
                    user_id=user_id,
                    flight_id=flight_id,
                    passenger_name=passenger_name,
                    passenger_email=passenger_email,
                    seats_booked=seats,
                    total_amount=amount,
                    status=BookingStatus.PENDING,
                    payment_hold_id=hold.hold_id,
                    refunded=False,
                    created_at=now,
                )
                self.ledger.add_booking(session, booking)
                booking_id = booking.id
        except Exception:
            self._release_orphan_hold(hold.hold_id)
            raise

        logger.info(f"Booking {booking_id} created: {seats} seat(s) on {flight_number}, "
                    f"hold {hold.hold_id} for {amount}")
        return BookingCreatedModel(booking_id=booking_id, client_secret=hold.client_secret,
                                   amount=float(amount))

    def _release_orphan_hold(self, hold_id: str) -> None:
        """Cancel a hold whose booking could not be written."""
        try:
            self.gateway.cancel_hold(hold_id)
        except UpstreamPaymentError as e:
            # The processor expires uncaptured holds on its own.
            logger.error(f"Could not release orphaned hold {hold_id}: {e.message}")

    # Transitions

    def _locked_booking(self, session: Session, booking_id: str) -> Tuple[Flight, Booking]:
        """Lock the booking's flight, then re-read the booking."""
        flight_id = self.ledger.get_booking(session, booking_id).flight_id
        flight = self.ledger.lock_flight(session, flight_id)
        return flight, self.ledger.get_booking(session, booking_id)

    def confirm_booking(self, booking_id: str, verify_hold: bool = False) -> BookingModel:
        """
        Commit seats for a PENDING booking and mark it CONFIRMED.

        Idempotent: an already CONFIRMED or PAID booking is returned unchanged.
        With ``verify_hold`` the hold is checked with the gateway first; a
        failed or released hold cancels the booking.

        Raises:
            NotFoundError: Booking does not exist
            InvalidStateError: Booking is terminal, or its hold is not authorized
            ConflictError: Flight no longer has the seats, or is no longer
                SCHEDULED; in the latter case the hold is released and the
                booking closed as REFUNDED
        """
        booking = self.get_booking(booking_id)
        if booking.status.holds_seats:
            return booking
        if booking.status != BookingStatus.PENDING:
            raise InvalidStateError(f"Cannot confirm a {booking.status.value} booking")

        if verify_hold and booking.payment_hold_id:
            hold = self.gateway.retrieve_hold(booking.payment_hold_id)
            if hold.status == HoldStatus.FAILED:
                self.cancel_booking(booking_id)
                raise InvalidStateError("Payment authorization failed; booking cancelled")
            if hold.status == HoldStatus.CANCELED:
                self.mark_hold_canceled(booking_id)
                raise InvalidStateError("Payment hold was released; booking closed")
            if hold.status == HoldStatus.REQUIRES_PAYMENT:
                raise InvalidStateError("Payment has not been authorized yet")

        with self.ledger.transaction() as session:
            flight, booking_row = self._locked_booking(session, booking_id)
            if booking_row.status.holds_seats:
                return BookingModel.model_validate(booking_row)
            if booking_row.status != BookingStatus.PENDING:
                raise InvalidStateError(f"Cannot confirm a {booking_row.status.value} booking")
            flight_number = flight.flight_number
            if flight.status == FlightStatus.SCHEDULED:
                self.ledger.commit_seats(session, flight, booking_row.seats_booked)
                booking_row.status = BookingStatus.CONFIRMED
                session.flush()
                logger.info(f"Booking {booking_id} confirmed; {booking_row.seats_booked} seat(s) "
                            f"committed on {flight_number}")
                return BookingModel.model_validate(booking_row)

        logger.warning(f"Flight {flight_number} closed before booking {booking_id} was confirmed; "
                       f"releasing hold")
        self.refund_booking(booking_id)
        raise ConflictError(f"Flight {flight_number} is no longer open for booking; "
                            f"payment hold released")

    def capture_booking(self, booking_id: str) -> BookingModel:
        """
        Capture the hold of a CONFIRMED booking and mark it PAID.

        Raises:
            InvalidStateError: Booking is not CONFIRMED
            UpstreamPaymentError: Capture failed; booking stays CONFIRMED
        """
        booking = self.get_booking(booking_id)
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError("Can only capture confirmed bookings")

        self.gateway.capture_hold(booking.payment_hold_id)

        with self.ledger.transaction() as session:
            _, booking_row = self._locked_booking(session, booking_id)
            if booking_row.status == BookingStatus.CONFIRMED:
                booking_row.status = BookingStatus.PAID
                session.flush()
                logger.info(f"Booking {booking_id} captured")
            elif booking_row.status == BookingStatus.PAID:
                raise InvalidStateError("Can only capture confirmed bookings")
            else:
                logger.error(f"Hold for booking {booking_id} captured but booking is now "
                             f"{booking_row.status.value}; needs manual reconciliation")
                raise InvalidStateError(
                    f"Booking became {booking_row.status.value} while capturing"
                )
            return BookingModel.model_validate(booking_row)

    def refund_booking(self, booking_id: str) -> BookingModel:
        """
        Return the traveler's money and close the booking as REFUNDED.

        A PENDING hold is released; a CONFIRMED or PAID booking is refunded in
        full. Seats go back to the flight only if they had been committed.

        Raises:
            InvalidStateError: Booking is already CANCELLED or REFUNDED
            UpstreamPaymentError: Gateway call failed; nothing changed
        """
        booking = self.get_booking(booking_id)
        if booking.status.is_terminal:
            raise InvalidStateError(f"Booking is already {booking.status.value}")

        if booking.payment_hold_id:
            if booking.status == BookingStatus.PENDING:
                self.gateway.cancel_hold(booking.payment_hold_id)
            else:
                self.gateway.refund(booking.payment_hold_id)

        with self.ledger.transaction() as session:
            flight, booking_row = self._locked_booking(session, booking_id)
            if booking_row.status.is_terminal:
                # A webhook closed it while the gateway call was in flight.
                return BookingModel.model_validate(booking_row)
            if booking_row.status.holds_seats:
                self.ledger.release_seats(session, flight, booking_row.seats_booked)
            booking_row.status = BookingStatus.REFUNDED
            booking_row.refunded = True
            booking_row.refund_amount = booking_row.total_amount
            session.flush()
            logger.info(f"Booking {booking_id} refunded ({booking_row.total_amount})")
            return BookingModel.model_validate(booking_row)

    def cancel_booking(self, booking_id: str) -> BookingModel:
        """Mark a PENDING booking CANCELLED after its hold failed; otherwise a no-op."""
        with self.ledger.transaction() as session:
            _, booking_row = self._locked_booking(session, booking_id)
            if booking_row.status == BookingStatus.PENDING:
                booking_row.status = BookingStatus.CANCELLED
                session.flush()
                logger.info(f"Booking {booking_id} cancelled (payment failed)")
            return BookingModel.model_validate(booking_row)

    def mark_hold_canceled(self, booking_id: str) -> BookingModel:
        """Close a PENDING booking whose hold was released; otherwise a no-op."""
        with self.ledger.transaction() as session:
            _, booking_row = self._locked_booking(session, booking_id)
            if booking_row.status == BookingStatus.PENDING:
                booking_row.status = BookingStatus.REFUNDED
                booking_row.refunded = True
                booking_row.refund_amount = booking_row.total_amount
                session.flush()
                logger.info(f"Booking {booking_id} closed after hold release")
            return BookingModel.model_validate(booking_row)
