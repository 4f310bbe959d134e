"""
Ledger store: the narrow transactional API over flights and bookings.

Every mutation of a flight's seat counters or of its bookings goes through
``lock_flight`` first. The lock is an UPDATE of the flight's version column,
which takes a row lock on MySQL/PostgreSQL and the database write lock on
SQLite, so concurrent booking transactions for one flight are serialized.
Seat adjustments are conditional UPDATEs so the availability check and the
decrement are a single statement.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import ConflictError, NotFoundError
from ..models.enums import BookingStatus, FlightStatus
from .config import DatabaseConfig
from .models import Aircraft, Booking, Flight

logger = logging.getLogger(__name__)

REFUNDABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.PAID)


class LedgerStore:
    """Transactional persistence for aircraft, flights and bookings."""

    def __init__(self, db_config: DatabaseConfig):
        self.db = db_config

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """One unit of work; commits on success, rolls back on any error."""
        with self.db.get_session_context() as session:
            yield session

    # Flights

    def get_flight(self, session: Session, flight_id: int) -> Flight:
        flight = session.get(Flight, flight_id)
        if flight is None:
            raise NotFoundError(f"Flight {flight_id} not found")
        return flight

    def lock_flight(self, session: Session, flight_id: int) -> Flight:
        """Take the flight's write lock and return a fresh copy of the row."""
        result = session.execute(
            update(Flight)
            .where(Flight.id == flight_id)
            .values(version=Flight.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Flight {flight_id} not found")

        return session.execute(
            select(Flight)
            .where(Flight.id == flight_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

    def add_flight(self, session: Session, flight: Flight) -> Flight:
        session.add(flight)
        try:
            session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Flight number {flight.flight_number} already exists") from e
        return flight

    def flight_number_exists(self, session: Session, flight_number: str) -> bool:
        return session.execute(
            select(Flight.id).where(Flight.flight_number == flight_number)
        ).first() is not None

    def sweep_candidates(self, session: Session, start: datetime, end: datetime) -> List[Flight]:
        """Scheduled flights departing within ``[start, end]``, soonest first."""
        return list(session.execute(
            select(Flight)
            .where(
                Flight.status == FlightStatus.SCHEDULED,
                Flight.departure_time >= start,
                Flight.departure_time <= end,
            )
            .order_by(Flight.departure_time, Flight.id)
        ).scalars())

    def search_flights(self, session: Session, origin: Optional[str] = None,
                       destination: Optional[str] = None,
                       day_start: Optional[datetime] = None,
                       day_end: Optional[datetime] = None) -> List[Flight]:
        stmt = select(Flight).where(
            Flight.status == FlightStatus.SCHEDULED,
            Flight.available_seats > 0,
        )
        if origin:
            stmt = stmt.where(Flight.origin.ilike(f"%{origin}%"))
        if destination:
            stmt = stmt.where(Flight.destination.ilike(f"%{destination}%"))
        if day_start is not None and day_end is not None:
            stmt = stmt.where(Flight.departure_time >= day_start, Flight.departure_time < day_end)
        return list(session.execute(stmt.order_by(Flight.departure_time)).scalars())

    def set_flight_status(self, session: Session, flight: Flight, status: FlightStatus) -> None:
        flight.status = status
        session.flush()

    # Seat inventory

    def commit_seats(self, session: Session, flight: Flight, seats: int) -> None:
        """Move ``seats`` from available to sold, or raise ConflictError."""
        result = session.execute(
            update(Flight)
            .where(Flight.id == flight.id, Flight.available_seats >= seats)
            .values(
                available_seats=Flight.available_seats - seats,
                sold_seats=Flight.sold_seats + seats,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Not enough seats available on flight {flight.flight_number}",
                detail={"requested": seats},
            )
        session.refresh(flight)

    def release_seats(self, session: Session, flight: Flight, seats: int) -> None:
        """Move ``seats`` from sold back to available."""
        result = session.execute(
            update(Flight)
            .where(Flight.id == flight.id, Flight.sold_seats >= seats)
            .values(
                available_seats=Flight.available_seats + seats,
                sold_seats=Flight.sold_seats - seats,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Seat ledger for flight {flight.flight_number} cannot release {seats} seats",
            )
        session.refresh(flight)

    def pending_seats(self, session: Session, flight_id: int, since: datetime) -> int:
        """Seats requested by PENDING bookings created at or after ``since``."""
        total = session.execute(
            select(func.coalesce(func.sum(Booking.seats_booked), 0))
            .where(
                Booking.flight_id == flight_id,
                Booking.status == BookingStatus.PENDING,
                Booking.created_at >= since,
            )
        ).scalar_one()
        return int(total)

    # Bookings

    def get_booking(self, session: Session, booking_id: str) -> Booking:
        booking = session.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def find_booking_by_hold(self, session: Session, hold_id: str) -> Optional[Booking]:
        return session.execute(
            select(Booking).where(Booking.payment_hold_id == hold_id)
        ).scalar_one_or_none()

    def add_booking(self, session: Session, booking: Booking) -> Booking:
        session.add(booking)
        try:
            session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Payment hold {booking.payment_hold_id} is already booked") from e
        return booking

    def refundable_bookings(self, session: Session, flight_id: int) -> List[Booking]:
        """Non-refunded PENDING/CONFIRMED bookings of a flight, oldest first."""
        return list(session.execute(
            select(Booking)
            .where(
                Booking.flight_id == flight_id,
                Booking.status.in_(REFUNDABLE_STATUSES),
                Booking.refunded.is_(False),
            )
            .order_by(Booking.created_at, Booking.id)
        ).scalars())

    def active_booking_count(self, session: Session, flight_id: int) -> int:
        return session.execute(
            select(func.count(Booking.id))
            .where(Booking.flight_id == flight_id, Booking.status.in_(ACTIVE_STATUSES))
        ).scalar_one()

    def recent_bookings(self, session: Session, limit: int = 50) -> List[Booking]:
        return list(session.execute(
            select(Booking).order_by(Booking.created_at.desc()).limit(limit)
        ).scalars())

    # Aircraft

    def get_aircraft(self, session: Session, aircraft_id: int) -> Aircraft:
        aircraft = session.get(Aircraft, aircraft_id)
        if aircraft is None:
            raise NotFoundError(f"Aircraft {aircraft_id} not found")
        return aircraft

    def list_aircraft(self, session: Session) -> List[Aircraft]:
        return list(session.execute(
            select(Aircraft).order_by(Aircraft.manufacturer, Aircraft.model)
        ).scalars())
