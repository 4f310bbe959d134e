"""
Flight catalog: search, admin flight management and listings.

Seat counters are never edited here. Updates go through an allow-list model
and run under the same flight lock the booking lifecycle uses.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ..database.ledger import LedgerStore
from ..database.models import Aircraft, Flight
from ..exceptions import ConflictError, ValidationFailedError
from ..models.booking import AdminBookingModel
from ..models.enums import FlightStatus
from ..models.flight import (
    AircraftCreateModel,
    AircraftModel,
    FlightCreateModel,
    FlightModel,
    FlightUpdateModel,
)
from ..utils.time import to_naive_utc

logger = logging.getLogger(__name__)


class FlightCatalog:
    """Read and admin operations on flights and aircraft."""

    def __init__(self, ledger: LedgerStore, admin_bookings_limit: int = 50):
        self.ledger = ledger
        self.admin_bookings_limit = admin_bookings_limit

    def search(self, origin: Optional[str] = None, destination: Optional[str] = None,
               date: Optional[datetime] = None) -> List[FlightModel]:
        """
        Bookable flights, soonest first.

        Origin and destination match case-insensitive substrings; ``date``
        restricts results to departures on that calendar day (UTC).
        """
        day_start = day_end = None
        if date is not None:
            day_start = to_naive_utc(date).replace(hour=0, minute=0, second=0, microsecond=0)
            day_end = day_start + timedelta(days=1)

        with self.ledger.transaction() as session:
            flights = self.ledger.search_flights(session, origin, destination, day_start, day_end)
            return [FlightModel.model_validate(f) for f in flights]

    def get_flight(self, flight_id: int) -> FlightModel:
        with self.ledger.transaction() as session:
            return FlightModel.model_validate(self.ledger.get_flight(session, flight_id))

    def create_flight(self, request: FlightCreateModel) -> FlightModel:
        """
        Schedule a new flight with every seat available.

        Raises:
            NotFoundError: Referenced aircraft does not exist
            ConflictError: Flight number already in use
        """
        with self.ledger.transaction() as session:
            if self.ledger.flight_number_exists(session, request.flight_number):
                raise ConflictError(f"Flight number {request.flight_number} already exists")

            total_seats = request.total_seats
            if request.aircraft_id is not None:
                total_seats = self.ledger.get_aircraft(session, request.aircraft_id).total_seats

            flight = Flight(
                flight_number=request.flight_number,
                origin=request.origin,
                destination=request.destination,
                departure_time=to_naive_utc(request.departure_time),
                arrival_time=to_naive_utc(request.arrival_time),
                price=request.price,
                total_seats=total_seats,
                available_seats=total_seats,
                sold_seats=0,
                minimum_seats=request.minimum_seats,
                status=FlightStatus.SCHEDULED,
                aircraft_id=request.aircraft_id,
                version=0,
            )
            self.ledger.add_flight(session, flight)
            logger.info(f"Flight {flight.flight_number} created with {total_seats} seats")
            return FlightModel.model_validate(flight)

    def update_flight(self, flight_id: int, request: FlightUpdateModel) -> FlightModel:
        """
        Apply an allow-listed edit.

        Raises:
            NotFoundError: Flight does not exist
            ValidationFailedError: Resulting schedule arrives before it departs
        """
        changes = request.changes()
        with self.ledger.transaction() as session:
            flight = self.ledger.lock_flight(session, flight_id)
            for field, value in changes.items():
                if isinstance(value, datetime):
                    value = to_naive_utc(value)
                setattr(flight, field, value)

            if flight.arrival_time <= flight.departure_time:
                raise ValidationFailedError("arrivalTime must be after departureTime")

            session.flush()
            if changes:
                logger.info(f"Flight {flight.flight_number} updated: {', '.join(sorted(changes))}")
            return FlightModel.model_validate(flight)

    def delete_flight(self, flight_id: int) -> bool:
        """
        Remove a flight that has no open bookings.

        A flight with only cancelled or refunded bookings is marked CANCELLED
        instead, so those booking records survive.

        Returns:
            True if the row was deleted, False if it was marked CANCELLED

        Raises:
            NotFoundError: Flight does not exist
            ConflictError: Flight has PENDING, CONFIRMED or PAID bookings
        """
        with self.ledger.transaction() as session:
            flight = self.ledger.lock_flight(session, flight_id)
            if self.ledger.active_booking_count(session, flight_id):
                raise ConflictError(
                    f"Flight {flight.flight_number} has active bookings and cannot be deleted"
                )

            if flight.bookings:
                self.ledger.set_flight_status(session, flight, FlightStatus.CANCELLED)
                logger.info(f"Flight {flight.flight_number} cancelled; booking history kept")
                return False

            session.delete(flight)
            logger.info(f"Flight {flight.flight_number} deleted")
            return True

    def list_aircraft(self) -> List[AircraftModel]:
        with self.ledger.transaction() as session:
            return [AircraftModel.model_validate(a) for a in self.ledger.list_aircraft(session)]

    def create_aircraft(self, request: AircraftCreateModel) -> AircraftModel:
        with self.ledger.transaction() as session:
            aircraft = Aircraft(
                manufacturer=request.manufacturer,
                model=request.model,
                total_seats=request.total_seats,
            )
            session.add(aircraft)
            session.flush()
            return AircraftModel.model_validate(aircraft)

    def recent_bookings(self) -> List[AdminBookingModel]:
        """Most recent bookings with their flight summary."""
        with self.ledger.transaction() as session:
            bookings = self.ledger.recent_bookings(session, self.admin_bookings_limit)
            return [AdminBookingModel.model_validate(b) for b in bookings]
