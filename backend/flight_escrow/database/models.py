"""
SQLAlchemy database models for the flight escrow service.

This module defines the ledger tables:
- Aircraft: Aircraft types and their seat capacity
- Flight: Scheduled flights with seat-inventory counters
- Booking: Seat bookings backed by a payment authorization hold
"""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import declarative_base, relationship

from ..models.enums import BookingStatus, FlightStatus
from ..utils.time import utcnow

# Create the declarative base for all models
Base = declarative_base()


class Aircraft(Base):
    """
    Aircraft model representing a bookable aircraft type.

    New flights take their total seat count from the aircraft they fly.
    """
    __tablename__ = 'aircraft'

    id = Column(Integer, primary_key=True, autoincrement=True)
    manufacturer = Column(String(50), nullable=False)
    model = Column(String(50), nullable=False)
    total_seats = Column(Integer, nullable=False)

    flights = relationship("Flight", back_populates="aircraft", lazy="select")

    def __repr__(self):
        return f"<Aircraft(id={self.id}, {self.manufacturer} {self.model}, seats={self.total_seats})>"


class Flight(Base):
    """
    Flight model with seat-inventory counters.

    ``available_seats + sold_seats == total_seats`` holds at every commit.
    ``sold_seats`` counts only bookings whose seats were committed by
    confirmation. ``version`` is bumped whenever the flight row is locked for
    a booking mutation.
    """
    __tablename__ = 'flight'
    __table_args__ = (
        CheckConstraint('available_seats >= 0', name='ck_flight_available_nonneg'),
        CheckConstraint('sold_seats >= 0', name='ck_flight_sold_nonneg'),
        CheckConstraint('available_seats + sold_seats = total_seats', name='ck_flight_seat_balance'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Flight identification and schedule
    flight_number = Column(String(12), unique=True, nullable=False, index=True)
    origin = Column(String(64), nullable=False, index=True)
    destination = Column(String(64), nullable=False, index=True)
    departure_time = Column(DateTime, nullable=False, index=True)
    arrival_time = Column(DateTime, nullable=False)

    # Pricing and seat inventory
    price = Column(Numeric(10, 2), nullable=False)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    sold_seats = Column(Integer, nullable=False, default=0)
    minimum_seats = Column(Integer, nullable=False, default=5)

    status = Column(
        Enum(FlightStatus, native_enum=False, length=16),
        nullable=False,
        default=FlightStatus.SCHEDULED,
        index=True,
    )
    aircraft_id = Column(Integer, ForeignKey('aircraft.id'), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    aircraft = relationship("Aircraft", back_populates="flights", lazy="select")
    bookings = relationship("Booking", back_populates="flight", lazy="select")

    def __repr__(self):
        return (f"<Flight(id={self.id}, number='{self.flight_number}', "
                f"available={self.available_seats}, sold={self.sold_seats}/{self.total_seats})>")


class Booking(Base):
    """
    Booking model linking a traveler to seats on a flight.

    ``total_amount`` is fixed at creation. Refunds and cancellations are
    terminal statuses; bookings are never deleted once a hold exists.
    """
    __tablename__ = 'booking'
    __table_args__ = (
        CheckConstraint('seats_booked >= 1', name='ck_booking_seats_positive'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(String(64), nullable=True, index=True)
    flight_id = Column(Integer, ForeignKey('flight.id'), nullable=False, index=True)
    passenger_name = Column(String(200), nullable=False)
    passenger_email = Column(String(254), nullable=False)
    seats_booked = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(
        Enum(BookingStatus, native_enum=False, length=16),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    payment_hold_id = Column(String(255), unique=True, nullable=True, index=True)
    refunded = Column(Boolean, nullable=False, default=False)
    refund_amount = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    flight = relationship("Flight", back_populates="bookings", lazy="select")

    def __repr__(self):
        return (f"<Booking(id={self.id}, flight_id={self.flight_id}, "
                f"seats={self.seats_booked}, status={self.status})>")


Index('idx_flight_status_departure', Flight.status, Flight.departure_time)
Index('idx_booking_flight_status', Booking.flight_id, Booking.status)


def create_all_tables(engine):
    """
    Create all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.create_all(bind=engine)


def drop_all_tables(engine):
    """Drop all ledger tables."""
    Base.metadata.drop_all(bind=engine)
