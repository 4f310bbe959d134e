"""
Flight and aircraft models for the flight escrow service.

Request models reject unknown fields so admin edits only ever touch an
explicit allow-list of columns.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import FlightStatus


class AircraftModel(BaseModel):
    """Aircraft type with its seat capacity."""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Aircraft ID")
    manufacturer: str = Field(..., description="Manufacturer, e.g. 'Airbus'")
    model: str = Field(..., description="Model, e.g. 'A220-100'")
    total_seats: int = Field(..., ge=1, serialization_alias="totalSeats")


class FlightModel(BaseModel):
    """
    Flight as exposed through the API.

    Seat counters satisfy ``available_seats + sold_seats == total_seats``.
    """
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int = Field(..., description="Flight ID")
    flight_number: str = Field(..., serialization_alias="flightNumber")
    origin: str
    destination: str
    departure_time: datetime = Field(..., serialization_alias="departureTime")
    arrival_time: datetime = Field(..., serialization_alias="arrivalTime")
    price: Decimal = Field(..., ge=0, description="Price per seat")
    total_seats: int = Field(..., ge=1, serialization_alias="totalSeats")
    available_seats: int = Field(..., ge=0, serialization_alias="availableSeats")
    sold_seats: int = Field(..., ge=0, serialization_alias="soldSeats")
    minimum_seats: int = Field(..., ge=0, serialization_alias="minimumSeats")
    status: FlightStatus
    aircraft_id: Optional[int] = Field(None, serialization_alias="aircraftId")


class FlightCreateModel(BaseModel):
    """Admin request to schedule a new flight."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    flight_number: str = Field(..., min_length=2, max_length=12, alias="flightNumber")
    origin: str = Field(..., min_length=1, max_length=64)
    destination: str = Field(..., min_length=1, max_length=64)
    departure_time: datetime = Field(..., alias="departureTime")
    arrival_time: datetime = Field(..., alias="arrivalTime")
    price: Decimal = Field(..., gt=0)
    minimum_seats: int = Field(5, ge=0, alias="minimumSeats")
    aircraft_id: Optional[int] = Field(None, alias="aircraftId")
    total_seats: Optional[int] = Field(None, ge=1, alias="totalSeats")

    @model_validator(mode="after")
    def check_schedule(self) -> "FlightCreateModel":
        if self.arrival_time <= self.departure_time:
            raise ValueError("arrivalTime must be after departureTime")
        if self.aircraft_id is None and self.total_seats is None:
            raise ValueError("either aircraftId or totalSeats is required")
        return self


class FlightUpdateModel(BaseModel):
    """
    Admin edit of an existing flight.

    Only these fields may change. Seat counters and status are owned by the
    booking lifecycle and are deliberately absent.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    origin: Optional[str] = Field(None, min_length=1, max_length=64)
    destination: Optional[str] = Field(None, min_length=1, max_length=64)
    departure_time: Optional[datetime] = Field(None, alias="departureTime")
    arrival_time: Optional[datetime] = Field(None, alias="arrivalTime")
    price: Optional[Decimal] = Field(None, gt=0)
    minimum_seats: Optional[int] = Field(None, ge=0, alias="minimumSeats")

    def changes(self) -> dict:
        """Return only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


class FlightSearchModel(BaseModel):
    """Traveler flight search filters."""
    origin: Optional[str] = None
    destination: Optional[str] = None
    date: Optional[datetime] = None


class AircraftCreateModel(BaseModel):
    """Admin request to register an aircraft type."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    manufacturer: str = Field(..., min_length=1, max_length=50)
    model: str = Field(..., min_length=1, max_length=50)
    total_seats: int = Field(..., ge=1, alias="totalSeats")
