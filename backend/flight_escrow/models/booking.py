"""
Booking request and response models.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .enums import BookingStatus, EscrowAction


class BookingCreateModel(BaseModel):
    """Traveler request to book seats on a flight."""
    model_config = ConfigDict(populate_by_name=True)

    flight_id: int = Field(..., alias="flightId")
    passenger_name: str = Field(..., min_length=1, max_length=200, alias="passengerName")
    passenger_email: EmailStr = Field(..., alias="passengerEmail")
    seats: int = Field(..., ge=1, alias="seatsToBook")


class BookingCreatedModel(BaseModel):
    """Result of a successful booking request."""
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(..., serialization_alias="bookingId")
    client_secret: Optional[str] = Field(None, serialization_alias="clientSecret")
    amount: float


class BookingConfirmModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(..., min_length=1, alias="bookingId")


class EscrowActionModel(BaseModel):
    """Admin capture/refund request for one booking."""
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(..., min_length=1, alias="bookingId")
    action: EscrowAction


class BookingModel(BaseModel):
    """Booking as exposed through the admin API."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    user_id: Optional[str] = Field(None, serialization_alias="userId")
    flight_id: int = Field(..., serialization_alias="flightId")
    passenger_name: str = Field(..., serialization_alias="passengerName")
    passenger_email: str = Field(..., serialization_alias="passengerEmail")
    seats_booked: int = Field(..., ge=1, serialization_alias="seatsBooked")
    total_amount: Decimal = Field(..., ge=0, serialization_alias="totalAmount")
    status: BookingStatus
    payment_hold_id: Optional[str] = Field(None, serialization_alias="paymentHoldId")
    refunded: bool = False
    refund_amount: Optional[Decimal] = Field(None, serialization_alias="refundAmount")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")


class BookingFlightSummaryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    flight_number: str = Field(..., serialization_alias="flightNumber")
    origin: str
    destination: str
    departure_time: datetime = Field(..., serialization_alias="departureTime")


class AdminBookingModel(BookingModel):
    """Booking with a summary of its flight, for the admin listing."""
    flight: Optional[BookingFlightSummaryModel] = None
