"""
Pydantic models package for the flight escrow service.

This package contains the request, response and value models used across the
lifecycle engine, the payment gateway adapter and the HTTP layer.
"""

# Enums
from .enums import (
    FlightStatus,
    BookingStatus,
    HoldStatus,
    PaymentEventType,
    EscrowAction,
    RefundOutcome,
)

from .flight import (
    AircraftModel,
    AircraftCreateModel,
    FlightModel,
    FlightCreateModel,
    FlightUpdateModel,
    FlightSearchModel,
)

from .booking import (
    BookingCreateModel,
    BookingCreatedModel,
    BookingConfirmModel,
    EscrowActionModel,
    BookingModel,
    BookingFlightSummaryModel,
    AdminBookingModel,
)

from .payment import (
    HoldModel,
    GatewayResultModel,
    PaymentEventModel,
)

from .sweep import (
    RefundResultModel,
    SweepReportModel,
    ReconcileResultModel,
)

__all__ = [
    # Enums
    "FlightStatus",
    "BookingStatus",
    "HoldStatus",
    "PaymentEventType",
    "EscrowAction",
    "RefundOutcome",

    # Flight models
    "AircraftModel",
    "AircraftCreateModel",
    "FlightModel",
    "FlightCreateModel",
    "FlightUpdateModel",
    "FlightSearchModel",

    # Booking models
    "BookingCreateModel",
    "BookingCreatedModel",
    "BookingConfirmModel",
    "EscrowActionModel",
    "BookingModel",
    "BookingFlightSummaryModel",
    "AdminBookingModel",

    # Payment models
    "HoldModel",
    "GatewayResultModel",
    "PaymentEventModel",

    # Result models
    "RefundResultModel",
    "SweepReportModel",
    "ReconcileResultModel",
]
