"""Traveler booking routes."""

import logging

from flask import Blueprint, g, jsonify, request

from ...exceptions import AuthorizationError
from ...models.booking import BookingConfirmModel, BookingCreateModel
from ..auth import require_user
from ..extension import get_services

logger = logging.getLogger(__name__)

bookings_bp = Blueprint('bookings', __name__)


@bookings_bp.route('/bookings', methods=['POST'])
@require_user
def create_booking():
    """Create a PENDING booking and return the client secret for payment."""
    payload = BookingCreateModel.model_validate(request.get_json(silent=True) or {})

    created = get_services().engine.create_booking(
        flight_id=payload.flight_id,
        passenger_name=payload.passenger_name,
        passenger_email=payload.passenger_email,
        seats=payload.seats,
        user_id=g.identity.user_id,
    )
    return jsonify(created.model_dump(by_alias=True))


@bookings_bp.route('/bookings/confirm', methods=['POST'])
@require_user
def confirm_booking():
    """Confirm a booking after the client authorized its payment."""
    payload = BookingConfirmModel.model_validate(request.get_json(silent=True) or {})
    engine = get_services().engine

    booking = engine.get_booking(payload.booking_id)
    if booking.user_id and booking.user_id != g.identity.user_id and not g.identity.is_admin:
        raise AuthorizationError("Booking belongs to another user", forbidden=True)

    engine.confirm_booking(payload.booking_id, verify_hold=True)
    return jsonify({'success': True})
