"""Admin escrow routes: booking listing, capture/refund and the refund sweep."""

import logging

from flask import Blueprint, jsonify, request

from ...models.booking import EscrowActionModel
from ...models.enums import EscrowAction
from ..auth import require_admin
from ..extension import get_services

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/admin/bookings')
@require_admin
def list_bookings():
    bookings = get_services().catalog.recent_bookings()
    return jsonify([b.model_dump(mode='json', by_alias=True) for b in bookings])


@admin_bp.route('/admin/escrow', methods=['POST'])
@require_admin
def escrow_action():
    """Capture or refund the payment hold of one booking."""
    payload = EscrowActionModel.model_validate(request.get_json(silent=True) or {})
    engine = get_services().engine

    if payload.action == EscrowAction.CAPTURE:
        booking = engine.capture_booking(payload.booking_id)
        message = 'Payment captured successfully'
    else:
        booking = engine.refund_booking(payload.booking_id)
        message = 'Payment refunded successfully'

    return jsonify({
        'success': True,
        'message': message,
        'booking': booking.model_dump(mode='json', by_alias=True),
    })


@admin_bp.route('/refunds/check', methods=['POST'])
@require_admin
def check_refunds():
    """Run the refund sweep now."""
    report = get_services().sweep.run()
    return jsonify(report.model_dump(mode='json', by_alias=True, exclude_none=True))
