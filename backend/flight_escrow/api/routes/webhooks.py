"""Payment processor webhook endpoint."""

import logging

from flask import Blueprint, jsonify, request

from ...exceptions import SignatureInvalidError
from ..extension import get_services

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__)


@webhooks_bp.route('/webhooks/stripe', methods=['POST'])
def stripe_webhook():
    """
    Receive a signed Stripe event.

    Returns 400 for deliveries that fail verification and 500 when applying
    the event fails, so the processor redelivers it later.
    """
    raw_body = request.get_data()
    signature = request.headers.get('Stripe-Signature')

    try:
        result = get_services().reconciler.handle(raw_body, signature)
    except SignatureInvalidError as e:
        logger.warning(f"Rejected webhook delivery: {e.message}")
        return jsonify({'error': e.message, 'code': e.code, 'retryable': False}), 400
    except Exception:
        logger.exception("Webhook handler failed")
        return jsonify({'error': 'Webhook handler failed', 'code': 'webhook_error',
                        'retryable': True}), 500

    return jsonify({'received': True, 'action': result.action})
