"""JSON error responses for the API."""

import logging

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from ..exceptions import EscrowError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Map service errors to ``{"error", "code", "retryable"}`` bodies."""

    @app.errorhandler(EscrowError)
    def handle_escrow_error(error: EscrowError):
        if error.http_status >= 500:
            logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        body = {
            "error": "Invalid request",
            "code": "validation_error",
            "retryable": False,
            "detail": error.errors(include_url=False, include_context=False, include_input=False),
        }
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        body = {"error": error.description, "code": error.name.lower().replace(" ", "_"),
                "retryable": False}
        return jsonify(body), error.code
