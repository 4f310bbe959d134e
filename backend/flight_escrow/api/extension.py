"""
Service container shared by the API blueprints.

``create_app`` builds one EscrowServices instance and stores it under
``app.extensions["flight_escrow"]``; handlers look it up per request.
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from ..database.ledger import LedgerStore
from ..payments.gateway import PaymentGateway
from ..services.booking_engine import BookingEngine
from ..services.flight_catalog import FlightCatalog
from ..services.lock_manager import DistributedLockManager
from ..services.refund_sweep import RefundSweep
from ..services.webhook_reconciler import WebhookReconciler

EXTENSION_KEY = "flight_escrow"


@dataclass
class EscrowServices:
    ledger: LedgerStore
    gateway: PaymentGateway
    engine: BookingEngine
    sweep: RefundSweep
    reconciler: WebhookReconciler
    catalog: FlightCatalog
    lock_manager: Optional[DistributedLockManager] = None


def get_services() -> EscrowServices:
    """Services of the current application."""
    return current_app.extensions[EXTENSION_KEY]
