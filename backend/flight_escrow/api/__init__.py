"""Flask app factory for the flight escrow API."""

import logging
from typing import Optional

from flask import Flask

from ..cache.client import ValkeyClient
from ..database.config import initialize_database
from ..database.ledger import LedgerStore
from ..payments.gateway import PaymentGateway, StripeGateway
from ..services.booking_engine import BookingEngine
from ..services.flight_catalog import FlightCatalog
from ..services.lock_manager import DistributedLockManager
from ..services.refund_sweep import RefundSweep
from ..services.webhook_reconciler import WebhookReconciler
from ..utils.config import AppConfig, get_config
from .errors import register_error_handlers
from .extension import EXTENSION_KEY, EscrowServices

logger = logging.getLogger(__name__)


def build_services(config: AppConfig, ledger: Optional[LedgerStore] = None,
                   gateway: Optional[PaymentGateway] = None,
                   lock_manager: Optional[DistributedLockManager] = None) -> EscrowServices:
    """
    Wire the lifecycle services from configuration.

    Anything passed in is used as is; the rest is built from ``config``.
    """
    if ledger is None:
        db_config = initialize_database(config.database_url, echo=config.database_echo)
        ledger = LedgerStore(db_config)
    if gateway is None:
        gateway = StripeGateway(config.stripe_config())
    if lock_manager is None and config.valkey_enabled:
        lock_manager = DistributedLockManager(ValkeyClient(config.valkey_config()),
                                              default_lock_ttl=config.sweep_lock_ttl_seconds)

    engine = BookingEngine(ledger, gateway, pending_hold_minutes=config.pending_hold_minutes)
    return EscrowServices(
        ledger=ledger,
        gateway=gateway,
        engine=engine,
        sweep=RefundSweep(
            ledger, engine,
            lookahead_days=config.sweep_lookahead_days,
            lock_manager=lock_manager,
            lock_ttl_seconds=config.sweep_lock_ttl_seconds,
        ),
        reconciler=WebhookReconciler(
            gateway, engine,
            webhook_secret=config.stripe_webhook_secret,
            lock_manager=lock_manager,
            event_ttl_seconds=config.webhook_event_ttl_seconds,
        ),
        catalog=FlightCatalog(ledger, admin_bookings_limit=config.admin_bookings_limit),
        lock_manager=lock_manager,
    )


def create_app(config: Optional[AppConfig] = None, *, ledger: Optional[LedgerStore] = None,
               gateway: Optional[PaymentGateway] = None,
               lock_manager: Optional[DistributedLockManager] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Application configuration; loaded from the environment when None
        ledger: Ledger store to use instead of one built from ``config``
        gateway: Payment gateway to use instead of Stripe
        lock_manager: Valkey lock manager to use instead of one built from ``config``

    Returns:
        Flask application instance
    """
    config = config or get_config()

    app = Flask(__name__)
    app.config['DEBUG'] = config.debug
    app.extensions[EXTENSION_KEY] = build_services(config, ledger, gateway, lock_manager)

    register_error_handlers(app)
    register_blueprints(app)

    logger.info("Flight escrow API initialized")
    return app


def register_blueprints(app):
    """Register application blueprints."""
    from .routes.admin import admin_bp
    from .routes.bookings import bookings_bp
    from .routes.flights import flights_bp
    from .routes.webhooks import webhooks_bp

    for blueprint in (bookings_bp, admin_bp, flights_bp, webhooks_bp):
        app.register_blueprint(blueprint, url_prefix='/api')
