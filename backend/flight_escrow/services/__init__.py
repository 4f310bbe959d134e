"""
Services package for the flight escrow service.

This package contains the booking lifecycle engine, the refund sweep, the
webhook reconciler, the flight catalog and the Valkey lock manager.
"""

from .booking_engine import BookingEngine
from .flight_catalog import FlightCatalog
from .lock_manager import DistributedLockManager, LockInfo
from .refund_sweep import RefundSweep
from .webhook_reconciler import WebhookReconciler

__all__ = [
    "BookingEngine",
    "FlightCatalog",
    "DistributedLockManager",
    "LockInfo",
    "RefundSweep",
    "WebhookReconciler",
]
