"""
Database package for the flight escrow service.

This package provides the SQLAlchemy models, database configuration and the
ledger store used by the booking lifecycle.
"""

from .models import (
    Base,
    Aircraft,
    Flight,
    Booking,
    create_all_tables,
    drop_all_tables,
)

from .config import (
    DatabaseConfig,
    initialize_database,
)

from .ledger import LedgerStore

__all__ = [
    # Models
    'Base',
    'Aircraft',
    'Flight',
    'Booking',
    'create_all_tables',
    'drop_all_tables',

    # Configuration
    'DatabaseConfig',
    'initialize_database',

    # Store
    'LedgerStore',
]
