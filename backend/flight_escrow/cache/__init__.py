"""
Valkey cache layer for the flight escrow service.

This module contains the Valkey client configuration, the client itself and
key naming helpers used by the distributed lock manager.
"""

from .config import ValkeyConfig, ValkeyConnectionError
from .client import ValkeyClient
from .keys import CacheKeyPrefix, CacheKeyBuilder, key_builder

__all__ = [
    "ValkeyConfig",
    "ValkeyConnectionError",
    "ValkeyClient",
    "CacheKeyPrefix",
    "CacheKeyBuilder",
    "key_builder",
]
