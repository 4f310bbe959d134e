"""
Cache key naming conventions.
"""

from enum import Enum
from typing import Any, Union


class CacheKeyPrefix(str, Enum):
    """Key prefixes for the service's Valkey data."""
    LOCK = "lock"
    WEBHOOK_EVENT = "webhook:event"


class CacheKeyBuilder:
    """Builder for consistent, namespaced cache keys."""

    def __init__(self, namespace: str = "flight_escrow"):
        self.namespace = namespace

    def build_key(self, prefix: Union[CacheKeyPrefix, str], *parts: Any) -> str:
        """
        Build a key from a prefix and parts joined with colons.

        Example:
            build_key(CacheKeyPrefix.LOCK, "refund-sweep")
            # Returns: "flight_escrow:lock:refund-sweep"
        """
        prefix_str = prefix.value if isinstance(prefix, CacheKeyPrefix) else str(prefix)
        key_parts = [self.namespace, prefix_str]
        key_parts.extend(str(part) for part in parts if part is not None)
        return ":".join(key_parts)


key_builder = CacheKeyBuilder()
