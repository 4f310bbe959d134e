"""
Distributed lock manager backed by Valkey.

Locks use SET with NX and EX so they expire on their own if the holder dies,
and are released with a compare-and-delete script so a holder never frees a
lock that has since passed to someone else. The same primitive records
processed webhook event ids.

Every call makes a single connection attempt. While the server is down the
client fails fast for its outage cooldown, so callers see a
ValkeyConnectionError in milliseconds instead of waiting out the reconnect
backoff.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, Optional

import valkey
from valkey.exceptions import ConnectionError, TimeoutError

from ..cache.client import ValkeyClient
from ..cache.config import ValkeyConnectionError
from ..cache.keys import CacheKeyPrefix, key_builder

logger = logging.getLogger(__name__)

RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@dataclass
class LockInfo:
    """Information about a held distributed lock."""
    lock_key: str
    lock_value: str
    acquired_at: datetime
    expires_at: datetime
    ttl_seconds: int

    @property
    def is_expired(self) -> bool:
        return datetime.now() > self.expires_at


class DistributedLockManager:
    """
    Distributed lock manager using Valkey SET with NX and EX options.

    Features:
    - Atomic lock acquisition with TTL
    - Owner-checked release
    - Bounded wait with retry delay
    - Expiring markers for already-processed work
    """

    def __init__(self, valkey_client: ValkeyClient, default_lock_ttl: int = 300):
        """
        Initialize distributed lock manager.

        Args:
            valkey_client: Connected (or connectable) ValkeyClient
            default_lock_ttl: Lock TTL in seconds when none is given
        """
        self.valkey = valkey_client
        self.instance_id = str(uuid.uuid4())[:8]
        self.default_lock_ttl = default_lock_ttl
        self.lock_retry_delay = 0.1

        logger.info(f"DistributedLockManager initialized with instance ID: {self.instance_id}")

    @contextmanager
    def _connection(self) -> Iterator[valkey.Valkey]:
        """
        Yield the raw client after one connection attempt.

        Raises:
            ValkeyConnectionError: Server unreachable or the connection dropped
        """
        self.valkey.ensure_connection(max_attempts=1)
        try:
            yield self.valkey.client
        except (ConnectionError, TimeoutError) as e:
            self.valkey.mark_unavailable()
            raise ValkeyConnectionError(f"Valkey command failed: {e}") from e

    def acquire_lock(self, resource_key: str, ttl_seconds: Optional[int] = None,
                     timeout_seconds: float = 0.0) -> Optional[LockInfo]:
        """
        Acquire a distributed lock for the given resource.

        Args:
            resource_key: Resource identifier to lock
            ttl_seconds: Lock TTL in seconds
            timeout_seconds: Maximum time to wait; 0 tries exactly once

        Returns:
            LockInfo if lock acquired, None if the lock is held elsewhere

        Raises:
            ValkeyConnectionError: Valkey is unavailable
        """
        ttl = ttl_seconds or self.default_lock_ttl
        lock_key = key_builder.build_key(CacheKeyPrefix.LOCK, resource_key)
        lock_value = f"{self.instance_id}:{uuid.uuid4()}"
        deadline = time.monotonic() + timeout_seconds

        with self._connection() as client:
            while True:
                if client.set(lock_key, lock_value, nx=True, ex=ttl):
                    acquired_at = datetime.now()
                    logger.debug(f"Lock acquired: {lock_key}")
                    return LockInfo(
                        lock_key=lock_key,
                        lock_value=lock_value,
                        acquired_at=acquired_at,
                        expires_at=acquired_at + timedelta(seconds=ttl),
                        ttl_seconds=ttl,
                    )
                if time.monotonic() >= deadline:
                    logger.warning(f"Failed to acquire lock: {lock_key}")
                    return None
                time.sleep(self.lock_retry_delay)

    def release_lock(self, lock_info: LockInfo) -> bool:
        """
        Release a distributed lock if this holder still owns it.

        Returns:
            True if lock was released, False otherwise
        """
        with self._connection() as client:
            result = client.eval(RELEASE_SCRIPT, 1, lock_info.lock_key, lock_info.lock_value)
        released = bool(result)
        if released:
            logger.debug(f"Lock released: {lock_info.lock_key}")
        else:
            logger.warning(f"Lock release failed (not owner or expired): {lock_info.lock_key}")
        return released

    def is_marked(self, prefix: CacheKeyPrefix, marker: str) -> bool:
        """True if ``marker`` was recorded and has not yet expired."""
        with self._connection() as client:
            return bool(client.exists(key_builder.build_key(prefix, marker)))

    def mark(self, prefix: CacheKeyPrefix, marker: str, ttl_seconds: int) -> None:
        """Record ``marker`` for ``ttl_seconds``."""
        with self._connection() as client:
            client.set(key_builder.build_key(prefix, marker), "1", ex=ttl_seconds)
