"""
Valkey client with health checks and automatic reconnection.
"""

import logging
import time
from typing import Optional

import valkey
from valkey.connection import ConnectionPool
from valkey.exceptions import ConnectionError, TimeoutError

from .config import ValkeyConfig, ValkeyConnectionError

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Valkey client with connection pooling and reconnect-on-demand.

    Features:
    - Connection pooling with configurable pool size
    - Health checks throttled by ``health_check_interval``
    - Exponential backoff between connection attempts
    - Fails fast for ``outage_cooldown`` seconds after the server was unreachable
    """

    def __init__(self, config: Optional[ValkeyConfig] = None):
        self.config = config or ValkeyConfig.from_env()
        self._client: Optional[valkey.Valkey] = None
        self._connection_pool: Optional[ConnectionPool] = None
        self._is_connected = False
        self._last_health_check = 0.0
        self._retry_after = 0.0
        self._max_connection_attempts = 5
        self._reconnect_delay = 1.0
        self._max_reconnect_delay = 30.0

        logger.info(f"Initializing Valkey client: {self.config}")

    def connect(self, max_attempts: Optional[int] = None) -> None:
        """
        Establish connection to Valkey server with retry logic.

        Args:
            max_attempts: Connection attempts before giving up; five when None

        Raises:
            ValkeyConnectionError: If connection cannot be established after max attempts
        """
        if self._is_connected and self._client:
            return

        attempts = max_attempts or self._max_connection_attempts
        for attempt in range(1, attempts + 1):
            try:
                logger.info(f"Attempting Valkey connection (attempt {attempt})")
                self._connection_pool = ConnectionPool(**self.config.to_connection_pool_kwargs())
                self._client = valkey.Valkey(connection_pool=self._connection_pool)
                self._client.ping()
                self._is_connected = True
                self._retry_after = 0.0
                logger.info("Successfully connected to Valkey server")
                return

            except (ConnectionError, TimeoutError, OSError) as e:
                logger.warning(f"Valkey connection attempt {attempt} failed: {e}")
                if attempt == attempts:
                    self.mark_unavailable()
                    raise ValkeyConnectionError(
                        f"Failed to connect to Valkey after {attempt} attempts. Last error: {e}"
                    ) from e
                delay = min(self._reconnect_delay * (2 ** (attempt - 1)), self._max_reconnect_delay)
                logger.info(f"Retrying connection in {delay:.1f} seconds...")
                time.sleep(delay)

    def disconnect(self) -> None:
        """Disconnect from Valkey server."""
        if self._connection_pool:
            try:
                self._connection_pool.disconnect()
                logger.info("Disconnected from Valkey server")
            finally:
                self._connection_pool = None
                self._client = None
                self._is_connected = False

    def mark_unavailable(self) -> None:
        """Treat the server as down until ``outage_cooldown`` has passed."""
        self._is_connected = False
        self._retry_after = time.monotonic() + self.config.outage_cooldown

    def health_check(self, force: bool = False) -> bool:
        """
        Ping the server unless a check ran within ``health_check_interval``.

        Returns:
            bool: True if connection is healthy, False otherwise
        """
        now = time.time()
        if not force and (now - self._last_health_check) < self.config.health_check_interval:
            return self._is_connected

        self._last_health_check = now
        if not self._client or not self._is_connected:
            return False

        try:
            self._client.ping()
            return True
        except (ConnectionError, TimeoutError, OSError) as e:
            logger.warning(f"Health check failed: {e}")
            self._is_connected = False
            return False

    def ensure_connection(self, max_attempts: Optional[int] = None) -> None:
        """
        Reconnect if the connection is missing or unhealthy.

        Raises:
            ValkeyConnectionError: Reconnection failed, or the server failed
                within the last ``outage_cooldown`` seconds
        """
        if self.health_check():
            return

        remaining = self._retry_after - time.monotonic()
        if remaining > 0:
            raise ValkeyConnectionError(
                f"Valkey unavailable; next reconnect attempt in {remaining:.1f}s"
            )

        logger.info("Connection unhealthy, attempting reconnection...")
        self._is_connected = False
        self.connect(max_attempts)

    @property
    def is_connected(self) -> bool:
        return self._is_connected and self._client is not None

    @property
    def client(self) -> valkey.Valkey:
        """
        Get the underlying Valkey client.

        Raises:
            ValkeyConnectionError: If client is not connected
        """
        if not self._client or not self._is_connected:
            raise ValkeyConnectionError("Client not connected. Call connect() first.")
        return self._client

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
