"""
Tests for the Valkey distributed lock manager and event markers.
"""

from unittest.mock import patch

import pytest
from valkey.exceptions import ConnectionError as ValkeyConnectionFailure

from flight_escrow.cache.client import ValkeyClient
from flight_escrow.cache.config import ValkeyConfig, ValkeyConnectionError
from flight_escrow.cache.keys import CacheKeyBuilder, CacheKeyPrefix


class TestCacheKeys:

    def test_build_key(self):
        builder = CacheKeyBuilder()
        assert builder.build_key(CacheKeyPrefix.LOCK, "refund-sweep") == "flight_escrow:lock:refund-sweep"
        assert builder.build_key(CacheKeyPrefix.WEBHOOK_EVENT, "evt_1") == "flight_escrow:webhook:event:evt_1"

    def test_none_parts_are_skipped(self):
        assert CacheKeyBuilder("test").build_key("lock", "a", None, 3) == "test:lock:a:3"


class TestDistributedLockManager:

    def test_acquire_and_release(self, lock_manager, mock_valkey):
        lock = lock_manager.acquire_lock("refund-sweep", ttl_seconds=30)

        assert lock is not None
        assert lock.ttl_seconds == 30
        assert mock_valkey.data[lock.lock_key] == lock.lock_value
        assert lock_manager.release_lock(lock) is True
        assert lock.lock_key not in mock_valkey.data

    def test_second_acquire_fails_while_held(self, lock_manager):
        first = lock_manager.acquire_lock("refund-sweep")

        assert lock_manager.acquire_lock("refund-sweep") is None
        lock_manager.release_lock(first)
        assert lock_manager.acquire_lock("refund-sweep") is not None

    def test_default_ttl(self, lock_manager, mock_valkey):
        lock = lock_manager.acquire_lock("refund-sweep")
        assert mock_valkey.ttls[lock.lock_key] == 300

    def test_release_by_non_owner_is_refused(self, lock_manager, mock_valkey):
        lock = lock_manager.acquire_lock("refund-sweep")
        mock_valkey.data[lock.lock_key] = "someone-else"

        assert lock_manager.release_lock(lock) is False
        assert mock_valkey.data[lock.lock_key] == "someone-else"

    def test_wait_for_lock_gives_up_after_timeout(self, lock_manager):
        lock_manager.acquire_lock("refund-sweep")

        with patch("flight_escrow.services.lock_manager.time.sleep") as sleep:
            assert lock_manager.acquire_lock("refund-sweep", timeout_seconds=0.05) is None
        assert sleep.called

    def test_markers(self, lock_manager, mock_valkey):
        assert lock_manager.is_marked(CacheKeyPrefix.WEBHOOK_EVENT, "evt_1") is False

        lock_manager.mark(CacheKeyPrefix.WEBHOOK_EVENT, "evt_1", 3600)

        assert lock_manager.is_marked(CacheKeyPrefix.WEBHOOK_EVENT, "evt_1") is True
        assert mock_valkey.ttls["flight_escrow:webhook:event:evt_1"] == 3600

    def test_dropped_connection_starts_client_cooldown(self, lock_manager, mock_valkey):
        with patch.object(mock_valkey, "exists", side_effect=ValkeyConnectionFailure("reset by peer")):
            with pytest.raises(ValkeyConnectionError):
                lock_manager.is_marked(CacheKeyPrefix.WEBHOOK_EVENT, "evt_1")

        assert mock_valkey.unavailable_marks == 1

    def test_calls_make_a_single_connection_attempt(self, lock_manager, mock_valkey):
        with patch.object(mock_valkey, "ensure_connection") as ensure:
            lock_manager.mark(CacheKeyPrefix.WEBHOOK_EVENT, "evt_1", 60)

        ensure.assert_called_once_with(max_attempts=1)


class TestValkeyClientOutage:
    """Reconnect behaviour with the Valkey server down, without a real server."""

    @pytest.fixture
    def patched_valkey(self):
        with patch("flight_escrow.cache.client.ConnectionPool"), \
                patch("flight_escrow.cache.client.valkey.Valkey") as valkey_cls, \
                patch("flight_escrow.cache.client.time.sleep") as sleep:
            yield valkey_cls.return_value, sleep

    def test_startup_connect_retries_with_backoff(self, patched_valkey):
        server, sleep = patched_valkey
        server.ping.side_effect = ValkeyConnectionFailure("connection refused")
        client = ValkeyClient(ValkeyConfig())

        with pytest.raises(ValkeyConnectionError, match="after 5 attempts"):
            client.connect()

        assert server.ping.call_count == 5
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0, 4.0, 8.0]

    def test_fails_fast_during_cooldown(self, patched_valkey):
        server, sleep = patched_valkey
        server.ping.side_effect = ValkeyConnectionFailure("connection refused")
        client = ValkeyClient(ValkeyConfig(outage_cooldown=60))

        with pytest.raises(ValkeyConnectionError):
            client.ensure_connection(max_attempts=1)
        with pytest.raises(ValkeyConnectionError, match="next reconnect attempt"):
            client.ensure_connection(max_attempts=1)

        assert server.ping.call_count == 1
        assert not sleep.called

    def test_reconnects_once_cooldown_expires(self, patched_valkey):
        server, _ = patched_valkey
        server.ping.side_effect = [ValkeyConnectionFailure("connection refused"), True]
        client = ValkeyClient(ValkeyConfig(outage_cooldown=0))

        with pytest.raises(ValkeyConnectionError):
            client.ensure_connection(max_attempts=1)
        client.ensure_connection(max_attempts=1)

        assert client.is_connected
