"""
Tests for environment configuration loading and validation.
"""

import logging
import os
from unittest.mock import patch

import pytest

from flight_escrow.utils.config import AppConfig, load_config, setup_logging


class TestAppConfig:

    def test_defaults(self):
        config = AppConfig()

        assert config.sweep_lookahead_days == 3
        assert config.pending_hold_minutes == 30
        assert config.admin_bookings_limit == 50
        assert config.valkey_enabled is False
        assert config.stripe_currency == "usd"

    def test_log_level_validation(self):
        assert AppConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValueError):
            AppConfig(log_level="chatty")

    def test_currency_is_lowercased(self):
        assert AppConfig(stripe_currency="EUR").stripe_currency == "eur"

    def test_stripe_and_valkey_configs(self):
        config = AppConfig(stripe_secret_key="sk_test_123", stripe_timeout_seconds=4,
                           valkey_host="cache.internal", valkey_port=6380,
                           valkey_outage_cooldown=2.5)

        stripe_config = config.stripe_config()
        assert stripe_config.secret_key == "sk_test_123"
        assert stripe_config.timeout_seconds == 4
        assert "sk_test_123" not in str(stripe_config)

        valkey_config = config.valkey_config()
        assert valkey_config.host == "cache.internal"
        assert valkey_config.port == 6380
        assert valkey_config.socket_connect_timeout == 1.0
        assert valkey_config.outage_cooldown == 2.5


class TestLoadConfig:

    def test_load_from_environment(self, tmp_path):
        env = {
            "DATABASE_URL": "sqlite:///:memory:",
            "STRIPE_SECRET_KEY": "sk_test_abc",
            "STRIPE_WEBHOOK_SECRET": "whsec_abc",
            "VALKEY_ENABLED": "true",
            "SWEEP_LOOKAHEAD_DAYS": "5",
            "PENDING_HOLD_MINUTES": "10",
            "LOG_LEVEL": "warning",
        }
        with patch.dict(os.environ, env):
            config = load_config(str(tmp_path / "missing.env"))

        assert config.database_url == "sqlite:///:memory:"
        assert config.stripe_webhook_secret == "whsec_abc"
        assert config.valkey_enabled is True
        assert config.sweep_lookahead_days == 5
        assert config.pending_hold_minutes == 10
        assert config.log_level == "WARNING"

    def test_invalid_values_raise_value_error(self, tmp_path):
        with patch.dict(os.environ, {"SWEEP_LOOKAHEAD_DAYS": "0"}):
            with pytest.raises(ValueError, match="Configuration validation failed"):
                load_config(str(tmp_path / "missing.env"))

    def test_env_file_is_read(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ADMIN_BOOKINGS_LIMIT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("ADMIN_BOOKINGS_LIMIT=20\n")

        try:
            config = load_config(str(env_file))
        finally:
            os.environ.pop("ADMIN_BOOKINGS_LIMIT", None)

        assert config.admin_bookings_limit == 20


def test_setup_logging_sets_root_level():
    root = logging.getLogger()
    previous_level, previous_handlers = root.level, list(root.handlers)
    root.handlers = []
    try:
        setup_logging("WARNING")
        assert root.level == logging.WARNING
    finally:
        root.handlers = previous_handlers
        root.setLevel(previous_level)
