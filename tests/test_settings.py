"""Tests for config/settings.py and logging setup."""

import logging
from unittest.mock import patch

import pydantic
import pytest
import structlog
from stratum.config.settings import Settings, get_settings
from stratum.logging import configure_logging, run_context


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        """Defaults run against the memory provider sequentially."""
        monkeypatch.delenv("STRATUM_DEFAULT_PROVIDER", raising=False)
        monkeypatch.delenv("STRATUM_MAX_WORKERS", raising=False)
        settings = Settings(_env_file=None)

        assert settings.default_provider == "memory"
        assert settings.max_workers == 1
        assert settings.management_url == "https://management.azure.com"
        assert settings.lro_poll_interval == 5.0

    def test_env_prefix(self, monkeypatch):
        """STRATUM_ variables override defaults."""
        monkeypatch.setenv("STRATUM_MAX_WORKERS", "4")
        monkeypatch.setenv("STRATUM_SUBSCRIPTION_ID", "sub-1")
        monkeypatch.setenv("STRATUM_API_VERSIONS", '{"resource_group": "2021-04-01"}')

        settings = Settings(_env_file=None)

        assert settings.max_workers == 4
        assert settings.subscription_id == "sub-1"
        assert settings.api_versions == {"resource_group": "2021-04-01"}

    def test_rejects_zero_workers(self):
        """max_workers must be positive."""
        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None, max_workers=0)

    def test_get_settings_cached(self):
        """get_settings() returns one shared instance."""
        assert get_settings() is get_settings()


class TestLogging:
    """Tests for logging configuration."""

    def test_string_level(self):
        """Level names are accepted."""
        with patch("stratum.logging.logging.basicConfig") as basic_config, patch(
            "stratum.logging.structlog.configure"
        ) as configure:
            configure_logging("debug", json=False)

        basic_config.assert_called_once_with(level=logging.DEBUG, format="%(message)s")
        processors = configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_renderer_by_default(self):
        """JSON rendering is the default."""
        with patch("stratum.logging.logging.basicConfig"), patch(
            "stratum.logging.structlog.configure"
        ) as configure:
            configure_logging()

        processors = configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_run_context(self):
        """run_context binds contextvars only inside the block."""
        with run_context(plan="demo"):
            assert structlog.contextvars.get_contextvars()["plan"] == "demo"
        assert "plan" not in structlog.contextvars.get_contextvars()
