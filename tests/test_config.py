"""
Tests for runtime settings.
"""
from dataclasses import FrozenInstanceError

import pytest

from sessionorder.config import (
    DEFAULT_ADVISORY_TIMEOUT,
    Settings,
    clamp_timeout,
    validate_endpoint,
)


class TestValidateEndpoint:
    """Tests for advisory endpoint validation."""

    @pytest.mark.parametrize("url", [
        "https://advisor.example",
        "https://advisor.example/api/",
        "http://localhost:8787",
        "https://localhost",
    ])
    def test_accepted(self, url):
        assert validate_endpoint(url)

    @pytest.mark.parametrize("url", [
        "http://advisor.example",
        "ftp://advisor.example",
        "advisor.example",
        "",
        None,
        42,
    ])
    def test_rejected(self, url):
        assert not validate_endpoint(url)


class TestSettings:
    """Tests for Settings defaults and environment parsing."""

    def test_defaults(self):
        settings = Settings()
        assert not settings.advisory_enabled
        assert settings.advisory_timeout == DEFAULT_ADVISORY_TIMEOUT
        assert not settings.advisory_active

    def test_timeout_clamped(self):
        assert Settings(advisory_timeout=0.2).advisory_timeout == 1.0
        assert Settings(advisory_timeout=60).advisory_timeout == 20.0
        assert clamp_timeout(7.5) == 7.5

    def test_endpoint_trailing_slash_removed(self):
        assert Settings(advisory_endpoint="https://a.example/").advisory_endpoint == "https://a.example"

    def test_active_needs_valid_endpoint(self):
        assert Settings(advisory_enabled=True, advisory_endpoint="https://a.example").advisory_active
        assert not Settings(advisory_enabled=True, advisory_endpoint="http://a.example").advisory_active
        assert not Settings(advisory_enabled=True).advisory_active

    def test_from_env(self):
        settings = Settings.from_env({
            "SO_ADVISORY_ENABLED": "TRUE",
            "SO_ADVISORY_ENDPOINT": "https://advisor.example/",
            "SO_ADVISORY_TIMEOUT": "5",
            "SO_METHODOLOGY_PATH": "/etc/sessionorder/pack.yaml",
            "SO_LOG_LEVEL": "debug",
        })
        assert settings.advisory_enabled
        assert settings.advisory_endpoint == "https://advisor.example"
        assert settings.advisory_timeout == 5.0
        assert settings.methodology_path == "/etc/sessionorder/pack.yaml"
        assert settings.log_level == "DEBUG"
        assert settings.advisory_active

    def test_from_empty_env(self):
        assert Settings.from_env({}) == Settings()

    def test_bad_timeout_uses_default(self):
        settings = Settings.from_env({"SO_ADVISORY_TIMEOUT": "soon"})
        assert settings.advisory_timeout == DEFAULT_ADVISORY_TIMEOUT

    def test_settings_frozen(self):
        with pytest.raises(FrozenInstanceError):
            Settings().advisory_enabled = True
