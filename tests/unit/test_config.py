"""Test configuration management."""

import pytest
from pydantic import ValidationError

from error_responses.core.config import Settings, get_settings


def test_settings_creation():
    """Test that settings can be created with defaults."""
    settings = Settings(_env_file=None)

    assert settings.request_id_header == "X-Request-ID"
    assert settings.media_type == "application/json"
    assert settings.unexpected_error_type == "UnexpectedError"
    assert settings.unexpected_error_detail == "Internal server error, please, contact administrator"
    assert settings.error_status_threshold == 400


def test_settings_from_environment(monkeypatch):
    """Test that prefixed environment variables override defaults."""
    monkeypatch.setenv("ERROR_RESPONSES_UNEXPECTED_ERROR_TYPE", "InternalError")
    monkeypatch.setenv("ERROR_RESPONSES_REQUEST_ID_HEADER", "X-Correlation-ID")
    monkeypatch.setenv("ERROR_RESPONSES_ERROR_STATUS_THRESHOLD", "500")

    settings = Settings(_env_file=None)

    assert settings.unexpected_error_type == "InternalError"
    assert settings.request_id_header == "X-Correlation-ID"
    assert settings.error_status_threshold == 500


def test_status_threshold_validated():
    with pytest.raises(ValidationError):
        Settings(error_status_threshold=700)


def test_get_settings_cached():
    """Test that get_settings returns cached instance."""
    assert get_settings() is get_settings()
