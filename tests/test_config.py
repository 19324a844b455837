import logging

import pytest
from pydantic import ValidationError

from epc.core.config import Settings, get_settings
from epc.core.logging import setup_logging


def test_defaults_match_flush_triggers():
    settings = Settings()

    assert settings.max_batch_size == 10
    assert settings.max_wait_ms == 2000
    assert settings.max_wait_seconds == 2.0
    assert settings.sending_enabled is True
    assert settings.session_timeout_seconds is None
    assert settings.session_store_url is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("EPC_MAX_BATCH_SIZE", "25")
    monkeypatch.setenv("EPC_MAX_WAIT_MS", "500")
    monkeypatch.setenv("EPC_API_KEYS", "alpha, beta,,")

    settings = get_settings()

    assert settings.max_batch_size == 25
    assert settings.max_wait_seconds == 0.5
    assert settings.api_keys == ["alpha", "beta"]
    assert get_settings() is settings


def test_invalid_thresholds_rejected():
    with pytest.raises(ValidationError):
        Settings(max_batch_size=0)
    with pytest.raises(ValidationError):
        Settings(max_wait_ms=-1)


def test_setup_logging_levels():
    root = logging.getLogger()
    previous = (root.level, list(root.handlers))
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.setLevel(previous[0])
        root.handlers[:] = previous[1]
