"""Pytest configuration and fixtures."""

import pytest
import structlog

from asset_ledger.utils import config

from .fakes import CONTRACT, OWNER_A, OWNER_B, OWNER_C, FakeLedger


@pytest.fixture(autouse=True)
def set_test_environment(monkeypatch, tmp_path):
    """Set a test environment and re-read settings for every test."""
    monkeypatch.setenv("LEDGER_NETWORK", "localhost")
    monkeypatch.setenv("LEDGER_CONTRACT_ADDRESS", CONTRACT)
    monkeypatch.delenv("LEDGER_RPC_URL", raising=False)
    monkeypatch.setenv("CACHE_DIRECTORY", str(tmp_path / "cache"))
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("DEVELOPMENT", "false")
    monkeypatch.setenv("RETRY_ATTEMPTS", "1")
    monkeypatch.setenv("RETRY_BACKOFF", "0")
    config.reset_settings()
    yield
    config.reset_settings()


@pytest.fixture(autouse=True)
def captured_logs():
    """Capture structlog output instead of writing to a stream."""
    structlog.reset_defaults()
    with structlog.testing.capture_logs() as logs:
        yield logs
    structlog.reset_defaults()


@pytest.fixture
def ledger() -> FakeLedger:
    """Return an empty fake ledger."""
    return FakeLedger()


@pytest.fixture
def scenario_ledger() -> FakeLedger:
    """Assets 1 and 2 registered, id 3 is the sentinel.

    Asset 1 is owned by A with B granted; asset 2 is owned by C with no events.
    """
    fake = FakeLedger()
    first = fake.register(OWNER_A, name="Rainfall Dataset", asset_type="Dataset")
    fake.grant(first, OWNER_B)
    fake.register(OWNER_C, name="Churn Model", asset_type="ML Model")
    return fake
