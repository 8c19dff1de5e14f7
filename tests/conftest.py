"""Shared fixtures."""

import pytest

ENV_VARS = (
    "ONEWALLET_BASE_URL",
    "ONEWALLET_ACCESS_ID",
    "ONEWALLET_SECRET_KEY",
    "ONEWALLET_TIMEOUT",
    "ONEWALLET_BACKOFF_INITIAL_DELAY",
    "ONEWALLET_SUCCESS_STATUSES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's environment out of configuration defaults."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
