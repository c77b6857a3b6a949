"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import os

from unittest.mock import AsyncMock, MagicMock

import pytest

from sessiongate.config import clear_settings
from sessiongate.state import SessionStore, reset_session_store
from sessiongate.types import Principal


@pytest.fixture(autouse=True)
def isolate_globals(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Give every test a fresh process-wide store and settings cache.

    Runs from an empty directory so no project TOML leaks into config.
    """
    for key in list(os.environ):
        if key.startswith("SESSIONGATE"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_session_store()
    clear_settings()
    yield
    reset_session_store()
    clear_settings()


@pytest.fixture()
def store() -> SessionStore:
    """Create a fresh session store."""
    return SessionStore()


@pytest.fixture()
def fast_delay() -> float:
    """Short fallback delay so timing tests stay fast."""
    return 0.05


@pytest.fixture()
def alice() -> Principal:
    return Principal(uid="1", email="a@x.com")


@pytest.fixture()
def bob() -> Principal:
    return Principal(uid="2", email="b@x.com", display_name="Bob")


@pytest.fixture()
def google_user() -> Principal:
    return Principal(uid="g-7", email="g@x.com", display_name="Gee", provider_id="google.com")


@pytest.fixture()
def mock_provider(alice: Principal, bob: Principal, google_user: Principal) -> MagicMock:
    """Create a mock identity provider that succeeds by default."""
    provider = MagicMock()
    provider.__class__.__name__ = "MockProvider"
    provider.login = AsyncMock(return_value=alice)
    provider.register = AsyncMock(return_value=bob)
    provider.interactive_federated_login = AsyncMock(return_value=google_user)
    provider.redirect_federated_login = AsyncMock(return_value=None)
    provider.get_redirect_result = AsyncMock(return_value=None)
    provider.sign_out = AsyncMock(return_value=None)
    return provider
