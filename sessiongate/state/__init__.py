"""Session state management."""

from __future__ import annotations

from .store import SessionStore, SessionWriter, get_session_store, reset_session_store


__all__ = [
    "SessionStore",
    "SessionWriter",
    "get_session_store",
    "reset_session_store",
]
