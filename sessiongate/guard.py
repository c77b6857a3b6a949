"""Route guard that reacts to the session becoming authenticated."""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import inspect
import logging

from typing import TYPE_CHECKING

from .config import get_settings


if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import SessionGateSettings
    from .state.store import SessionStore
    from .types import Session


logger = logging.getLogger(__name__)


class RouteGuard:
    """Navigates to the protected destination once per sign-in.

    Parameters
    ----------
    store : SessionStore
        Store to observe.
    navigate : callable
        ``navigate(path)``; may return an awaitable, which is scheduled
        on the running loop.
    destination : str
        Path of the protected area (default ``"/servers"``).
    logout_destination : str, optional
        Path to navigate to when a signed-in session is reset. No
        navigation on sign-out when omitted.
    """

    def __init__(
        self,
        store: SessionStore,
        navigate: Callable[[str], object],
        destination: str = "/servers",
        logout_destination: str | None = None,
    ) -> None:
        self.store = store
        self.navigate = navigate
        self.destination = destination
        self.logout_destination = logout_destination
        self._navigated = False
        self._unsubscribe: Callable[[], None] | None = None
        self._pending: set[asyncio.Future[object]] = set()

    @classmethod
    def from_settings(
        cls,
        store: SessionStore,
        navigate: Callable[[str], object],
        settings: SessionGateSettings | None = None,
    ) -> RouteGuard:
        """Build a guard that uses the ``auth`` paths from configuration."""
        settings = settings or get_settings()
        return cls(
            store,
            navigate,
            destination=settings.auth.protected_path,
            logout_destination=settings.auth.login_path,
        )

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to the store and handle the current session."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self._on_session)
        self._on_session(self.store.session)

    def stop(self) -> None:
        """Stop observing the store."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_session(self, session: Session) -> None:
        if not session.authenticated:
            was_navigated, self._navigated = self._navigated, False
            if was_navigated and self.logout_destination is not None:
                logger.debug("Session reset; navigating to %s", self.logout_destination)
                self._go(self.logout_destination)
            return
        if self._navigated:
            return

        self._navigated = True
        logger.debug("Session authenticated; navigating to %s", self.destination)
        self._go(self.destination)

    def _go(self, path: str) -> None:
        result = self.navigate(path)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_navigation_done)

    def _on_navigation_done(self, task: asyncio.Future[object]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.exception("Navigation failed", exc_info=exc)
