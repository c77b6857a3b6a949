"""In-process session state store.

Holds the current :class:`~sessiongate.types.Session` and notifies
subscribers on every change. Mutation goes through a single entry
point, :meth:`SessionStore.acquire`, which hands out one
:class:`SessionWriter` at a time. The ``pending`` flag is that
writer's lease, so two login operations can never interleave their
writes.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from dataclasses import replace
from typing import TYPE_CHECKING

from ..exceptions import OperationInProgress, SessionStoreError
from ..types import Principal, Session


if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    SessionListener = Callable[[Session], object]


logger = logging.getLogger(__name__)


class SessionWriter:
    """Single-use write handle for one login operation.

    Obtained from :meth:`SessionStore.acquire`. Use as a context
    manager: leaving the block without :meth:`commit` releases the
    pending flag and leaves the authentication state untouched.
    """

    def __init__(self, store: SessionStore, operation: str) -> None:
        self._store = store
        self.operation = operation
        self._closed = False
        self.committed = False

    @property
    def closed(self) -> bool:
        """Whether this writer can no longer mutate the store."""
        return self._closed

    def commit(self, principal: Principal) -> Session:
        """Mark the session authenticated as ``principal`` and release it.

        Raises
        ------
        SessionStoreError
            If the writer was already committed or released.
        """
        if self._closed:
            msg = "Session writer is closed"
            raise SessionStoreError(msg, operation=self.operation)
        self._closed = True
        self.committed = True
        return self._store._apply(
            Session(authenticated=True, principal=principal, pending=False),
            self,
        )

    def release(self) -> None:
        """Clear the pending flag without changing authentication. Idempotent."""
        if self._closed:
            return
        self._closed = True
        current = self._store.session
        self._store._apply(replace(current, pending=False), self)

    def __enter__(self) -> SessionWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class SessionStore:
    """Holds the session and fans changes out to subscribers.

    All writers run on the same event loop, so the pending lease is
    the only guard needed; no lock is taken.
    """

    def __init__(self) -> None:
        """Initialize the store in the unauthenticated, idle state."""
        self._session = Session()
        self._writer: SessionWriter | None = None
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> Session:
        """The current session snapshot."""
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session.authenticated

    @property
    def principal(self) -> Principal | None:
        return self._session.principal

    @property
    def pending(self) -> bool:
        return self._session.pending

    def acquire(self, operation: str) -> SessionWriter:
        """Start an operation and return its writer.

        Parameters
        ----------
        operation : str
            Name of the operation, used in logs and errors.

        Returns
        -------
        SessionWriter
            The write handle; the session is ``pending`` until it closes.

        Raises
        ------
        OperationInProgress
            If another operation still holds the session.
        """
        if self._writer is not None:
            msg = f"Cannot start {operation}: {self._writer.operation} is still pending"
            raise OperationInProgress(msg, operation=operation, holder=self._writer.operation)

        writer = SessionWriter(self, operation)
        self._writer = writer
        logger.debug("Session acquired by %s", operation)
        self._set(replace(self._session, pending=True))
        return writer

    def reset(self) -> Session:
        """Return to the initial unauthenticated state (logout).

        Raises
        ------
        OperationInProgress
            If an operation is pending.
        """
        if self._writer is not None:
            msg = "Cannot reset session while an operation is pending"
            raise OperationInProgress(msg, operation="logout", holder=self._writer.operation)
        return self._set(Session())

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener called with every new session.

        Returns
        -------
        callable
            Function that removes the listener. Safe to call twice.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, session: Session, writer: SessionWriter) -> Session:
        if writer is not self._writer:
            msg = "Session writer no longer owns the store"
            raise SessionStoreError(msg, operation=writer.operation)
        self._writer = None
        logger.debug(
            "Session released by %s (authenticated=%s)",
            writer.operation,
            session.authenticated,
        )
        return self._set(session)

    def _set(self, session: Session) -> Session:
        self._session = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.exception("Session listener %r failed", listener)
        return session


class _StoreHolder:
    """Holder for the process-wide store instance."""

    instance: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get the process-wide session store, creating it on first use."""
    if _StoreHolder.instance is None:
        _StoreHolder.instance = SessionStore()
    return _StoreHolder.instance


def reset_session_store() -> None:
    """Drop the process-wide store. Mainly for tests."""
    _StoreHolder.instance = None
