"""sessiongate exception hierarchy.

All sessiongate-specific exceptions inherit from SessionGateException,
enabling catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


class SessionGateException(Exception):
    """Base exception for all sessiongate errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize sessiongate exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (operation, provider, code, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class SessionStoreError(SessionGateException):
    """Session store mutation failed.

    Raised when a writer is used after it was closed, or when the
    store is asked to perform a transition it cannot honor.
    """


class OperationInProgress(SessionStoreError):
    """Another login operation already holds the session.

    Raised when a login, registration or federated operation is started
    while a previous one is still pending.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        holder: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize the in-progress error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        operation : str, optional
            The operation that was rejected.
        holder : str, optional
            The operation currently holding the session.
        **context : Any
            Additional context.
        """
        super().__init__(message, operation=operation, holder=holder, **context)
        self.operation = operation
        self.holder = holder


class InvalidFormInput(SessionGateException):
    """Credential form input failed validation.

    Raised before any provider call when a required field is
    missing or empty.
    """

    def __init__(self, message: str, field: str | None = None, **context: Any) -> None:
        """Initialize form input error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        field : str, optional
            The form field that failed validation.
        **context : Any
            Additional context.
        """
        super().__init__(message, field=field, **context)
        self.field = field


class AuthenticationError(SessionGateException):
    """Base exception for all identity provider failures.

    Every provider error carries a ``code`` so callers can branch on
    the failure kind without string matching on messages.
    """

    default_code = "auth/internal-error"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        code: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize authentication error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The identity provider name (e.g., "password", "google.com").
        code : str, optional
            Provider error code. Defaults to the class ``default_code``.
        **context : Any
            Additional context.
        """
        code = code or self.default_code
        super().__init__(message, provider=provider, code=code, **context)
        self.provider = provider
        self.code = code


class InvalidCredentials(AuthenticationError):
    """The provider rejected the submitted credentials."""

    default_code = "auth/invalid-credential"


class NetworkFailure(AuthenticationError):
    """The provider could not be reached."""

    default_code = "auth/network-request-failed"


class InteractiveSurfaceBlocked(AuthenticationError):
    """The interactive sign-in surface was blocked by the runtime.

    Typically a browser popup blocker or an embedded context that
    refuses to open new windows.
    """

    default_code = "auth/popup-blocked"


class ProviderOtherFailure(AuthenticationError):
    """Any provider failure not covered by a more specific error."""
