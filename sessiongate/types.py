"""Type definitions for sessiongate.

Shared value types passed between the store, the operations and
the route guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


PASSWORD_PROVIDER = "password"


@dataclass(frozen=True)
class Principal:
    """An authenticated user identity returned by the identity provider.

    Attributes
    ----------
    uid : str
        Unique identifier assigned by the provider.
    email : str
        Email address of the user.
    display_name : str or None
        Optional human-readable name.
    provider_id : str
        How the user signed in ("password" or a federated provider id).
    """

    uid: str
    email: str
    display_name: str | None = None
    provider_id: str = PASSWORD_PROVIDER


@dataclass(frozen=True)
class Session:
    """Snapshot of the process-wide authentication status.

    Attributes
    ----------
    authenticated : bool
        Whether a principal is signed in.
    principal : Principal or None
        The signed-in principal; always set when ``authenticated``.
    pending : bool
        Whether a login operation is in flight.
    """

    authenticated: bool = False
    principal: Principal | None = None
    pending: bool = False

    def __post_init__(self) -> None:
        if self.authenticated and self.principal is None:
            raise ValueError("An authenticated session requires a principal")


class FederatedLoginState(str, Enum):
    """States of the federated login state machine."""

    IDLE = "idle"
    ATTEMPT_INTERACTIVE = "attempt_interactive"
    SUCCESS = "success"
    BLOCKED = "blocked"
    SCHEDULE_REDIRECT = "schedule_redirect"
    ATTEMPT_REDIRECT = "attempt_redirect"
    OTHER_FAILURE = "other_failure"
