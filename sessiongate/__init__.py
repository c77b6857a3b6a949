"""sessiongate - authentication session controller.

Email/password and federated sign-in with a popup-to-redirect
fallback, exposing one ``is_authenticated`` signal to the app.
"""

from __future__ import annotations

from .auth import (
    AuthController,
    FederatedSurface,
    FirebaseIdentityProvider,
    IdentityProvider,
)
from .config import SessionGateSettings, get_settings
from .exceptions import (
    AuthenticationError,
    InteractiveSurfaceBlocked,
    InvalidCredentials,
    InvalidFormInput,
    NetworkFailure,
    OperationInProgress,
    ProviderOtherFailure,
    SessionGateException,
    SessionStoreError,
)
from .guard import RouteGuard
from .state import SessionStore, get_session_store
from .types import FederatedLoginState, Principal, Session


__version__ = "0.1.0"

__all__ = [
    "AuthController",
    "AuthenticationError",
    "FederatedLoginState",
    "FederatedSurface",
    "FirebaseIdentityProvider",
    "IdentityProvider",
    "InteractiveSurfaceBlocked",
    "InvalidCredentials",
    "InvalidFormInput",
    "NetworkFailure",
    "OperationInProgress",
    "Principal",
    "ProviderOtherFailure",
    "RouteGuard",
    "Session",
    "SessionGateException",
    "SessionGateSettings",
    "SessionStore",
    "SessionStoreError",
    "get_session_store",
    "get_settings",
]
