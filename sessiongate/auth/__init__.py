"""Authentication operations for sessiongate.

Provides the identity provider abstractions, the credential and
federated login operations, and the controller facade that ties them
to the session store.
"""

from __future__ import annotations

from .controller import AuthController
from .credentials import CredentialAuthenticator
from .federated import FederatedLoginFlow
from .providers import (
    FederatedSurface,
    FirebaseIdentityProvider,
    IdentityProvider,
    map_provider_error,
)


__all__ = [
    "AuthController",
    "CredentialAuthenticator",
    "FederatedLoginFlow",
    "FederatedSurface",
    "FirebaseIdentityProvider",
    "IdentityProvider",
    "map_provider_error",
]
