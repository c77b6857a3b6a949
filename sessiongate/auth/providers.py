"""Identity provider abstractions.

Defines the IdentityProvider ABC consumed by the session controller,
the FederatedSurface ABC that stands in for the runtime's popup and
redirect capabilities, and a concrete provider for the Firebase
Identity Toolkit REST API.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from ..exceptions import (
    AuthenticationError,
    InvalidCredentials,
    NetworkFailure,
    ProviderOtherFailure,
)
from ..types import PASSWORD_PROVIDER, Principal


if TYPE_CHECKING:
    from ..config import FirebaseSettings


logger = logging.getLogger("sessiongate.auth")


class IdentityProvider(ABC):
    """Abstract identity provider.

    Every method is async. Failures are reported by raising a subclass
    of :class:`~sessiongate.exceptions.AuthenticationError`.
    """

    @abstractmethod
    async def login(self, email: str, password: str) -> Principal:
        """Sign in with email and password.

        Raises
        ------
        InvalidCredentials
            If the provider rejects the pair.
        NetworkFailure
            If the provider cannot be reached.
        """

    @abstractmethod
    async def register(self, email: str, password: str, display_name: str) -> Principal:
        """Create an account and return the signed-in principal."""

    @abstractmethod
    async def interactive_federated_login(self) -> Principal:
        """Sign in through an interactive surface layered over the app.

        Raises
        ------
        InteractiveSurfaceBlocked
            If the runtime refused to open the surface.
        """

    @abstractmethod
    async def redirect_federated_login(self) -> None:
        """Start a full-page redirect sign-in.

        The result is not returned here; it is picked up by
        :meth:`get_redirect_result` after the page reloads.
        """

    async def get_redirect_result(self) -> Principal | None:
        """Return the principal of a completed redirect sign-in, if any."""
        return None

    async def sign_out(self) -> None:  # noqa: B027
        """Forget the provider-side session."""


class FederatedSurface(ABC):
    """Runtime capability used to reach a third-party identity provider.

    Hides window-management details (popups, full-page navigation)
    behind two named capabilities.
    """

    @abstractmethod
    async def interactive_sign_in(self, provider_id: str) -> str:
        """Open an interactive sign-in surface and return the IdP id token.

        Raises
        ------
        InteractiveSurfaceBlocked
            If the surface could not be opened.
        """

    @abstractmethod
    async def redirect_sign_in(self, provider_id: str) -> None:
        """Navigate the whole page to the identity provider."""

    async def consume_redirect_credential(self, provider_id: str) -> str | None:  # noqa: ARG002
        """Return the id token left by a finished redirect, once."""
        return None


# Identity toolkit error messages mapped onto the error taxonomy.
_INVALID_CREDENTIAL_CODES = frozenset(
    {
        "EMAIL_NOT_FOUND",
        "INVALID_PASSWORD",
        "INVALID_LOGIN_CREDENTIALS",
        "INVALID_EMAIL",
        "USER_DISABLED",
    }
)
_NETWORK_CODES = frozenset({"NETWORK_REQUEST_FAILED"})


def _error_code(payload: Any) -> str:
    """Extract the identity toolkit error code from a response body.

    Messages look like ``"WEAK_PASSWORD : Password should be at least 6
    characters"``; only the leading token is the code.
    """
    if not isinstance(payload, dict):
        return ""
    error = payload.get("error")
    if not isinstance(error, dict):
        return ""
    message = str(error.get("message", ""))
    return message.split(":", 1)[0].strip()


def map_provider_error(code: str, provider: str) -> AuthenticationError:
    """Translate an identity toolkit error code into an exception.

    Parameters
    ----------
    code : str
        The upper-case error code (e.g. ``"EMAIL_NOT_FOUND"``).
    provider : str
        Provider id for error context.

    Returns
    -------
    AuthenticationError
        The matching taxonomy error (not raised).
    """
    if code in _INVALID_CREDENTIAL_CODES:
        return InvalidCredentials("Invalid email or password", provider=provider)
    if code in _NETWORK_CODES:
        return NetworkFailure("Identity provider unreachable", provider=provider)
    slug = code.lower().replace("_", "-") if code else "internal-error"
    return ProviderOtherFailure(
        f"Identity provider error: {code or 'unknown'}",
        provider=provider,
        code=f"auth/{slug}",
    )


class FirebaseIdentityProvider(IdentityProvider):
    """Identity provider backed by the Firebase Identity Toolkit REST API.

    Parameters
    ----------
    api_key : str
        Web API key of the identity project.
    surface : FederatedSurface, optional
        Runtime capability for federated sign-in. Without one, the
        federated operations fail with ``ProviderOtherFailure``.
    base_url : str
        Identity toolkit endpoint.
    federated_provider_id : str
        Provider used for federated sign-in (default ``"google.com"``).
    request_uri : str
        Continue URI reported to ``signInWithIdp``.
    timeout : float
        HTTP timeout in seconds.
    http_client : httpx.AsyncClient, optional
        Client to use instead of a lazily created one. Not closed by
        :meth:`close`.
    """

    def __init__(
        self,
        api_key: str,
        surface: FederatedSurface | None = None,
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
        federated_provider_id: str = "google.com",
        request_uri: str = "http://localhost",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the provider."""
        self.api_key = api_key
        self.surface = surface
        self.base_url = base_url.rstrip("/")
        self.federated_provider_id = federated_provider_id
        self.request_uri = request_uri
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_settings(
        cls,
        settings: FirebaseSettings,
        surface: FederatedSurface | None = None,
    ) -> FirebaseIdentityProvider:
        """Build a provider from the ``firebase`` configuration section."""
        return cls(
            api_key=settings.api_key,
            surface=surface,
            base_url=settings.base_url,
            federated_provider_id=settings.federated_provider_id,
            request_uri=settings.request_uri,
            timeout=settings.timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client and self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def _call(self, method: str, body: dict[str, Any], provider: str) -> dict[str, Any]:
        """POST to ``accounts:<method>`` and return the decoded body."""
        url = f"{self.base_url}/accounts:{method}"
        client = await self._get_client()
        try:
            resp = await client.post(url, params={"key": self.api_key}, json=body)
        except httpx.TransportError as exc:
            logger.warning("Identity toolkit %s unreachable: %s", method, exc)
            msg = f"Identity provider unreachable: {exc}"
            raise NetworkFailure(msg, provider=provider) from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            msg = f"Malformed response from identity provider (HTTP {resp.status_code})"
            raise ProviderOtherFailure(msg, provider=provider) from exc

        if resp.status_code >= 400:
            code = _error_code(payload)
            logger.debug("Identity toolkit %s failed: HTTP %s %s", method, resp.status_code, code)
            raise map_provider_error(code, provider)

        if not isinstance(payload, dict) or not payload.get("localId"):
            msg = "Identity provider response has no user id"
            raise ProviderOtherFailure(msg, provider=provider)
        return payload

    @staticmethod
    def _principal(payload: dict[str, Any], provider_id: str) -> Principal:
        return Principal(
            uid=str(payload["localId"]),
            email=str(payload.get("email", "")),
            display_name=payload.get("displayName") or None,
            provider_id=provider_id,
        )

    async def login(self, email: str, password: str) -> Principal:
        """Sign in via ``accounts:signInWithPassword``."""
        payload = await self._call(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
            PASSWORD_PROVIDER,
        )
        return self._principal(payload, PASSWORD_PROVIDER)

    async def register(self, email: str, password: str, display_name: str) -> Principal:
        """Create the account, then set its display name."""
        created = await self._call(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
            PASSWORD_PROVIDER,
        )
        updated = await self._call(
            "update",
            {
                "idToken": created.get("idToken", ""),
                "displayName": display_name,
                "returnSecureToken": True,
            },
            PASSWORD_PROVIDER,
        )
        return Principal(
            uid=str(created["localId"]),
            email=str(created.get("email") or updated.get("email") or email),
            display_name=updated.get("displayName") or display_name,
            provider_id=PASSWORD_PROVIDER,
        )

    def _require_surface(self) -> FederatedSurface:
        if self.surface is None:
            msg = "No federated sign-in surface configured"
            raise ProviderOtherFailure(msg, provider=self.federated_provider_id)
        return self.surface

    async def _sign_in_with_id_token(self, id_token: str) -> Principal:
        post_body = urlencode({"id_token": id_token, "providerId": self.federated_provider_id})
        payload = await self._call(
            "signInWithIdp",
            {
                "postBody": post_body,
                "requestUri": self.request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
            self.federated_provider_id,
        )
        return self._principal(payload, self.federated_provider_id)

    async def interactive_federated_login(self) -> Principal:
        """Open the interactive surface and exchange its id token."""
        surface = self._require_surface()
        id_token = await surface.interactive_sign_in(self.federated_provider_id)
        return await self._sign_in_with_id_token(id_token)

    async def redirect_federated_login(self) -> None:
        """Hand the page over to the identity provider."""
        surface = self._require_surface()
        await surface.redirect_sign_in(self.federated_provider_id)

    async def get_redirect_result(self) -> Principal | None:
        """Exchange the credential left by a finished redirect, if any."""
        if self.surface is None:
            return None
        id_token = await self.surface.consume_redirect_credential(self.federated_provider_id)
        if not id_token:
            return None
        return await self._sign_in_with_id_token(id_token)

    async def sign_out(self) -> None:
        """Drop the local client; the REST API keeps no server-side session."""
        await self.close()
