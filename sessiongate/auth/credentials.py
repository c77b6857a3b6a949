"""Email/password login and registration operations."""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

from ..log import redact_sensitive_data
from ..models import LoginForm, RegistrationForm, parse_form


if TYPE_CHECKING:
    from ..state.store import SessionStore
    from ..types import Principal
    from .providers import IdentityProvider


logger = logging.getLogger("sessiongate.auth")


class CredentialAuthenticator:
    """Submits email/password credentials to the identity provider.

    Neither operation retries; failures are logged and re-raised to
    the caller with the session left unauthenticated and idle.

    Parameters
    ----------
    provider : IdentityProvider
        The identity provider to call.
    store : SessionStore
        Store updated on success.
    """

    def __init__(self, provider: IdentityProvider, store: SessionStore) -> None:
        self.provider = provider
        self.store = store

    async def login(self, email: str, password: str) -> Principal:
        """Sign in with an email/password pair.

        Returns
        -------
        Principal
            The signed-in principal, also committed to the store.

        Raises
        ------
        InvalidFormInput
            If either field is empty. The store is not touched.
        OperationInProgress
            If another login operation is pending.
        AuthenticationError
            Whatever the provider raised.
        """
        form = parse_form(LoginForm, email=email, password=password)
        logger.debug("Login requested: %s", redact_sensitive_data(form.model_dump()))

        with self.store.acquire("login") as writer:
            try:
                principal = await self.provider.login(form.email, form.password)
            except Exception as exc:
                logger.warning("Login failed for %s: %s", form.email, exc)
                raise
            writer.commit(principal)

        logger.info("Signed in %s (uid=%s)", principal.email, principal.uid)
        return principal

    async def register(self, email: str, password: str, display_name: str) -> Principal:
        """Create an account and sign the new principal in.

        Registration implies login; no separate login call is made.

        Raises
        ------
        InvalidFormInput
            If any field is empty.
        OperationInProgress
            If another login operation is pending.
        AuthenticationError
            Whatever the provider raised.
        """
        form = parse_form(
            RegistrationForm, email=email, password=password, display_name=display_name
        )
        logger.debug("Registration requested: %s", redact_sensitive_data(form.model_dump()))

        with self.store.acquire("register") as writer:
            try:
                principal = await self.provider.register(
                    form.email, form.password, form.display_name
                )
            except Exception as exc:
                logger.warning("Registration failed for %s: %s", form.email, exc)
                raise
            writer.commit(principal)

        logger.info("Registered and signed in %s (uid=%s)", principal.email, principal.uid)
        return principal
