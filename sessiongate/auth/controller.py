"""Authentication session controller.

Provides AuthController, the single object the rest of the
application talks to: it exposes the authenticated signal and the
login, registration, federated login and logout operations, all of
which coordinate only through the shared SessionStore.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

from ..config import get_settings
from ..log import configure_logging
from ..state.store import get_session_store
from .credentials import CredentialAuthenticator
from .federated import FederatedLoginFlow
from .providers import FirebaseIdentityProvider


if TYPE_CHECKING:
    from ..config import SessionGateSettings
    from ..state.store import SessionStore
    from ..types import FederatedLoginState, Principal, Session
    from .federated import PopupBlockedCallback
    from .providers import FederatedSurface, IdentityProvider


logger = logging.getLogger("sessiongate.auth")


class AuthController:
    """Facade over the session store and the three login operations.

    Parameters
    ----------
    provider : IdentityProvider
        The identity provider.
    store : SessionStore, optional
        Session store; defaults to the process-wide instance.
    fallback_delay : float
        Delay before the redirect fallback (default ``1.0``).
    on_popup_blocked : callable, optional
        Notice hook for the popup-blocked signal.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        store: SessionStore | None = None,
        fallback_delay: float = 1.0,
        on_popup_blocked: PopupBlockedCallback | None = None,
    ) -> None:
        self.provider = provider
        self.store = store if store is not None else get_session_store()
        self.credentials = CredentialAuthenticator(provider, self.store)
        self.federated = FederatedLoginFlow(
            provider,
            self.store,
            fallback_delay=fallback_delay,
            on_popup_blocked=on_popup_blocked,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SessionGateSettings | None = None,
        surface: FederatedSurface | None = None,
        store: SessionStore | None = None,
        on_popup_blocked: PopupBlockedCallback | None = None,
    ) -> AuthController:
        """Build a controller backed by the identity toolkit provider.

        Also applies the logging section of the settings.
        """
        settings = settings or get_settings()
        configure_logging(settings.log)
        provider = FirebaseIdentityProvider.from_settings(settings.firebase, surface=surface)
        return cls(
            provider,
            store=store,
            fallback_delay=settings.auth.fallback_delay,
            on_popup_blocked=on_popup_blocked,
        )

    @property
    def session(self) -> Session:
        return self.store.session

    @property
    def is_authenticated(self) -> bool:
        """The signal that gates protected areas."""
        return self.store.is_authenticated

    @property
    def current_principal(self) -> Principal | None:
        return self.store.principal

    @property
    def popup_blocked(self) -> bool:
        """Whether the last federated attempt hit a blocked popup."""
        return self.federated.popup_blocked

    @property
    def federated_state(self) -> FederatedLoginState:
        return self.federated.state

    async def initialize(self) -> Principal | None:
        """Process-start hook: complete a redirect sign-in left pending."""
        return await self.federated.complete_redirect()

    async def login(self, email: str, password: str) -> Principal:
        """Sign in with email and password. See CredentialAuthenticator.login."""
        return await self.credentials.login(email, password)

    async def register(self, email: str, password: str, display_name: str) -> Principal:
        """Create an account and sign it in. See CredentialAuthenticator.register."""
        return await self.credentials.register(email, password, display_name)

    async def login_with_federated_provider(self, use_redirect: bool = False) -> Principal | None:
        """Sign in through the federated provider. See FederatedLoginFlow.run."""
        return await self.federated.run(use_redirect=use_redirect)

    async def logout(self) -> None:
        """Reset the session and sign out at the provider.

        A provider sign-out failure is logged; the local session is
        already reset by then.

        Raises
        ------
        OperationInProgress
            If a login operation is still pending.
        """
        principal = self.store.principal
        self.store.reset()
        try:
            await self.provider.sign_out()
        except Exception:
            logger.exception("Provider sign-out failed")
        if principal is not None:
            logger.info("Signed out %s", principal.email)
