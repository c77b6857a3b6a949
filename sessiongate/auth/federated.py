"""Federated login state machine.

Provides FederatedLoginFlow, which signs in through a third-party
identity provider. An interactive surface is tried first; if the
runtime blocks it, a single redirect sign-in is scheduled after a
fixed delay. The redirect unloads the page, so its outcome is picked
up on the next start by :meth:`FederatedLoginFlow.complete_redirect`
rather than returned to the caller.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import inspect
import logging

from typing import TYPE_CHECKING

from ..exceptions import InteractiveSurfaceBlocked
from ..types import FederatedLoginState


if TYPE_CHECKING:
    from collections.abc import Callable

    from ..state.store import SessionStore
    from ..types import Principal
    from .providers import IdentityProvider

    PopupBlockedCallback = Callable[[InteractiveSurfaceBlocked], object]


logger = logging.getLogger("sessiongate.auth")


class FederatedLoginFlow:
    """Orchestrates interactive federated sign-in with redirect fallback.

    States::

        IDLE -> ATTEMPT_INTERACTIVE -> SUCCESS | BLOCKED | OTHER_FAILURE
        BLOCKED -> SCHEDULE_REDIRECT -> ATTEMPT_REDIRECT -> SUCCESS | OTHER_FAILURE
        SCHEDULE_REDIRECT -> IDLE  (signed in during the delay)

    Parameters
    ----------
    provider : IdentityProvider
        The identity provider to call.
    store : SessionStore
        Store updated on success.
    fallback_delay : float
        Seconds between a blocked interactive attempt and the redirect
        fallback (default ``1.0``).
    on_popup_blocked : callable, optional
        Notice hook invoked with the blocking error when the
        popup-blocked signal is raised. May return an awaitable.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        store: SessionStore,
        fallback_delay: float = 1.0,
        on_popup_blocked: PopupBlockedCallback | None = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.fallback_delay = fallback_delay
        self.on_popup_blocked = on_popup_blocked

        self._state = FederatedLoginState.IDLE
        self._popup_blocked = False
        self._fallback_task: asyncio.Task[None] | None = None
        self._notice_tasks: set[asyncio.Future[object]] = set()

    @property
    def state(self) -> FederatedLoginState:
        """Current state of the flow."""
        return self._state

    @property
    def popup_blocked(self) -> bool:
        """Whether the last interactive attempt was blocked."""
        return self._popup_blocked

    @property
    def fallback_task(self) -> asyncio.Task[None] | None:
        """The redirect fallback of the latest blocked attempt, if any."""
        return self._fallback_task

    async def run(self, use_redirect: bool = False) -> Principal | None:
        """Sign in through the federated provider.

        Parameters
        ----------
        use_redirect : bool
            Skip the interactive attempt and redirect straight away.

        Returns
        -------
        Principal or None
            The principal on interactive success; ``None`` when the
            redirect path was taken (now or as a scheduled fallback).

        Raises
        ------
        OperationInProgress
            If another login operation is pending.
        AuthenticationError
            Any provider error other than a blocked surface.
        """
        if use_redirect:
            await self._attempt_redirect()
            return None

        with self.store.acquire("federated_login") as writer:
            self._cancel_fallback()
            self._popup_blocked = False
            self._state = FederatedLoginState.ATTEMPT_INTERACTIVE
            try:
                principal = await self.provider.interactive_federated_login()
            except InteractiveSurfaceBlocked as exc:
                blocked = exc
            except Exception as exc:
                self._state = FederatedLoginState.OTHER_FAILURE
                logger.warning("Federated sign-in failed: %s", exc)
                raise
            else:
                writer.commit(principal)
                self._state = FederatedLoginState.SUCCESS
                logger.info("Federated sign-in succeeded for %s", principal.email)
                return principal

        self._handle_blocked(blocked)
        return None

    def _handle_blocked(self, exc: InteractiveSurfaceBlocked) -> None:
        self._state = FederatedLoginState.BLOCKED
        self._popup_blocked = True
        logger.warning("Interactive sign-in blocked: %s", exc)

        # The fallback must not depend on the notice being shown
        if self.on_popup_blocked is not None:
            try:
                result = self.on_popup_blocked(exc)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._notice_tasks.add(task)
                    task.add_done_callback(self._on_notice_done)
            except Exception:
                logger.exception("Popup-blocked notice failed")

        self._state = FederatedLoginState.SCHEDULE_REDIRECT
        self._fallback_task = asyncio.create_task(
            self._redirect_after_delay(), name="sessiongate-redirect-fallback"
        )
        logger.info("Redirect sign-in scheduled in %.2fs", self.fallback_delay)

    def _on_notice_done(self, task: asyncio.Future[object]) -> None:
        self._notice_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.exception("Popup-blocked notice failed", exc_info=exc)

    def _cancel_fallback(self) -> None:
        """Cancel a fallback left over from an earlier blocked attempt."""
        if self._fallback_task is not None and not self._fallback_task.done():
            self._fallback_task.cancel()
            logger.debug("Pending redirect fallback cancelled by a new attempt")
        self._fallback_task = None

    async def _redirect_after_delay(self) -> None:
        """Fire-and-forget redirect fallback; failures are only logged."""
        await asyncio.sleep(self.fallback_delay)

        if self.store.is_authenticated:
            self._state = FederatedLoginState.IDLE
            logger.info("Session authenticated during fallback delay; redirect skipped")
            return

        try:
            await self.run(use_redirect=True)
        except Exception:
            logger.exception("Redirect sign-in fallback failed")

    async def _attempt_redirect(self) -> None:
        with self.store.acquire("federated_redirect"):
            self._state = FederatedLoginState.ATTEMPT_REDIRECT
            try:
                await self.provider.redirect_federated_login()
            except Exception as exc:
                self._state = FederatedLoginState.OTHER_FAILURE
                logger.warning("Redirect sign-in failed: %s", exc)
                raise
        logger.info("Redirect sign-in started; awaiting page reload")

    async def complete_redirect(self) -> Principal | None:
        """Pick up the result of a redirect sign-in after reload.

        Returns
        -------
        Principal or None
            The principal committed to the store, or ``None`` if no
            redirect sign-in was waiting.
        """
        with self.store.acquire("redirect_result") as writer:
            try:
                principal = await self.provider.get_redirect_result()
            except Exception as exc:
                self._state = FederatedLoginState.OTHER_FAILURE
                logger.warning("Redirect sign-in result failed: %s", exc)
                raise
            if principal is None:
                return None
            writer.commit(principal)

        self._state = FederatedLoginState.SUCCESS
        logger.info("Redirect sign-in completed for %s", principal.email)
        return principal
