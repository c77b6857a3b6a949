"""Tests for the federated login state machine."""

from __future__ import annotations

import asyncio

from unittest.mock import AsyncMock, MagicMock

import pytest

from sessiongate.auth.federated import FederatedLoginFlow
from sessiongate.exceptions import (
    InteractiveSurfaceBlocked,
    NetworkFailure,
    OperationInProgress,
    ProviderOtherFailure,
)
from sessiongate.state import SessionStore
from sessiongate.types import FederatedLoginState, Principal, Session


def _make_flow(
    provider: MagicMock, store: SessionStore, delay: float, **kwargs
) -> FederatedLoginFlow:
    return FederatedLoginFlow(provider, store, fallback_delay=delay, **kwargs)


class TestInteractiveSignIn:
    """Interactive attempt outcomes."""

    def test_initial_state(self, mock_provider: MagicMock, store: SessionStore) -> None:
        """Flow starts idle with no popup signal and no fallback."""
        flow = _make_flow(mock_provider, store, 1.0)
        assert flow.state == FederatedLoginState.IDLE
        assert flow.popup_blocked is False
        assert flow.fallback_task is None

    @pytest.mark.asyncio
    async def test_success(
        self,
        mock_provider: MagicMock,
        store: SessionStore,
        google_user: Principal,
        fast_delay: float,
    ) -> None:
        """A returned principal authenticates the session; no redirect."""
        flow = _make_flow(mock_provider, store, fast_delay)

        principal = await flow.run()

        assert principal == google_user
        assert flow.state == FederatedLoginState.SUCCESS
        assert store.session == Session(authenticated=True, principal=google_user, pending=False)
        assert flow.fallback_task is None
        mock_provider.redirect_federated_login.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error_cls", [ProviderOtherFailure, NetworkFailure])
    async def test_other_failure_never_redirects(
        self,
        mock_provider: MagicMock,
        store: SessionStore,
        fast_delay: float,
        error_cls: type[Exception],
    ) -> None:
        """Non-blocking errors surface and never schedule a redirect."""
        mock_provider.interactive_federated_login.side_effect = error_cls("closed by user")
        flow = _make_flow(mock_provider, store, fast_delay)

        with pytest.raises(error_cls):
            await flow.run()

        await asyncio.sleep(fast_delay * 3)
        assert flow.state == FederatedLoginState.OTHER_FAILURE
        assert flow.fallback_task is None
        assert flow.popup_blocked is False
        assert store.session == Session()
        mock_provider.redirect_federated_login.assert_not_called()


class TestBlockedFallback:
    """Blocked popup degrading to redirect."""

    @pytest.mark.asyncio
    async def test_blocked_schedules_single_redirect(
        self, mock_provider: MagicMock, store: SessionStore, fast_delay: float
    ) -> None:
        """Blocked popup raises the signal and redirects once after the delay."""
        loop = asyncio.get_running_loop()
        called_at: list[float] = []

        async def record_redirect() -> None:
            called_at.append(loop.time())

        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked(
            "popup blocked"
        )
        mock_provider.redirect_federated_login = AsyncMock(side_effect=record_redirect)
        flow = _make_flow(mock_provider, store, fast_delay)

        started = loop.time()
        result = await flow.run()

        assert result is None
        assert flow.popup_blocked is True
        assert flow.state == FederatedLoginState.SCHEDULE_REDIRECT
        assert store.pending is False
        mock_provider.redirect_federated_login.assert_not_called()

        assert flow.fallback_task is not None
        await flow.fallback_task

        assert mock_provider.redirect_federated_login.await_count == 1
        assert called_at[0] - started >= fast_delay
        assert called_at[0] - started < fast_delay + 1.0
        assert flow.state == FederatedLoginState.ATTEMPT_REDIRECT
        assert store.session == Session()

    @pytest.mark.asyncio
    async def test_notice_callback_invoked(
        self, mock_provider: MagicMock, store: SessionStore, fast_delay: float
    ) -> None:
        """The popup-blocked notice receives the blocking error."""
        blocked = InteractiveSurfaceBlocked("popup blocked")
        mock_provider.interactive_federated_login.side_effect = blocked
        notice = MagicMock()
        flow = _make_flow(mock_provider, store, fast_delay, on_popup_blocked=notice)

        await flow.run()
        await flow.fallback_task

        notice.assert_called_once_with(blocked)

    @pytest.mark.asyncio
    async def test_async_notice_callback(
        self, mock_provider: MagicMock, store: SessionStore, fast_delay: float
    ) -> None:
        """An async notice is scheduled on the loop."""
        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked("x")
        notice = AsyncMock()
        flow = _make_flow(mock_provider, store, fast_delay, on_popup_blocked=notice)

        await flow.run()
        await flow.fallback_task

        notice.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_redirect_happens_when_notice_fails(
        self, mock_provider: MagicMock, store: SessionStore, fast_delay: float
    ) -> None:
        """Recovery does not depend on the notice being shown."""
        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked("x")
        notice = MagicMock(side_effect=RuntimeError("toast failed"))
        flow = _make_flow(mock_provider, store, fast_delay, on_popup_blocked=notice)

        await flow.run()
        await flow.fallback_task

        assert mock_provider.redirect_federated_login.await_count == 1

    @pytest.mark.asyncio
    async def test_async_notice_failure_logged(
        self,
        mock_provider: MagicMock,
        store: SessionStore,
        fast_delay: float,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failing async notice is logged and the redirect still fires."""

        async def notice(exc: InteractiveSurfaceBlocked) -> None:
            raise RuntimeError("toast failed")

        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked("x")
        flow = _make_flow(mock_provider, store, fast_delay, on_popup_blocked=notice)

        await flow.run()
        await flow.fallback_task

        assert "Popup-blocked notice failed" in caplog.text
        assert "toast failed" in caplog.text
        assert mock_provider.redirect_federated_login.await_count == 1

    @pytest.mark.asyncio
    async def test_new_attempt_cancels_pending_fallback(
        self, mock_provider: MagicMock, store: SessionStore, fast_delay: float
    ) -> None:
        """Blocking twice within the delay leaves a single redirect."""
        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked("x")
        flow = _make_flow(mock_provider, store, fast_delay)

        await flow.run()
        first = flow.fallback_task
        await flow.run()
        second = flow.fallback_task

        assert second is not first
        with pytest.raises(asyncio.CancelledError):
            await first
        await second

        assert first.cancelled()
        assert mock_provider.redirect_federated_login.await_count == 1
        assert flow.state == FederatedLoginState.ATTEMPT_REDIRECT

    @pytest.mark.asyncio
    async def test_redirect_failure_only_logged(
        self,
        mock_provider: MagicMock,
        store: SessionStore,
        fast_delay: float,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failing fallback is logged, not retried, and not raised."""
        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked("x")
        mock_provider.redirect_federated_login.side_effect = ProviderOtherFailure("nav failed")
        flow = _make_flow(mock_provider, store, fast_delay)

        await flow.run()
        await flow.fallback_task

        assert flow.fallback_task.exception() is None
        assert mock_provider.redirect_federated_login.await_count == 1
        assert flow.state == FederatedLoginState.OTHER_FAILURE
        assert store.session == Session()
        assert "Redirect sign-in fallback failed" in caplog.text

    @pytest.mark.asyncio
    async def test_signal_cleared_on_new_attempt(
        self,
        mock_provider: MagicMock,
        store: SessionStore,
        google_user: Principal,
        fast_delay: float,
    ) -> None:
        """A new attempt clears the previous popup-blocked signal."""
        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked("x")
        flow = _make_flow(mock_provider, store, fast_delay)
        await flow.run()
        await flow.fallback_task
        assert flow.popup_blocked is True

        mock_provider.interactive_federated_login.side_effect = None
        mock_provider.interactive_federated_login.return_value = google_user
        await flow.run()

        assert flow.popup_blocked is False
        assert flow.state == FederatedLoginState.SUCCESS

    @pytest.mark.asyncio
    async def test_redirect_skipped_if_authenticated_meanwhile(
        self,
        mock_provider: MagicMock,
        store: SessionStore,
        alice: Principal,
        fast_delay: float,
    ) -> None:
        """No redirect once signed in during the delay; the flow returns to idle."""
        mock_provider.interactive_federated_login.side_effect = InteractiveSurfaceBlocked("x")
        flow = _make_flow(mock_provider, store, fast_delay)

        await flow.run()
        with store.acquire("login") as writer:
            writer.commit(alice)
        await flow.fallback_task

        mock_provider.redirect_federated_login.assert_not_called()
        assert flow.state == FederatedLoginState.IDLE


class TestForcedRedirect:
    """run(use_redirect=True) and redirect completion."""

    @pytest.mark.asyncio
    async def test_forced_redirect_skips_interactive(
        self, mock_provider: MagicMock, store: SessionStore
    ) -> None:
        """use_redirect bypasses the interactive surface."""
        flow = _make_flow(mock_provider, store, 1.0)

        assert await flow.run(use_redirect=True) is None

        mock_provider.interactive_federated_login.assert_not_called()
        mock_provider.redirect_federated_login.assert_awaited_once()
        assert flow.state == FederatedLoginState.ATTEMPT_REDIRECT
        assert store.pending is False

    @pytest.mark.asyncio
    async def test_forced_redirect_failure_raises(
        self, mock_provider: MagicMock, store: SessionStore
    ) -> None:
        """A direct caller receives the redirect error."""
        mock_provider.redirect_federated_login.side_effect = NetworkFailure("offline")
        flow = _make_flow(mock_provider, store, 1.0)

        with pytest.raises(NetworkFailure):
            await flow.run(use_redirect=True)
        assert flow.state == FederatedLoginState.OTHER_FAILURE
        assert store.pending is False

    @pytest.mark.asyncio
    async def test_complete_redirect_commits(
        self, mock_provider: MagicMock, store: SessionStore, google_user: Principal
    ) -> None:
        """A waiting redirect result authenticates the session."""
        mock_provider.get_redirect_result.return_value = google_user
        flow = _make_flow(mock_provider, store, 1.0)

        assert await flow.complete_redirect() == google_user
        assert store.principal == google_user
        assert flow.state == FederatedLoginState.SUCCESS

    @pytest.mark.asyncio
    async def test_complete_redirect_nothing_waiting(
        self, mock_provider: MagicMock, store: SessionStore
    ) -> None:
        """No redirect result leaves the session untouched."""
        flow = _make_flow(mock_provider, store, 1.0)
        assert await flow.complete_redirect() is None
        assert store.session == Session()
        assert flow.state == FederatedLoginState.IDLE


class TestFederatedConcurrency:
    """Exclusion against other login operations."""

    @pytest.mark.asyncio
    async def test_rejected_while_login_pending(
        self, mock_provider: MagicMock, store: SessionStore
    ) -> None:
        """A federated attempt cannot start while another operation is pending."""
        flow = _make_flow(mock_provider, store, 1.0)
        writer = store.acquire("login")

        with pytest.raises(OperationInProgress):
            await flow.run()

        writer.release()
        mock_provider.interactive_federated_login.assert_not_called()
