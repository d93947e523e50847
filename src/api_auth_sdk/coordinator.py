"""Single-flight token refresh coordination.

When several requests fail with an expired access token at once, only the
first one calls the refresh endpoint. Everyone else is queued as a waiter and
resumed with the same outcome once that refresh settles: the new access token
on success, the same ``RefreshFailedError`` on failure.

State transitions (``{state, waiters}`` only change under the coordinator's
critical section)::

    IDLE --obtain, refresh token present--> REFRESHING
    REFRESHING --backend settles / reset()--> IDLE   (waiters drained)

The store is written (success) or cleared (failure) before the waiters are
drained, so a resumed waiter never reads a stale credential.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from concurrent.futures import Future, InvalidStateError
from enum import StrEnum
from typing import TYPE_CHECKING

from .core.errors import ErrorFactory
from .errors import NoRefreshTokenError, RefreshFailedError, RequestTimeoutError
from .telemetry import get_logger

if TYPE_CHECKING:
    from .backend import AsyncAuthBackend, AuthBackend
    from .models import TokenPair
    from .store import CredentialStore


class CoordinatorState(StrEnum):
    """Refresh coordinator states."""

    IDLE = "idle"
    REFRESHING = "refreshing"


SESSION_RESET_MESSAGE = "Session reset while refreshing token"


class RefreshCoordinator:
    """Thread-safe single-flight refresh coordinator.

    The thread that finds the coordinator idle drives the refresh itself;
    threads arriving while it runs block on a ``concurrent.futures.Future``.
    """

    def __init__(
        self,
        store: CredentialStore,
        backend: AuthBackend,
        *,
        wait_timeout: float | None = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            store: Credential store holding the refresh token.
            backend: Refresh endpoint.
            wait_timeout: Default limit for waiting on someone else's refresh.
        """
        self._store = store
        self._backend = backend
        self.wait_timeout = wait_timeout

        self._lock = threading.Lock()
        self._state = CoordinatorState.IDLE
        self._waiters: list[Future[str]] = []
        self._epoch = 0
        self._logger = get_logger()

    @property
    def state(self) -> CoordinatorState:
        """Get current coordinator state."""
        with self._lock:
            return self._state

    @property
    def pending_waiters(self) -> int:
        """Number of threads blocked on the in-flight refresh."""
        with self._lock:
            return len(self._waiters)

    def obtain_fresh_credential(self, *, timeout: float | None = None) -> str:
        """Get a renewed access token, sharing any refresh already in flight.

        Args:
            timeout: Limit for waiting on a refresh driven by another thread.

        Returns:
            The new access token.

        Raises:
            NoRefreshTokenError: If no refresh token is stored.
            RefreshFailedError: If the refresh failed.
            RequestTimeoutError: If the wait for another thread's refresh timed out.
        """
        waiter: Future[str] | None = None
        with self._lock:
            if self._state is CoordinatorState.REFRESHING:
                waiter = Future()
                self._waiters.append(waiter)
            else:
                refresh_token = self._store.get_refresh_token()
                if not refresh_token:
                    self._store.clear()
                    self._logger.warning("No refresh token available, credentials cleared")
                    raise NoRefreshTokenError()
                self._state = CoordinatorState.REFRESHING
                epoch = self._epoch

        if waiter is not None:
            return self._wait(waiter, timeout)
        return self._refresh(refresh_token, epoch)

    def reset(self) -> None:
        """Return to idle, failing anyone still waiting on an abandoned refresh.

        A refresh still in flight when this is called is discarded when it
        settles: its tokens are never written to the store.
        """
        with self._lock:
            self._epoch += 1
            waiters, self._waiters = self._waiters, []
            self._state = CoordinatorState.IDLE
            error = RefreshFailedError(SESSION_RESET_MESSAGE)
            for waiter in waiters:
                _resolve(waiter, error=error)
        if waiters:
            self._logger.info("Refresh coordinator reset", failed_waiters=len(waiters))

    def _refresh(self, refresh_token: str, epoch: int) -> str:
        self._logger.info("Refreshing access token")
        try:
            pair = self._backend.refresh(refresh_token)
        except Exception as e:
            error = ErrorFactory.refresh_failed(e)
            if not self._settle(epoch, error=error):
                raise RefreshFailedError(SESSION_RESET_MESSAGE) from e
            raise error
        except BaseException:
            self._settle(
                epoch,
                error=RefreshFailedError("Token refresh interrupted"),
                clear_store=False,
            )
            raise

        if not self._settle(epoch, pair=pair):
            raise RefreshFailedError(SESSION_RESET_MESSAGE)
        return pair.access_token

    def _settle(
        self,
        epoch: int,
        *,
        pair: TokenPair | None = None,
        error: RefreshFailedError | None = None,
        clear_store: bool = True,
    ) -> bool:
        """Publish the refresh outcome; False if the session was reset meanwhile."""
        with self._lock:
            if epoch != self._epoch:
                return False

            if pair is not None:
                self._store.set(pair.to_credential())
            elif clear_store:
                self._store.clear()

            waiters, self._waiters = self._waiters, []
            self._state = CoordinatorState.IDLE
            for waiter in waiters:
                if pair is not None:
                    _resolve(waiter, token=pair.access_token)
                else:
                    _resolve(waiter, error=error)

        if pair is not None:
            self._logger.info("Access token refreshed", resumed_waiters=len(waiters))
        else:
            self._logger.warning(
                "Token refresh failed",
                failed_waiters=len(waiters),
                error=str(error),
            )
        return True

    def _wait(self, waiter: Future[str], timeout: float | None) -> str:
        timeout = self.wait_timeout if timeout is None else timeout
        try:
            return waiter.result(timeout=timeout)
        except TimeoutError:
            if not waiter.cancel():
                # Settled between the timeout and the cancel.
                return waiter.result()
            with self._lock:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)
            raise RequestTimeoutError(
                "Timed out waiting for credential refresh",
                timeout_seconds=timeout,
            ) from None


class AsyncRefreshCoordinator:
    """Single-flight refresh coordinator for asyncio.

    The backend call runs in its own task and every caller, including the one
    that started it, waits on an ``asyncio.Future``. Cancelling any caller
    only cancels that caller's future; the refresh and the other waiters are
    unaffected.

    Critical sections contain no ``await``, so the event loop serializes them.
    """

    def __init__(
        self,
        store: CredentialStore,
        backend: AsyncAuthBackend,
        *,
        wait_timeout: float | None = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            store: Credential store holding the refresh token.
            backend: Async refresh endpoint.
            wait_timeout: Default limit for waiting on a refresh.
        """
        self._store = store
        self._backend = backend
        self.wait_timeout = wait_timeout

        self._state = CoordinatorState.IDLE
        self._waiters: list[asyncio.Future[str]] = []
        self._task: asyncio.Task[None] | None = None
        self._epoch = 0
        self._logger = get_logger()

    @property
    def state(self) -> CoordinatorState:
        """Get current coordinator state."""
        return self._state

    @property
    def pending_waiters(self) -> int:
        """Number of callers suspended on the in-flight refresh."""
        return len(self._waiters)

    async def obtain_fresh_credential(self, *, timeout: float | None = None) -> str:
        """Get a renewed access token, sharing any refresh already in flight.

        Args:
            timeout: Limit for waiting on the refresh.

        Returns:
            The new access token.

        Raises:
            NoRefreshTokenError: If no refresh token is stored.
            RefreshFailedError: If the refresh failed.
            RequestTimeoutError: If waiting for the refresh timed out.
        """
        waiter: asyncio.Future[str] = asyncio.get_running_loop().create_future()

        if self._state is CoordinatorState.IDLE:
            refresh_token = self._store.get_refresh_token()
            if not refresh_token:
                self._store.clear()
                self._logger.warning("No refresh token available, credentials cleared")
                raise NoRefreshTokenError()
            self._state = CoordinatorState.REFRESHING
            self._logger.info("Refreshing access token")
            self._task = asyncio.create_task(self._run_refresh(refresh_token, self._epoch))

        self._waiters.append(waiter)
        return await self._wait(waiter, timeout)

    def reset(self) -> None:
        """Return to idle, failing every waiter and cancelling the refresh task."""
        self._epoch += 1
        waiters, self._waiters = self._waiters, []
        self._state = CoordinatorState.IDLE
        task, self._task = self._task, None

        error = RefreshFailedError(SESSION_RESET_MESSAGE)
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)

        if task is not None and not task.done():
            task.cancel()
        if waiters:
            self._logger.info("Refresh coordinator reset", failed_waiters=len(waiters))

    async def aclose(self) -> None:
        """Reset and wait for an abandoned refresh task to unwind."""
        task = self._task
        self.reset()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run_refresh(self, refresh_token: str, epoch: int) -> None:
        try:
            pair = await self._backend.refresh(refresh_token)
        except asyncio.CancelledError:
            self._settle(
                epoch,
                error=RefreshFailedError("Token refresh cancelled"),
                clear_store=False,
            )
            raise
        except Exception as e:
            self._settle(epoch, error=ErrorFactory.refresh_failed(e))
            return
        self._settle(epoch, pair=pair)

    def _settle(
        self,
        epoch: int,
        *,
        pair: TokenPair | None = None,
        error: RefreshFailedError | None = None,
        clear_store: bool = True,
    ) -> None:
        if epoch != self._epoch:
            return

        if pair is not None:
            self._store.set(pair.to_credential())
        elif clear_store:
            self._store.clear()

        waiters, self._waiters = self._waiters, []
        self._state = CoordinatorState.IDLE
        self._task = None
        for waiter in waiters:
            if waiter.done():
                continue
            if pair is not None:
                waiter.set_result(pair.access_token)
            else:
                waiter.set_exception(error)

        if pair is not None:
            self._logger.info("Access token refreshed", resumed_waiters=len(waiters))
        else:
            self._logger.warning(
                "Token refresh failed",
                failed_waiters=len(waiters),
                error=str(error),
            )

    async def _wait(self, waiter: asyncio.Future[str], timeout: float | None) -> str:
        timeout = self.wait_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(waiter, timeout)
        except TimeoutError:
            raise RequestTimeoutError(
                "Timed out waiting for credential refresh",
                timeout_seconds=timeout,
            ) from None
        finally:
            if waiter.cancelled() and waiter in self._waiters:
                self._waiters.remove(waiter)


def _resolve(
    waiter: Future[str],
    *,
    token: str | None = None,
    error: BaseException | None = None,
) -> None:
    try:
        if error is not None:
            waiter.set_exception(error)
        else:
            waiter.set_result(token)
    except InvalidStateError:
        # Waiter gave up and cancelled itself.
        pass
