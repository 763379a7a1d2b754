"""Periodic removal of OTP records that can no longer be used."""

import asyncio
import contextlib
from collections.abc import Awaitable
from datetime import timedelta
from typing import Protocol

from mentormatch_auth.db.protocols import OTPStore
from mentormatch_auth.logging import get_logger
from mentormatch_auth.types import Clock, utc_now

log = get_logger(__name__)


async def cleanup_stale_records(
    store: OTPStore, *, retention: timedelta, clock: Clock | None = None
) -> int:
    """
    Delete terminal records older than ``retention`` and records expired for longer than it.

    A pending record that has not yet expired is never removed. Keep
    ``retention`` at least as long as the rate-limit window, otherwise the
    sweep frees issuance quota early.

    Returns:
        Number of records deleted
    """
    now = (clock or utc_now)()
    deleted = await store.delete_stale(now - retention)
    log.info(
        "otp_cleanup_completed",
        deleted=deleted,
        retention_hours=retention / timedelta(hours=1),
    )
    return deleted


class _Cleanable(Protocol):
    def cleanup(self) -> Awaitable[int]: ...


class OTPSweeper:
    """
    Runs ``service.cleanup()`` every ``interval`` on a background task.

    Optional: verification already expires records lazily, the sweep only
    keeps the store small.

    Example:
        ```python
        sweeper = OTPSweeper(otp_service, interval=timedelta(hours=1))

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            sweeper.start()
            yield
            await sweeper.stop()
        ```
    """

    def __init__(self, service: _Cleanable, interval: timedelta) -> None:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        self.service = service
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int | None:
        """Run a single sweep, logging instead of raising on failure."""
        try:
            return await self.service.cleanup()
        except Exception:
            log.exception("otp_cleanup_failed")
            return None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval.total_seconds())
            await self.run_once()

    def start(self) -> None:
        """Start the background task. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        log.info("otp_sweeper_started", interval_seconds=self.interval.total_seconds())

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        log.info("otp_sweeper_stopped")
