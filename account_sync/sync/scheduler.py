"""
Debounced persistence scheduler.

Bursts of local writes (several toggles in quick succession) coalesce
into one push that fires after a quiet period with no new writes. Each
notification cancels the armed timer and arms a fresh one, so the push
always carries the state after the last write of the burst.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..clock import Clock
from ..state import SyncEngineState
from .guard import SessionLifecycleGuard

logger = logging.getLogger(__name__)

PushAction = Callable[[], Awaitable[object]]


class DebouncedScheduler:
    """Cancel-and-replace debounce timer in front of the push path.

    The guard is consulted twice: when a timer would be armed and again
    when it fires, which closes the race between a running timer and a
    logout that started after it was armed.
    """

    def __init__(
        self,
        action: PushAction,
        state: SyncEngineState,
        guard: SessionLifecycleGuard,
        clock: Clock,
        delay: float = 1.0,
    ):
        """Initialize the scheduler.

        Args:
            action: Coroutine function run once per quiet period
            state: Engine state holding the pending timer
            guard: Logout suppression guard
            clock: Timer source
            delay: Quiet period in seconds
        """
        self.action = action
        self.state = state
        self.guard = guard
        self.clock = clock
        self.delay = delay
        self._tasks: set[asyncio.Task[object]] = set()

    @property
    def pending(self) -> bool:
        """True while a timer is armed."""
        return self.state.pending_timer is not None

    def notify(self, key: str | None = None) -> bool:
        """Report a local change. Returns whether a timer was armed."""
        if self.guard.suppressed:
            logger.debug(f"Change to {key or 'cookies'} ignored while logging out")
            return False

        self.state.cancel_pending()
        self.state.pending_timer = self.clock.call_later(self.delay, self._fire)
        return True

    def cancel(self) -> bool:
        """Drop the armed timer without pushing."""
        return self.state.cancel_pending()

    def _fire(self) -> None:
        self.state.pending_timer = None

        if self.guard.suppressed:
            logger.debug("Scheduled push skipped while logging out")
            return

        task = asyncio.ensure_future(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self.action()
        except Exception as e:
            logger.error(f"Scheduled push failed: {e}")

    async def wait_idle(self) -> None:
        """Wait for every push started by this scheduler to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
