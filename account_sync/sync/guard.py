"""
Session lifecycle guard.

Suppresses pushes while local data is being torn down on logout. Without
it, the deletions made during logout would themselves schedule a push
and re-persist the data that was just cleared.
"""

import logging

from ..clock import Clock, TimerHandle
from ..state import SyncEngineState

logger = logging.getLogger(__name__)


class SessionLifecycleGuard:
    """Process-wide push suppression with a fixed cooldown.

    begin_logout() raises the flag at once; it drops by itself once the
    cooldown has elapsed. Calling begin_logout() again restarts the
    cooldown, so the window can only grow, never shrink.
    """

    def __init__(self, state: SyncEngineState, clock: Clock, cooldown: float = 2.0):
        """Initialize the guard.

        Args:
            state: Engine state holding the suppress flag
            clock: Timer source for the cooldown
            cooldown: Seconds the flag stays up after begin_logout()
        """
        self.state = state
        self.clock = clock
        self.cooldown = cooldown
        self._cooldown_timer: TimerHandle | None = None

    @property
    def suppressed(self) -> bool:
        """True while no push may run or be scheduled."""
        return self.state.suppress_flag

    def begin_logout(self) -> None:
        """Suppress pushes now and arm the cooldown."""
        self.state.suppress_flag = True

        if self._cooldown_timer is not None:
            self._cooldown_timer.cancel()
        self._cooldown_timer = self.clock.call_later(self.cooldown, self._end_logout)

        logger.debug(f"Push suppression on for {self.cooldown}s")

    def set_logging_out(self, flag: bool) -> None:
        """Explicit guard control for callers outside the debounce path.

        True behaves as begin_logout(). False lifts suppression at once;
        an armed cooldown is left to expire on its own.
        """
        if flag:
            self.begin_logout()
        else:
            self.state.suppress_flag = False

    def _end_logout(self) -> None:
        self._cooldown_timer = None
        self.state.suppress_flag = False
        logger.debug("Push suppression lifted")

    def dispose(self) -> None:
        """Cancel the cooldown timer (engine teardown)."""
        if self._cooldown_timer is not None:
            self._cooldown_timer.cancel()
            self._cooldown_timer = None
