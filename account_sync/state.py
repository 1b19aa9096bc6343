"""
Process-wide sync state.

One SyncEngineState belongs to one SyncEngine and lives from engine
construction to close(). The scheduler, the lifecycle guard and the
cookie watcher all read and write this one object.
"""

from dataclasses import dataclass

from .clock import TimerHandle


@dataclass
class SyncEngineState:
    """Mutable timing state of a sync engine.

    Attributes:
        pending_timer: The single armed debounce timer, if any
        suppress_flag: True while pushes are suppressed for logout
        last_observed_cookie_string: Cookie string last seen by the poller
    """

    pending_timer: TimerHandle | None = None
    suppress_flag: bool = False
    last_observed_cookie_string: str | None = None

    def cancel_pending(self) -> bool:
        """Cancel the armed debounce timer. Returns whether one was armed."""
        if self.pending_timer is None:
            return False
        self.pending_timer.cancel()
        self.pending_timer = None
        return True
