"""Process-wide world clock state."""

import threading
from typing import Optional

from .models import WorldTimer


class WorldClock:
    """
    Lock-guarded holder of the latest WorldTimer.

    Readers get the whole value that was last committed; a commit replaces it
    in one step, so offset and precision always belong together.
    """

    def __init__(self, initial: Optional[WorldTimer] = None):
        self._lock = threading.Lock()
        self._timer = initial if initial is not None else WorldTimer()

    def current(self) -> WorldTimer:
        """Latest committed estimate."""
        with self._lock:
            return self._timer

    def commit(self, timer: WorldTimer) -> None:
        """Replace the stored estimate."""
        if not isinstance(timer, WorldTimer):
            raise TypeError(f"Expected WorldTimer, got {type(timer).__name__}")
        with self._lock:
            self._timer = timer


# Global world clock instance
_world_clock: Optional[WorldClock] = None
_world_clock_lock = threading.Lock()


def get_world_clock() -> WorldClock:
    """Get or create the process-wide WorldClock."""
    global _world_clock
    if _world_clock is None:
        with _world_clock_lock:
            if _world_clock is None:
                _world_clock = WorldClock()
    return _world_clock


def world_time() -> WorldTimer:
    """Latest estimate held by the process-wide WorldClock."""
    return get_world_clock().current()
