"""Per-tab activity recency"""

import threading
import time
from collections.abc import Callable


class ActivityTracker:
    """Map from tab id to the time it was last seen active

    Activity signals arrive from several sources (host events, content
    pings, restores) while the scan reads the map, so every access goes
    through one lock. Last writer wins on the timestamp.

    A tab with no record is treated as active now, so a freshly created
    tab is never suspended before its first event arrives.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last_active: dict[str, float] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def mark_active(self, tab_id: str, at: float | None = None) -> None:
        """Record tab_id as active at `at` (default: now), overwriting any prior value"""
        timestamp = self._clock() if at is None else at
        with self._lock:
            self._last_active[tab_id] = timestamp

    def last_active(self, tab_id: str) -> float | None:
        with self._lock:
            return self._last_active.get(tab_id)

    def idle_duration(self, tab_id: str, now: float | None = None, fallback: float | None = None) -> float:
        """Seconds since tab_id was last active

        Args:
            tab_id: Tab to query
            now: Reference time (default: the tracker's clock)
            fallback: Host-supplied last access time used when there is no
                record; when also absent the tab counts as active now

        Returns:
            Idle seconds, never negative
        """
        if now is None:
            now = self._clock()
        with self._lock:
            last = self._last_active.get(tab_id)
        if last is None:
            last = fallback if fallback is not None else now
        return max(0.0, now - last)

    def forget(self, tab_id: str) -> None:
        """Drop the record of a destroyed tab"""
        with self._lock:
            self._last_active.pop(tab_id, None)

    def tracked(self) -> list[str]:
        with self._lock:
            return list(self._last_active)

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_active)
