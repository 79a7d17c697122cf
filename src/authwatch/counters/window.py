"""Sliding-window event counter keyed by identity.

Used for failed-login tracking (keyed by user id) and request-rate
tracking (keyed by IP). Threshold checks belong to the caller.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional


Clock = Callable[[], int]


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class WindowEntry:
    """One recorded event."""
    timestamp: int
    event: Any = None


class RateWindowCounter:
    """Per-key sliding window of timestamped events.
    
    An entry expires once ``now - entry.timestamp >= window_ms``. Every
    record is prune-then-append under one lock, so concurrent callers
    for the same key never read a stale count. Keys that went idle are
    swept at most once per window, from inside ``record``.
    """
    
    def __init__(self, window_ms: int, clock: Optional[Clock] = None):
        """Initialize the counter.
        
        Args:
            window_ms: Window length in milliseconds
            clock: Returns the current time in epoch milliseconds
        """
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        self.window_ms = window_ms
        self._clock = clock or epoch_ms
        self._entries: Dict[str, List[WindowEntry]] = {}
        self._lock = threading.Lock()
        self._last_sweep = self._clock()
    
    def _live(self, entries: List[WindowEntry], now: int) -> List[WindowEntry]:
        return [e for e in entries if now - e.timestamp < self.window_ms]
    
    def record(self, key: str, event: Any = None) -> int:
        """Record an event for key at the current time.
        
        Returns:
            Number of live events for key after pruning and appending
        """
        with self._lock:
            now = self._clock()
            entries = self._live(self._entries.get(key, []), now)
            entries.append(WindowEntry(timestamp=now, event=event))
            self._entries[key] = entries
            if now - self._last_sweep >= self.window_ms:
                self._sweep(now)
            return len(entries)
    
    def count(self, key: str) -> int:
        """Number of live events for key, without modifying state."""
        with self._lock:
            return len(self._live(self._entries.get(key, []), self._clock()))
    
    def events(self, key: str) -> List[Any]:
        """Live event payloads for key, oldest first."""
        with self._lock:
            return [e.event for e in self._live(self._entries.get(key, []), self._clock())]
    
    def reset(self, key: str) -> None:
        """Forget all events for key."""
        with self._lock:
            self._entries.pop(key, None)
    
    def keys(self) -> Iterator[str]:
        """Keys with at least one stored entry (expired or not)."""
        with self._lock:
            return iter(list(self._entries))
    
    def active_keys(self) -> int:
        """Number of keys with at least one live entry."""
        with self._lock:
            now = self._clock()
            return sum(
                1 for entries in self._entries.values()
                if any(now - e.timestamp < self.window_ms for e in entries)
            )
    
    def purge_expired(self) -> int:
        """Drop expired entries and empty keys. Returns keys removed."""
        with self._lock:
            return self._sweep(self._clock())
    
    def _sweep(self, now: int) -> int:
        # Caller holds the lock
        removed = 0
        for key in list(self._entries):
            live = self._live(self._entries[key], now)
            if live:
                self._entries[key] = live
            else:
                del self._entries[key]
                removed += 1
        self._last_sweep = now
        return removed
