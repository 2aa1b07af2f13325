"""Time-windowed set of event ids already handed to the consumer.

Overlapping query windows return the same events more than once; an id stays
here until it has not been seen for ``ttl`` seconds. Purging runs on its own
cadence so a sweep is not paid on every lookup.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from .config import CACHE_TTL, PURGE_INTERVAL, log as default_log


class DedupCache:
    """Event id -> (event timestamp, last seen) with a background purge."""

    def __init__(
        self,
        ttl: float = CACHE_TTL,
        purge_interval: float = PURGE_INTERVAL,
        log: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
        stop: Optional[threading.Event] = None,
    ) -> None:
        self.ttl = ttl
        self.purge_interval = purge_interval
        self._log = log or default_log
        self._clock = clock
        self._entries: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._stop = stop or threading.Event()
        self._thread: Optional[threading.Thread] = None

    def has(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._entries

    def add(self, event_id: str, timestamp: int) -> None:
        with self._lock:
            self._entries[event_id] = (timestamp, self._clock())

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def purge(self) -> int:
        """Drop entries last seen more than ``ttl`` ago. Returns how many went."""
        with self._lock:
            cutoff = self._clock() - self.ttl
            expired = [k for k, (_, seen) in self._entries.items() if seen < cutoff]
            for k in expired:
                del self._entries[k]
            remaining = len(self._entries)
        if expired:
            self._log.debug(f"[cache] purged {len(expired)} entries, {remaining} left")
        return len(expired)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="cwtail-cache-purge", daemon=True)
        self._thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.purge_interval):
            self.purge()
