"""
Tailing engine: a limiter-driven poller over FilterLogEvents.

Three activities cooperate: the stream resolver (initial discovery, then a
refresh thread), the poller thread and the dedup cache purge thread. They
share the StreamSet, the ReadinessGate and the EventBuffer, and all stop on
one threading.Event owned by the tail. A caller's stop event only feeds into it.
"""

import enum
import logging
import queue
import re
import threading
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional

from .cache import DedupCache
from .config import (
    BUFFER_SIZE, CACHE_TTL, DISCOVERY_TIMEOUT, POLL_INTERVAL, PURGE_INTERVAL, REFRESH_INTERVAL,
    log as default_log,
)
from .errors import PageFetchError
from .events import LogEvent
from .limiter import ticker
from .query import build_params, fetch_pages
from .streams import WILDCARD, StreamResolver, StreamSet
from .timeparse import to_millis

# How long a tick waits for the gate before deciding a query is in flight.
GATE_WAIT = 0.005
_CLOSED = object()


def _link(outer: threading.Event, inner: threading.Event, interval: float = 0.05) -> None:
    """Set `inner` once `outer` is set. Never the other way round."""
    def watch() -> None:
        while not inner.wait(interval):
            if outer.is_set():
                inner.set()

    if outer.is_set():
        inner.set()
        return
    threading.Thread(target=watch, name="cwtail-stop-link", daemon=True).start()


class PollerState(enum.Enum):
    IDLE = "idle"
    QUERYING = "querying"
    DONE = "done"


class ReadinessGate:
    """Single-slot signal: a token present means the next query may start."""

    def __init__(self) -> None:
        self._slot: "queue.Queue[bool]" = queue.Queue(maxsize=1)

    def signal(self) -> None:
        try:
            self._slot.put_nowait(True)
        except queue.Full:
            pass

    def acquire(self, timeout: float = GATE_WAIT) -> bool:
        try:
            self._slot.get(timeout=timeout)
            return True
        except queue.Empty:
            return False

    def is_set(self) -> bool:
        return not self._slot.empty()


class EventBuffer:
    """Bounded hand-off between the poller and the consumer."""

    def __init__(self, maxsize: int, stop: threading.Event) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._stop = stop
        self._error: Optional[BaseException] = None
        self._closed = False

    def put(self, item: object) -> bool:
        """Blocks while full. Returns False if tailing was stopped meanwhile."""
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def fail(self, exc: BaseException) -> None:
        self._error = exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[LogEvent]:
        while True:
            try:
                item = self._queue.get(timeout=0.1)
            except queue.Empty:
                if self._stop.is_set():
                    return
                continue
            if item is _CLOSED:
                if self._error is not None:
                    raise self._error
                return
            yield item


class Poller(threading.Thread):
    def __init__(
        self,
        client,
        group: str,
        streams: StreamSet,
        gate: ReadinessGate,
        cache: DedupCache,
        output: EventBuffer,
        limiter: Iterable,
        stop: threading.Event,
        start_ms: int,
        end_ms: Optional[int] = None,
        follow: bool = False,
        grep: str = "",
        grepv: str = "",
        log: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(name=f"cwtail-poller-{group}", daemon=True)
        self.client = client
        self.group = group
        self.follow = follow
        self.end_ms = end_ms
        self.grep = grep
        self.high_water_mark = start_ms
        self.state = PollerState.IDLE
        self._streams = streams
        self._gate = gate
        self._cache = cache
        self._output = output
        self._limiter = limiter
        self._stop_event = stop
        self._exclude = re.compile(grepv) if grepv else None
        self._log = log or default_log

    def run(self) -> None:
        try:
            for _ in self._limiter:
                if self._stop_event.is_set():
                    break
                if not self._gate.acquire(timeout=GATE_WAIT):
                    self._log.debug(f"[poller] {self.group} still tailing, skip polling")
                    continue
                self.state = PollerState.QUERYING
                self.poll()
                if self._stop_event.is_set():
                    break
                if not self.follow:
                    self.state = PollerState.DONE
                    break
                self._log.debug("[poller] last page")
                self.state = PollerState.IDLE
                self._gate.signal()
        except PageFetchError as exc:
            self._log.error(f"[poller] {exc}")
            self._output.fail(exc)
        except Exception as exc:
            self._log.exception(f"[poller] tailing {self.group} failed")
            self._output.fail(exc)
        finally:
            self._output.close()
            # Tailing is over either way: take this tail's refresh and purge threads down too.
            self._stop_event.set()

    def poll(self) -> None:
        """Run one query cycle over the window starting at the high-water mark."""
        params = build_params(self.group, self._streams.get(), self.high_water_mark,
                              self.end_ms, self.grep, self.follow)
        for page in fetch_pages(self.client, params, stop=self._stop_event, log=self._log):
            for raw in page:
                if not self.handle(LogEvent.from_api(raw)):
                    return

    def handle(self, event: LogEvent) -> bool:
        """Filter, dedupe and emit one event. False once tailing is stopped."""
        if self._exclude is not None and self._exclude.search(event.message):
            return True
        if self._cache.has(event.event_id):
            self._log.debug(f"[poller] {event.event_id} already seen")
            return True
        if event.timestamp < self.high_water_mark:
            self._log.warning(
                f"[poller] old event:{event.message}, ev-ts:{event.timestamp}, "
                f"last-ts:{self.high_water_mark}, cache-size:{self._cache.size()}"
            )
        else:
            self.high_water_mark = event.timestamp
        self._cache.add(event.event_id, event.timestamp)
        return self._output.put(event)


class Tail:
    """Handle returned by tail(): iterate it for events, close it to stop."""

    def __init__(self, poller: Poller, resolver: StreamResolver, cache: DedupCache,
                 output: EventBuffer, stop: threading.Event) -> None:
        self.poller = poller
        self.resolver = resolver
        self.cache = cache
        self._output = output
        self._stop = stop

    def __iter__(self) -> Iterator[LogEvent]:
        return iter(self._output)

    @property
    def high_water_mark(self) -> int:
        return self.poller.high_water_mark

    @property
    def state(self) -> PollerState:
        return self.poller.state

    @property
    def streams(self) -> List[str]:
        return self.resolver.streams.get()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def close(self, timeout: float = 1.0) -> None:
        self._stop.set()
        self.poller.join(timeout)
        self.resolver.join(timeout)
        self.cache.close()

    def __enter__(self) -> "Tail":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def tail(
    client,
    group: str,
    stream: Optional[str] = WILDCARD,
    follow: bool = False,
    retry: bool = False,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    grep: str = "",
    grepv: str = "",
    limiter: Optional[Iterable] = None,
    logger: Optional[logging.Logger] = None,
    *,
    stop: Optional[threading.Event] = None,
    buffer_size: int = BUFFER_SIZE,
    cache_ttl: float = CACHE_TTL,
    purge_interval: float = PURGE_INTERVAL,
    refresh_interval: float = REFRESH_INTERVAL,
    poll_interval: float = POLL_INTERVAL,
    discovery_timeout: float = DISCOVERY_TIMEOUT,
) -> Tail:
    """
    Tail `stream` (a name prefix, '*' for every stream) of log group `group`.

    Stream discovery happens before returning, so a missing group (without
    `retry`) or missing permissions raise ResolutionError right away. Unless
    `follow` is set, iteration ends once the [start, end] window is exhausted.
    A fatal fetch failure is raised from the iterator as PageFetchError.

    Setting `stop` ends this tail, but a finished tail never sets `stop`, so
    one event can be shared by several tails.
    """
    log = logger or default_log
    start_ms = to_millis(start or datetime.now(timezone.utc))
    end_ms = to_millis(end)
    # Compile up front so a bad pattern fails before any thread starts.
    if grepv:
        re.compile(grepv)

    halt = threading.Event()
    if stop is not None:
        _link(stop, halt)
    gate = ReadinessGate()
    streams = StreamSet()
    resolver = StreamResolver(client, group, stream, streams, gate.signal, retry=retry,
                              stop=halt, log=log, refresh_interval=refresh_interval,
                              timeout=discovery_timeout)
    try:
        resolver.resolve()
    except Exception:
        # Let the stop link exit with the failed startup.
        halt.set()
        raise

    cache = DedupCache(cache_ttl, purge_interval, log=log, stop=halt)
    cache.start()
    output = EventBuffer(buffer_size, halt)
    poller = Poller(
        client, group, streams, gate, cache, output,
        limiter if limiter is not None else ticker(poll_interval, halt),
        halt,
        start_ms=start_ms,
        end_ms=end_ms,
        follow=follow,
        grep=grep,
        grepv=grepv,
        log=log,
    )
    log.debug(f"[tail] tailing {group} from {start_ms}" + (" (follow)" if follow else ""))
    poller.start()
    return Tail(poller, resolver, cache, output, halt)
