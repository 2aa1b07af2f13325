"""Discovery and periodic refresh of the log streams to tail."""

import logging
import threading
import time
from typing import Callable, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .config import (
    DISCOVERY_TIMEOUT,
    GROUP_RETRY_DELAY,
    MAX_STREAMS,
    REFRESH_INTERVAL,
    log as default_log,
)
from .errors import DiscoveryTimeout, ResolutionError, is_group_not_found
from .retry import retry_call

WILDCARD = "*"


def is_wildcard(pattern: Optional[str]) -> bool:
    return not pattern or pattern == WILDCARD


class StreamSet:
    """Stream names shared between the resolver (writer) and the poller (reader)."""

    def __init__(self, limit: int = MAX_STREAMS) -> None:
        self.limit = limit
        self._names: List[str] = []
        self._lock = threading.Lock()

    def reset(self, names: List[str]) -> None:
        # Names come back roughly in creation order; keep the newest.
        names = list(names)
        if len(names) > self.limit:
            names = names[len(names) - self.limit:]
        with self._lock:
            self._names = names

    def get(self) -> List[str]:
        with self._lock:
            return list(self._names)


def list_streams(client, group: str, pattern: Optional[str] = None,
                 timeout: Optional[float] = None, limit: Optional[int] = None,
                 give_up: bool = True, log: Optional[logging.Logger] = None) -> Iterator[str]:
    """
    Yield stream names in `group` matching `pattern` (a name prefix, a
    trailing '*' is ignored). For the wildcard, only the `limit` most recently
    active streams are fetched, and they come out oldest first.

    Past `timeout`, a listing either raises DiscoveryTimeout (`give_up`) or
    logs once and keeps paging.
    """
    log = log or default_log
    kwargs = {"logGroupName": group}
    prefix = (pattern or "").rstrip(WILDCARD)
    if prefix:
        kwargs["logStreamNamePrefix"] = prefix
    else:
        kwargs.update(orderBy="LastEventTime", descending=True)

    deadline = None if timeout is None else time.monotonic() + timeout
    newest_first: List[str] = []
    next_token = None
    while True:
        if next_token:
            kwargs["nextToken"] = next_token
        resp = client.describe_log_streams(**kwargs)
        for stream in resp.get("logStreams", []):
            if prefix:
                yield stream["logStreamName"]
            else:
                newest_first.append(stream["logStreamName"])
        next_token = resp.get("nextToken")
        if not next_token or (limit is not None and len(newest_first) >= limit):
            break
        if deadline is not None and time.monotonic() > deadline:
            if give_up:
                raise DiscoveryTimeout(f"listing streams of {group} took longer than {timeout}s")
            log.warning(f"[resolver] listing streams of {group} is taking longer than {timeout}s, still paging")
            deadline = None

    if limit is not None:
        newest_first = newest_first[:limit]
    yield from reversed(newest_first)


class StreamResolver:
    """
    Resolves a stream pattern into the StreamSet, then keeps it fresh.

    The first resolution runs in the caller's thread so that a bad group or
    missing permissions surface as a startup error. With `retry`, a missing log
    group is waited for indefinitely: it may be created after tailing starts.
    """

    def __init__(
        self,
        client,
        group: str,
        pattern: Optional[str],
        streams: StreamSet,
        on_ready: Callable[[], None],
        retry: bool = False,
        stop: Optional[threading.Event] = None,
        log: Optional[logging.Logger] = None,
        refresh_interval: float = REFRESH_INTERVAL,
        retry_delay: float = GROUP_RETRY_DELAY,
        timeout: float = DISCOVERY_TIMEOUT,
    ) -> None:
        self.client = client
        self.group = group
        self.pattern = pattern
        self.streams = streams
        self.retry = retry
        self.refresh_interval = refresh_interval
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._on_ready = on_ready
        self._stop = stop or threading.Event()
        self._log = log or default_log
        self._thread: Optional[threading.Thread] = None

    @property
    def skipped(self) -> bool:
        return is_wildcard(self.pattern) and not self.retry

    def fetch(self, give_up: bool = True) -> List[str]:
        """One discovery attempt."""
        names = list(list_streams(self.client, self.group, self.pattern, self.timeout,
                                  limit=self.streams.limit, give_up=give_up, log=self._log))
        if len(names) > self.streams.limit:
            self._log.debug(f"[resolver] {self.group}: {len(names)} streams found, keeping the last {self.streams.limit}")
        return names

    def resolve(self) -> List[str]:
        if self.skipped:
            self._log.debug(f"[resolver] tailing every stream of {self.group}")
            self._on_ready()
            return []

        def _not_found(exc: BaseException) -> bool:
            return self.retry and is_group_not_found(exc)

        def _log_retry(exc: BaseException, attempt: int) -> None:
            self._log.info(f"[resolver] log group {self.group} not available. "
                           f"retry in {int(self.retry_delay * 1000)} milliseconds.")

        try:
            names = retry_call(
                lambda: self.fetch(give_up=False),
                should_retry=_not_found,
                delay=self.retry_delay,
                stop=self._stop,
                on_retry=_log_retry,
            )
        except (ClientError, BotoCoreError) as exc:
            raise ResolutionError(self.group, exc) from exc

        self.streams.reset(names)
        resolved = self.streams.get()
        self._log.debug(f"[resolver] {self.group}: {len(resolved)} stream(s) resolved")
        self._on_ready()
        self.start_refresh()
        return resolved

    def start_refresh(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._refresh_loop, name="cwtail-stream-refresh", daemon=True)
        self._thread.start()

    def refresh(self) -> None:
        """Best effort: on failure the previously known streams stay in use."""
        try:
            names = self.fetch()
        except (ClientError, BotoCoreError, DiscoveryTimeout) as exc:
            self._log.debug(f"[resolver] refresh of {self.group} failed: {exc}")
            return
        if names:
            self.streams.reset(names)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _refresh_loop(self) -> None:
        while not self._stop.wait(self.refresh_interval):
            self.refresh()
