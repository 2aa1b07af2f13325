import logging
import threading
from typing import Any, Dict, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .config import THROTTLE_RETRY_DELAY, log as default_log
from .errors import Cancelled, PageFetchError, is_throttled
from .retry import retry_call

# One retry on throttling; a second failure on the same page is fatal.
PAGE_ATTEMPTS = 2


def build_params(group: str, streams: Optional[List[str]], start_ms: int,
                 end_ms: Optional[int] = None, pattern: Optional[str] = None,
                 follow: bool = False) -> Dict[str, Any]:
    """
    FilterLogEvents arguments for the window starting at start_ms.
    A following tail is open-ended, so end_ms only applies when not following.
    """
    params: Dict[str, Any] = dict(logGroupName=group, startTime=start_ms)
    if pattern:
        params["filterPattern"] = pattern
    if streams:
        params["logStreamNames"] = list(streams)
    if not follow and end_ms:
        params["endTime"] = end_ms
    return params


def fetch_pages(client, params: Dict[str, Any], stop: Optional[threading.Event] = None,
                log: Optional[logging.Logger] = None,
                retry_delay: float = THROTTLE_RETRY_DELAY) -> Iterator[List[Dict[str, Any]]]:
    """Yield the raw event list of each page until nextToken runs out."""
    log = log or default_log
    group = params["logGroupName"]
    kwargs = dict(params)

    def _log_throttle(exc: BaseException, attempt: int) -> None:
        log.info(f"[poller] Rate exceeded for {group}. Wait for {int(retry_delay * 1000)}ms then retry.")

    while True:
        attempts = {"n": 0}

        def _fetch():
            attempts["n"] += 1
            return client.filter_log_events(**kwargs)

        try:
            resp = retry_call(
                _fetch,
                should_retry=is_throttled,
                delay=retry_delay,
                attempts=PAGE_ATTEMPTS,
                stop=stop,
                on_retry=_log_throttle,
            )
        except Cancelled:
            return
        except (ClientError, BotoCoreError) as exc:
            raise PageFetchError(group, attempts["n"], exc) from exc

        yield resp.get("events", [])

        next_token = resp.get("nextToken")
        if not next_token:
            return
        kwargs["nextToken"] = next_token
