import threading
import time
from typing import Callable, Optional, TypeVar

from .errors import Cancelled

T = TypeVar("T")


def retry_call(
    fn: Callable[[], T],
    *,
    should_retry: Callable[[BaseException], bool],
    delay: float,
    attempts: Optional[int] = None,
    stop: Optional[threading.Event] = None,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
) -> T:
    """
    Call fn until it returns. Errors accepted by should_retry are retried after
    `delay` seconds, at most `attempts` calls in total (None = no limit).
    Anything else, or the last error once attempts run out, propagates.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as exc:
            if not should_retry(exc):
                raise
            if attempts is not None and attempt >= attempts:
                raise
            if on_retry is not None:
                on_retry(exc, attempt)
        if stop is not None:
            if stop.wait(delay):
                raise Cancelled("retry interrupted by stop signal")
        else:
            time.sleep(delay)
