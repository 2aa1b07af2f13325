import threading
import time
from typing import Iterator, Optional

from .config import POLL_INTERVAL


def ticker(interval: float = POLL_INTERVAL, stop: Optional[threading.Event] = None) -> Iterator[float]:
    """Yield the wall-clock time every `interval` seconds until `stop` is set."""
    stop = stop or threading.Event()
    while not stop.is_set():
        yield time.time()
        if stop.wait(interval):
            return
