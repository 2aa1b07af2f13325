from .cache import DedupCache
from .errors import (
    Cancelled,
    DiscoveryTimeout,
    PageFetchError,
    ResolutionError,
    TailError,
)
from .events import LogEvent
from .streams import StreamResolver, StreamSet, list_streams
from .tail import PollerState, Tail, tail

__all__ = [
    "Cancelled",
    "DedupCache",
    "DiscoveryTimeout",
    "LogEvent",
    "PageFetchError",
    "PollerState",
    "ResolutionError",
    "StreamResolver",
    "StreamSet",
    "Tail",
    "TailError",
    "list_streams",
    "tail",
]
