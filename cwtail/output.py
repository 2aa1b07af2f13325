import datetime
from typing import Optional

from .events import LogEvent


def format_event(event: LogEvent, group: Optional[str] = None,
                 timestamps: bool = False, stream_name: bool = False) -> str:
    parts = []
    if timestamps:
        ts = datetime.datetime.fromtimestamp(event.timestamp / 1000, tz=datetime.timezone.utc)
        parts.append(ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"))
    if group:
        parts.append(group)
    if stream_name and event.log_stream_name:
        parts.append(event.log_stream_name)
    parts.append(event.message.rstrip())
    return " - ".join(parts)
