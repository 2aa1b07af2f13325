from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class LogEvent:
    """One event returned by FilterLogEvents."""
    event_id: str
    timestamp: int  # epoch millis
    message: str
    log_stream_name: str = ""
    ingestion_time: Optional[int] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "LogEvent":
        return cls(
            event_id=raw["eventId"],
            timestamp=int(raw["timestamp"]),
            message=raw.get("message", ""),
            log_stream_name=raw.get("logStreamName", ""),
            ingestion_time=raw.get("ingestionTime"),
        )
