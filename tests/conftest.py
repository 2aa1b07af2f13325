from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pytest
from botocore.exceptions import ClientError

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
START_MS = int(START.timestamp()) * 1000


def client_error(code: str, operation: str = "FilterLogEvents") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def event(event_id: str, offset_ms: int, message: str | None = None, stream: str = "s1") -> dict[str, Any]:
    return {
        "eventId": event_id,
        "timestamp": START_MS + offset_ms,
        "message": message if message is not None else f"message {event_id}",
        "logStreamName": stream,
        "ingestionTime": START_MS + offset_ms + 5,
    }


def streams_page(names: list[str], token: str | None = None) -> dict[str, Any]:
    page: dict[str, Any] = {"logStreams": [{"logStreamName": n} for n in names]}
    if token:
        page["nextToken"] = token
    return page


@dataclass
class FakeLogsClient:
    """Scripted stand-in for a CloudWatch Logs client.

    Each call pops the next scripted response; exceptions are raised instead
    of returned. Once a script runs dry an empty result is returned.
    """

    stream_responses: list[Any] = field(default_factory=list)
    event_responses: list[Any] = field(default_factory=list)
    describe_calls: list[dict[str, Any]] = field(default_factory=list)
    filter_calls: list[dict[str, Any]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def describe_log_streams(self, **kwargs: Any) -> dict[str, Any]:
        with self._lock:
            self.describe_calls.append(dict(kwargs))
            return self._next(self.stream_responses, {"logStreams": []})

    def filter_log_events(self, **kwargs: Any) -> dict[str, Any]:
        with self._lock:
            self.filter_calls.append(dict(kwargs))
            return self._next(self.event_responses, {"events": []})

    @staticmethod
    def _next(responses: list[Any], default: dict[str, Any]) -> dict[str, Any]:
        if not responses:
            return default
        item = responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def fake_client() -> FakeLogsClient:
    return FakeLogsClient()


@pytest.fixture
def stop() -> threading.Event:
    return threading.Event()
