from __future__ import annotations

import json

import boto3
import pytest
from botocore.awsrequest import AWSResponse
from botocore.stub import Stubber
from conftest import START_MS, FakeLogsClient, client_error, event

from cwtail.config import logs_client
from cwtail.errors import PageFetchError
from cwtail.query import build_params, fetch_pages


def test_params_minimal() -> None:
    assert build_params("g", [], 1000) == {"logGroupName": "g", "startTime": 1000}


def test_params_with_streams_pattern_and_end() -> None:
    params = build_params("g", ["a", "b"], 1000, end_ms=5000, pattern="ERROR", follow=False)

    assert params == {
        "logGroupName": "g",
        "startTime": 1000,
        "filterPattern": "ERROR",
        "logStreamNames": ["a", "b"],
        "endTime": 5000,
    }


def test_following_ignores_end_time() -> None:
    params = build_params("g", None, 1000, end_ms=5000, follow=True)

    assert "endTime" not in params


def test_pages_follow_next_token(fake_client: FakeLogsClient) -> None:
    fake_client.event_responses = [
        {"events": [event("e1", 1)], "nextToken": "t1"},
        {"events": [event("e2", 2)]},
    ]

    pages = list(fetch_pages(fake_client, {"logGroupName": "g", "startTime": START_MS}))

    assert [[e["eventId"] for e in page] for page in pages] == [["e1"], ["e2"]]
    assert "nextToken" not in fake_client.filter_calls[0]
    assert fake_client.filter_calls[1]["nextToken"] == "t1"


def test_throttled_page_is_retried_once(fake_client: FakeLogsClient) -> None:
    fake_client.event_responses = [
        {"events": [event("e1", 1)], "nextToken": "t1"},
        client_error("ThrottlingException"),
        {"events": [event("e2", 2)]},
    ]

    pages = list(fetch_pages(fake_client, {"logGroupName": "g", "startTime": START_MS}, retry_delay=0))

    assert len(pages) == 2
    assert len(fake_client.filter_calls) == 3
    # the retry asks for the same page again
    assert fake_client.filter_calls[1] == fake_client.filter_calls[2]


def test_second_throttle_on_a_page_is_fatal(fake_client: FakeLogsClient) -> None:
    fake_client.event_responses = [client_error("ThrottlingException"), client_error("ThrottlingException")]

    with pytest.raises(PageFetchError) as info:
        list(fetch_pages(fake_client, {"logGroupName": "g", "startTime": START_MS}, retry_delay=0))

    assert info.value.attempts == 2
    assert info.value.group == "g"


def test_other_errors_are_not_retried(fake_client: FakeLogsClient) -> None:
    fake_client.event_responses = [client_error("AccessDeniedException")]

    with pytest.raises(PageFetchError) as info:
        list(fetch_pages(fake_client, {"logGroupName": "g", "startTime": START_MS}, retry_delay=0))

    assert info.value.attempts == 1
    assert len(fake_client.filter_calls) == 1


def test_request_shape_against_botocore_model() -> None:
    client = boto3.client(
        "logs",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    params = build_params("my-group", ["s1"], START_MS, end_ms=START_MS + 60_000, pattern="ERROR")
    with Stubber(client) as stubber:
        stubber.add_response(
            "filter_log_events",
            {"events": [event("e1", 1)], "nextToken": "t1"},
            params,
        )
        stubber.add_client_error(
            "filter_log_events",
            service_error_code="ThrottlingException",
            service_message="Rate exceeded",
            expected_params={**params, "nextToken": "t1"},
        )
        stubber.add_response(
            "filter_log_events",
            {"events": [event("e2", 2)]},
            {**params, "nextToken": "t1"},
        )

        pages = list(fetch_pages(client, params, retry_delay=0))

        stubber.assert_no_pending_responses()
    assert [page[0]["eventId"] for page in pages] == ["e1", "e2"]


class _Body:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload

    def stream(self, **kwargs: object):
        yield self._payload


def test_logs_client_sends_one_request_per_attempt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    client = logs_client("us-east-1")
    sent: list[str] = []

    def _always_throttled(request, **kwargs):
        sent.append(request.url)
        return AWSResponse(
            request.url,
            400,
            {"Content-Type": "application/x-amz-json-1.1", "x-amzn-RequestId": "req-1"},
            _Body(json.dumps({"__type": "ThrottlingException", "message": "Rate exceeded"}).encode()),
        )

    client.meta.events.register("before-send", _always_throttled)

    with pytest.raises(PageFetchError) as info:
        list(fetch_pages(client, {"logGroupName": "g", "startTime": START_MS}, retry_delay=0))

    assert info.value.attempts == 2
    assert len(sent) == 2
    assert client.meta.config.retries["total_max_attempts"] == 1
