"""
HTTP Capture Tests
------------------
Tests for building response snapshots from httpx responses.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from driftwatch.services.http_capture import fetch_snapshot, snapshot_from_response

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def lower_keys(headers):
    return {name.lower(): value for name, value in headers.items()}


def test_snapshot_from_response():
    response = httpx.Response(201, json={"id": 1}, headers={"X-Request-Id": "abc"})

    snapshot = snapshot_from_response(response, timestamp=BASE_TIME)

    assert snapshot.status_code == 201
    assert json.loads(snapshot.body) == {"id": 1}
    assert lower_keys(snapshot.headers)["x-request-id"] == "abc"
    assert snapshot.timestamp == BASE_TIME
    # Never sent, so no latency was measured
    assert snapshot.response_time == timedelta(0)


def test_repeated_headers_are_joined():
    response = httpx.Response(200, headers=[("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")])

    snapshot = snapshot_from_response(response)

    assert lower_keys(snapshot.headers)["set-cookie"] == "a=1, b=2"


@pytest.mark.asyncio
async def test_fetch_snapshot():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer test"
        return httpx.Response(200, json={"status": "ok"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        snapshot = await fetch_snapshot(
            client, "GET", "https://api.example.com/status",
            headers={"Authorization": "Bearer test"}
        )

    assert snapshot.status_code == 200
    assert json.loads(snapshot.body) == {"status": "ok"}
    assert snapshot.response_time >= timedelta(0)
    assert snapshot.timestamp.tzinfo is not None


@pytest.mark.asyncio
async def test_fetch_snapshot_propagates_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.ConnectError):
            await fetch_snapshot(client, "GET", "https://api.example.com/status")
