"""
Test Fixtures and Configuration
------------------------------
This module contains fixtures and configuration for pytest testing.
"""

import json
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI
from fastapi.testclient import TestClient

from driftwatch.api.routes.drift import get_response_history
from driftwatch.core.drift.detector import DiffEngine
from driftwatch.core.drift.types import ResponseSnapshot
from driftwatch.main import app as main_app
from driftwatch.services.drift_service import InMemoryResponseHistory

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def build_response(
    body: Any = None,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
    latency_ms: float = 0,
    minutes: float = 0,
) -> ResponseSnapshot:
    """
    Build a snapshot for tests.

    body may be raw bytes/str (used verbatim) or any JSON-serializable value.
    """
    if body is None:
        raw = b""
    elif isinstance(body, bytes):
        raw = body
    elif isinstance(body, str):
        raw = body.encode("utf-8")
    else:
        raw = json.dumps(body).encode("utf-8")

    return ResponseSnapshot(
        status_code=status_code,
        headers=headers if headers is not None else {"Content-Type": "application/json"},
        body=raw,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        response_time=timedelta(milliseconds=latency_ms),
    )


@pytest.fixture
def engine() -> DiffEngine:
    """Engine with the default heuristics"""
    return DiffEngine()


@pytest.fixture
def make_response() -> Callable[..., ResponseSnapshot]:
    """Factory for response snapshots"""
    return build_response


@pytest.fixture
def history() -> InMemoryResponseHistory:
    """Empty in-memory response history"""
    return InMemoryResponseHistory(limit=10)


@pytest.fixture
def app(history: InMemoryResponseHistory) -> FastAPI:
    """Get FastAPI app with an isolated response history"""
    main_app.dependency_overrides[get_response_history] = lambda: history
    yield main_app
    main_app.dependency_overrides.clear()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Get TestClient for making requests"""
    return TestClient(app)
