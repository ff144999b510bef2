# driftwatch/services/http_capture.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import httpx

from driftwatch.core.drift.types import ResponseSnapshot

logger = logging.getLogger(__name__)


def snapshot_from_response(
    response: httpx.Response,
    timestamp: Optional[datetime] = None
) -> ResponseSnapshot:
    """
    Build a snapshot from an httpx response.

    Repeated headers are joined with ", " so each name maps to one value.
    Latency is taken from the response's elapsed time when available.
    """
    try:
        response_time = response.elapsed
    except RuntimeError:
        # elapsed is only set once the response has been read and closed
        response_time = timedelta(0)

    return ResponseSnapshot(
        status_code=response.status_code,
        headers=dict(response.headers.items()),
        body=response.content,
        timestamp=timestamp or datetime.now(timezone.utc),
        response_time=response_time
    )


async def fetch_snapshot(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None
) -> ResponseSnapshot:
    """
    Issue one request and capture the response as a snapshot.

    Transport errors propagate; retry policy belongs to the caller.
    """
    started_at = datetime.now(timezone.utc)
    response = await client.request(method, url, headers=headers)
    logger.debug(f"{method} {url} -> {response.status_code}")
    return snapshot_from_response(response, timestamp=started_at)
