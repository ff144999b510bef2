from pydantic import BaseModel, Field
from typing import Dict, List
from datetime import datetime, timedelta, timezone

from driftwatch.core.drift.types import ResponseSnapshot

class ResponsePayload(BaseModel):
    status_code: int
    headers: Dict[str, str] = {}
    body: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    response_time_ms: float = Field(default=0, ge=0)

    def to_snapshot(self) -> ResponseSnapshot:
        return ResponseSnapshot(
            status_code=self.status_code,
            headers=self.headers,
            body=self.body.encode("utf-8"),
            timestamp=self.timestamp,
            response_time=timedelta(milliseconds=self.response_time_ms)
        )

class CompareRequest(BaseModel):
    previous: ResponsePayload
    current: ResponsePayload

class TrendRequest(BaseModel):
    responses: List[ResponsePayload]

class EngineHealthResponse(BaseModel):
    status: str
    critical_field_patterns: List[str]
    performance_threshold_floor_ms: float
    common_change_min_frequency: int
