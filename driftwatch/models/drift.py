from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from driftwatch.core.drift.types import DiffResult, Severity

class DriftRecord(BaseModel):
    endpoint_id: str
    drift_type: str    # change type, or "performance_change"
    severity: Severity
    description: str
    field_path: str
    before_value: Optional[str] = None
    after_value: Optional[str] = None
    breaking: bool = False
    detected_at: datetime

class EndpointCheckResult(BaseModel):
    endpoint_id: str
    checked_at: datetime
    baseline: bool = False  # first observation, nothing to compare against
    diff: Optional[DiffResult] = None
    drifts: List[DriftRecord] = Field(default_factory=list)
    error: Optional[str] = None
