"""
Drift Detection Types
--------------------
This module defines the type system used for API drift detection: the
response snapshot consumed by the engine, the field-level diff produced by
the tree differ, and the classified changes that make up a diff result.
"""

from enum import Enum
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, timedelta, timezone


class Severity(str, Enum):
    """Severity levels for detected drift, ordered low to critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class DiffType(str, Enum):
    """Kinds of field-level differences found by the tree differ."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    TYPE_CHANGED = "type_changed"


class ChangeType(str, Enum):
    """Types of changes reported in a diff result."""

    SCHEMA_CHANGE = "schema_change"
    FIELD_ADDED = "field_added"
    FIELD_REMOVED = "field_removed"
    FIELD_MODIFIED = "field_modified"
    TYPE_CHANGE = "type_change"
    VALUE_CHANGE = "value_change"
    ARRAY_CHANGE = "array_change"
    STATUS_CHANGE = "status_change"
    HEADER_CHANGE = "header_change"


class ChangeCategory(str, Enum):
    """Whether a change alters the shape of a response or only its values."""

    STRUCTURAL = "structural"
    DATA = "data"
    PERFORMANCE = "performance"
    COMPATIBILITY = "compatibility"


class ImpactLevel(str, Enum):
    """Expected impact of a change on API consumers."""

    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


class TrendDirection(str, Enum):
    """Direction of response time over a series of snapshots."""

    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"


class NodeKind(str, Enum):
    """Runtime kind of a parsed JSON value."""

    NULL = "null"
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SCALAR = "scalar"  # any other Python value


class ResponseSnapshot(BaseModel):
    """
    One observed HTTP response. Immutable once built; a zero response_time
    means latency was not measured.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    response_time: timedelta = timedelta(0)

    @field_validator("timestamp")
    @classmethod
    def timestamp_as_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class FieldDiff(BaseModel):
    """A single divergence between two documents at a given path."""

    path: str
    kind: DiffType
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    severity: Severity


class ChangeClassification(BaseModel):
    """Classification of a FieldDiff."""

    category: ChangeCategory
    severity: Severity
    impact: ImpactLevel
    breaking: bool
    confidence: float
    reasoning: str


class ChangeContext(BaseModel):
    """Extra knowledge about a field, typically supplied by a schema validator."""

    field_path: str = ""
    field_type: str = ""
    schema_context: Dict[str, Any] = Field(default_factory=dict)
    historical_data: List[Any] = Field(default_factory=list)
    is_required: bool = False


class StructuralChange(BaseModel):
    """A change to the shape of a response."""

    type: ChangeType
    path: str
    description: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    severity: Severity
    breaking: bool = False


class DataChange(BaseModel):
    """A change to a value that leaves the response shape intact."""

    path: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    change_type: ChangeType
    severity: Severity
    description: str


class BreakingChange(BaseModel):
    """A change judged likely to break existing clients."""

    type: ChangeType
    path: str
    description: str
    impact: ImpactLevel
    mitigation: Optional[str] = None


class PerformanceChange(BaseModel):
    """A significant change in response latency."""

    response_time_delta: timedelta
    severity: Severity
    description: str


class DiffSummary(BaseModel):
    """Counts across all changes in a diff result."""

    total_changes: int = 0
    breaking_changes: int = 0
    critical_changes: int = 0
    high_changes: int = 0
    medium_changes: int = 0
    low_changes: int = 0


class DiffResult(BaseModel):
    """Result of comparing two response snapshots."""

    has_changes: bool = False
    structural_changes: List[StructuralChange] = Field(default_factory=list)
    data_changes: List[DataChange] = Field(default_factory=list)
    breaking_changes: List[BreakingChange] = Field(default_factory=list)
    performance_change: Optional[PerformanceChange] = None
    summary: DiffSummary = Field(default_factory=DiffSummary)


class CommonChange(BaseModel):
    """A path that changed repeatedly across a series of snapshots."""

    path: str
    change_type: ChangeType
    frequency: int
    last_seen: datetime


class PerformanceTrend(BaseModel):
    """Latency trend over a series of snapshots."""

    average_response_time: timedelta
    trend: TrendDirection
    percentile_changes: Dict[str, timedelta] = Field(default_factory=dict)


class TrendAnalysis(BaseModel):
    """Stability and performance signal over a series of snapshots."""

    total_responses: int
    period: timedelta
    change_frequency: float
    stability_score: float
    common_changes: List[CommonChange] = Field(default_factory=list)
    performance_trend: Optional[PerformanceTrend] = None
