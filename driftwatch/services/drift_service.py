# driftwatch/services/drift_service.py
import json
import logging
import threading
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Protocol

from driftwatch.core.config import settings
from driftwatch.core.drift.detector import DiffEngine, get_diff_engine
from driftwatch.core.drift.types import (
    DiffResult,
    ResponseSnapshot,
    StructuralChange,
    TrendAnalysis,
)
from driftwatch.core.errors import ResponseBodyParseError
from driftwatch.core.observability import (
    DRIFT_COMPARISON_COUNTER,
    DRIFT_COMPARISON_DURATION,
    record_diff_metrics,
    timed_execution,
)
from driftwatch.models.drift import DriftRecord, EndpointCheckResult

logger = logging.getLogger(__name__)

PERFORMANCE_PATH = "$.response_time"


class ResponseHistory(Protocol):
    """Storage collaborator holding recorded responses per endpoint."""

    def latest(self, endpoint_id: str) -> Optional[ResponseSnapshot]:
        ...

    def history(self, endpoint_id: str, limit: Optional[int] = None) -> List[ResponseSnapshot]:
        """Recorded responses, oldest first."""
        ...

    def record(self, endpoint_id: str, snapshot: ResponseSnapshot) -> None:
        ...


class InMemoryResponseHistory:
    """
    Thread-safe response history kept in process memory.

    Each endpoint keeps at most `limit` snapshots; older ones are dropped.
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit or settings.DRIFT_HISTORY_LIMIT
        self._lock = threading.Lock()
        self._responses: Dict[str, Deque[ResponseSnapshot]] = defaultdict(
            lambda: deque(maxlen=self.limit)
        )

    def latest(self, endpoint_id: str) -> Optional[ResponseSnapshot]:
        with self._lock:
            responses = self._responses.get(endpoint_id)
            return responses[-1] if responses else None

    def history(self, endpoint_id: str, limit: Optional[int] = None) -> List[ResponseSnapshot]:
        with self._lock:
            responses = list(self._responses.get(endpoint_id, ()))
        if limit is not None:
            responses = responses[-limit:] if limit > 0 else []
        return responses

    def record(self, endpoint_id: str, snapshot: ResponseSnapshot) -> None:
        with self._lock:
            self._responses[endpoint_id].append(snapshot)

    def endpoints(self) -> List[str]:
        with self._lock:
            return sorted(self._responses)


def render_value(value: Any) -> Optional[str]:
    """Render a change value for storage: strings verbatim, everything else as JSON."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def build_drift_records(
    endpoint_id: str,
    result: DiffResult,
    detected_at: Optional[datetime] = None,
    include_performance: bool = True
) -> List[DriftRecord]:
    """
    Flatten a diff result into one record per change.

    Args:
        endpoint_id: Endpoint the result belongs to
        result: Diff result to flatten
        detected_at: Detection time, defaults to now
        include_performance: Whether to emit a record for the latency change

    Returns:
        Structural records, then data records, then the performance record
    """
    detected_at = detected_at or datetime.now(timezone.utc)
    records: List[DriftRecord] = []

    for change in result.structural_changes:
        records.append(DriftRecord(
            endpoint_id=endpoint_id,
            drift_type=change.type.value,
            severity=change.severity,
            description=change.description,
            field_path=change.path,
            before_value=render_value(change.old_value),
            after_value=render_value(change.new_value),
            breaking=change.breaking,
            detected_at=detected_at
        ))

    for change in result.data_changes:
        records.append(DriftRecord(
            endpoint_id=endpoint_id,
            drift_type=change.change_type.value,
            severity=change.severity,
            description=change.description,
            field_path=change.path,
            before_value=render_value(change.old_value),
            after_value=render_value(change.new_value),
            detected_at=detected_at
        ))

    if include_performance and result.performance_change is not None:
        records.append(DriftRecord(
            endpoint_id=endpoint_id,
            drift_type="performance_change",
            severity=result.performance_change.severity,
            description=result.performance_change.description,
            field_path=PERFORMANCE_PATH,
            detected_at=detected_at
        ))

    return records


def select_representative_change(result: DiffResult) -> Optional[StructuralChange]:
    """The structural change an alert should lead with: first breaking one, else the first."""
    for change in result.structural_changes:
        if change.breaking:
            return change
    return result.structural_changes[0] if result.structural_changes else None


def check_endpoint(
    endpoint_id: str,
    current: ResponseSnapshot,
    history: ResponseHistory,
    engine: Optional[DiffEngine] = None
) -> EndpointCheckResult:
    """
    Compare a fresh response against the last recorded one and record it.

    The first response of an endpoint is stored as a baseline. A body that
    cannot be parsed is reported on the result rather than raised; the
    response is still recorded so the next check compares against it.
    """
    engine = engine or get_diff_engine()
    checked_at = datetime.now(timezone.utc)
    previous = history.latest(endpoint_id)

    if previous is None:
        history.record(endpoint_id, current)
        DRIFT_COMPARISON_COUNTER.labels(outcome="baseline").inc()
        logger.info(f"Recorded baseline response for endpoint {endpoint_id}")
        return EndpointCheckResult(endpoint_id=endpoint_id, checked_at=checked_at, baseline=True)

    try:
        with timed_execution(DRIFT_COMPARISON_DURATION):
            result = engine.compare_responses(previous, current)
    except ResponseBodyParseError as e:
        history.record(endpoint_id, current)
        DRIFT_COMPARISON_COUNTER.labels(outcome="error").inc()
        logger.warning(f"Drift comparison failed for endpoint {endpoint_id}: {e}")
        return EndpointCheckResult(endpoint_id=endpoint_id, checked_at=checked_at, error=str(e))

    history.record(endpoint_id, current)
    record_diff_metrics(result)

    if result.has_changes:
        DRIFT_COMPARISON_COUNTER.labels(outcome="changed").inc()
        logger.info(
            f"Detected {result.summary.total_changes} changes "
            f"({result.summary.breaking_changes} breaking) for endpoint {endpoint_id}"
        )
    else:
        DRIFT_COMPARISON_COUNTER.labels(outcome="unchanged").inc()

    return EndpointCheckResult(
        endpoint_id=endpoint_id,
        checked_at=checked_at,
        diff=result,
        drifts=build_drift_records(endpoint_id, result, checked_at)
    )


def analyze_endpoint_trends(
    endpoint_id: str,
    history: ResponseHistory,
    engine: Optional[DiffEngine] = None,
    limit: Optional[int] = None
) -> TrendAnalysis:
    """
    Trend analysis over the recorded responses of an endpoint.

    Raises:
        InsufficientHistoryError: If fewer than two responses are recorded
    """
    engine = engine or get_diff_engine()
    responses = history.history(endpoint_id, limit or settings.DRIFT_HISTORY_LIMIT)
    return engine.analyze_trends(responses)
