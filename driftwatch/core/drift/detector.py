"""
Drift Detection Core Logic
-------------------------
This module contains the DiffEngine, which compares two HTTP response
snapshots (status code, headers, JSON body and latency) and assembles a
severity-classified DiffResult. The engine holds no mutable state and
performs no I/O, so a single instance can be shared across threads.
"""

import json
import logging
from datetime import timedelta
from functools import lru_cache
from typing import Any, List, Optional, Sequence

from driftwatch.core.config import settings
from driftwatch.core.errors import InvalidResponseError, ResponseBodyParseError
from driftwatch.core.drift.differ import ROOT_PATH, compare_values, node_kind
from driftwatch.core.drift.severity import (
    KeywordPathClassifier,
    PathClassifier,
    assess_header_removal_severity,
    assess_header_value_severity,
    assess_performance_severity,
    assess_status_code_severity,
    determine_severity,
    escalate_severity,
    is_header_removal_breaking,
    is_status_code_change_breaking,
    map_severity_to_impact,
)
from driftwatch.core.drift.trends import analyze_trends
from driftwatch.core.drift.types import (
    BreakingChange,
    ChangeCategory,
    ChangeClassification,
    ChangeContext,
    ChangeType,
    DataChange,
    DiffResult,
    DiffType,
    FieldDiff,
    PerformanceChange,
    ResponseSnapshot,
    Severity,
    StructuralChange,
    TrendAnalysis,
)

logger = logging.getLogger(__name__)

# Fixed confidence attached to every classification
DEFAULT_CONFIDENCE = 0.8

STATUS_CODE_PATH = "$.status_code"

DIFF_TYPE_CHANGE_TYPE = {
    DiffType.ADDED: ChangeType.FIELD_ADDED,
    DiffType.REMOVED: ChangeType.FIELD_REMOVED,
    DiffType.MODIFIED: ChangeType.FIELD_MODIFIED,
    DiffType.TYPE_CHANGED: ChangeType.TYPE_CHANGE,
}

STRUCTURAL_DIFF_TYPES = frozenset({DiffType.ADDED, DiffType.REMOVED, DiffType.TYPE_CHANGED})


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant: {name}")


def parse_body(body: bytes, side: str) -> Any:
    """
    Parse a response body as JSON. An empty body parses to None.

    Raises:
        ResponseBodyParseError: If the body is not valid JSON
    """
    if not body:
        return None
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the decoder supports
        raise ResponseBodyParseError(side, cause=e) from e


def format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def format_duration(duration: timedelta) -> str:
    """
    Render a duration compactly: "250ms", "1.5s", "1m30s".
    """
    micros = round(duration / timedelta(microseconds=1))
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{micros / 1000:g}ms"

    hours, micros = divmod(micros, 3_600_000_000)
    minutes, micros = divmod(micros, 60_000_000)
    seconds = f"{micros / 1_000_000:.6f}".rstrip("0").rstrip(".") + "s"

    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"


def describe_field_diff(diff: FieldDiff) -> str:
    if diff.kind == DiffType.ADDED:
        return f"Field '{diff.path}' was added with value: {format_value(diff.new_value)}"
    if diff.kind == DiffType.REMOVED:
        return f"Field '{diff.path}' was removed (previous value: {format_value(diff.old_value)})"
    if diff.kind == DiffType.MODIFIED:
        return (
            f"Field '{diff.path}' changed from {format_value(diff.old_value)} "
            f"to {format_value(diff.new_value)}"
        )
    if diff.kind == DiffType.TYPE_CHANGED:
        return (
            f"Field '{diff.path}' type changed from {node_kind(diff.old_value).value} "
            f"to {node_kind(diff.new_value).value}"
        )
    return f"Field '{diff.path}' was modified"


class DiffEngine:
    """
    Compares response snapshots and classifies the drift between them.

    Args:
        path_classifier: Decides which field paths are critical
        performance_threshold_floor: Smallest latency delta worth reporting
        common_change_min_frequency: Pairs a path must change in to be a
            common change during trend analysis
    """

    def __init__(
        self,
        path_classifier: Optional[PathClassifier] = None,
        performance_threshold_floor: Optional[timedelta] = None,
        common_change_min_frequency: Optional[int] = None
    ):
        self.path_classifier = path_classifier or KeywordPathClassifier(
            settings.DRIFT_CRITICAL_FIELD_PATTERNS
        )
        self.performance_threshold_floor = (
            performance_threshold_floor
            if performance_threshold_floor is not None
            else settings.DRIFT_PERFORMANCE_THRESHOLD_FLOOR
        )
        self.common_change_min_frequency = (
            common_change_min_frequency
            if common_change_min_frequency is not None
            else settings.DRIFT_COMMON_CHANGE_MIN_FREQUENCY
        )

    def compare_responses(
        self,
        previous: Optional[ResponseSnapshot],
        current: Optional[ResponseSnapshot]
    ) -> DiffResult:
        """
        Compare two snapshots of the same endpoint.

        Args:
            previous: Most recently recorded response
            current: Newly observed response

        Returns:
            DiffResult describing every change

        Raises:
            InvalidResponseError: If either snapshot is missing
            ResponseBodyParseError: If either body is not valid JSON
        """
        if previous is None or current is None:
            raise InvalidResponseError("both responses must be non-nil")

        result = DiffResult()

        self._compare_status_codes(previous, current, result)
        self._compare_headers(previous, current, result)
        self._compare_bodies(previous, current, result)
        self._compare_performance(previous, current, result)
        self._summarize(result)

        logger.debug(
            f"Compared responses: {result.summary.total_changes} changes, "
            f"{result.summary.breaking_changes} breaking"
        )
        return result

    def analyze_trends(self, responses: Sequence[ResponseSnapshot]) -> TrendAnalysis:
        """Stability and latency trend over a chronological series of snapshots."""
        return analyze_trends(
            responses,
            self.compare_responses,
            common_change_min_frequency=self.common_change_min_frequency
        )

    def classify_change(self, diff: FieldDiff) -> ChangeClassification:
        """
        Classify a field diff.

        Added, removed and type-changed fields are structural; modified
        values are data changes. Removals and type changes always break
        clients, modified values only on critical paths.
        """
        if diff.kind in STRUCTURAL_DIFF_TYPES:
            category = ChangeCategory.STRUCTURAL
        else:
            category = ChangeCategory.DATA

        return ChangeClassification(
            category=category,
            severity=diff.severity,
            impact=map_severity_to_impact(diff.severity),
            breaking=self.is_breaking_change(diff),
            confidence=DEFAULT_CONFIDENCE,
            reasoning=self._classification_reasoning(diff)
        )

    def assess_severity(self, diff: FieldDiff, context: Optional[ChangeContext] = None) -> Severity:
        """
        Severity of a diff given extra knowledge about the field.

        Required fields are escalated one step (low to medium, medium to
        high) and critical paths are floored at high. Never downgrades.
        """
        severity = determine_severity(diff.path, diff.kind, self.path_classifier)

        if context is not None:
            if context.is_required:
                if severity == Severity.LOW:
                    severity = Severity.MEDIUM
                elif severity == Severity.MEDIUM:
                    severity = Severity.HIGH

            if self.path_classifier.is_critical(context.field_path or diff.path):
                severity = escalate_severity(severity, Severity.HIGH)

        return severity

    def is_breaking_change(self, diff: FieldDiff) -> bool:
        if diff.kind in (DiffType.REMOVED, DiffType.TYPE_CHANGED):
            return True
        if diff.kind == DiffType.MODIFIED:
            return self.path_classifier.is_critical(diff.path)
        return False

    def generate_mitigation(self, diff: FieldDiff) -> str:
        if diff.kind == DiffType.REMOVED:
            return f"Update client code to handle missing field '{diff.path}'"
        if diff.kind == DiffType.TYPE_CHANGED:
            return f"Update client code to handle type change for field '{diff.path}'"
        if diff.kind == DiffType.MODIFIED:
            if self.path_classifier.is_critical(diff.path):
                return f"Review and update logic that depends on field '{diff.path}'"
            return "Review if the value change affects client logic"
        return "Review the change and update client code if necessary"

    def _classification_reasoning(self, diff: FieldDiff) -> str:
        reasons: List[str] = []

        if diff.kind == DiffType.REMOVED:
            reasons.append("field removal is potentially breaking")
        if diff.kind == DiffType.TYPE_CHANGED:
            reasons.append("type changes are breaking")
        if self.path_classifier.is_critical(diff.path):
            reasons.append("field is identified as critical")

        if not reasons:
            return "standard change classification applied"
        return "; ".join(reasons)

    def _compare_status_codes(self, previous, current, result: DiffResult) -> None:
        if previous.status_code == current.status_code:
            return

        result.has_changes = True
        change = StructuralChange(
            type=ChangeType.STATUS_CHANGE,
            path=STATUS_CODE_PATH,
            description=f"Status code changed from {previous.status_code} to {current.status_code}",
            old_value=previous.status_code,
            new_value=current.status_code,
            severity=assess_status_code_severity(previous.status_code, current.status_code),
            breaking=is_status_code_change_breaking(previous.status_code, current.status_code)
        )
        result.structural_changes.append(change)

        if change.breaking:
            result.breaking_changes.append(BreakingChange(
                type=ChangeType.STATUS_CHANGE,
                path=STATUS_CODE_PATH,
                description=change.description,
                impact=map_severity_to_impact(change.severity),
                mitigation="Update client code to handle the new status code"
            ))

    def _compare_headers(self, previous, current, result: DiffResult) -> None:
        # Removed or changed headers
        for name, old_value in previous.headers.items():
            path = f"$.headers.{name}"

            if name not in current.headers:
                result.has_changes = True
                change = StructuralChange(
                    type=ChangeType.HEADER_CHANGE,
                    path=path,
                    description=f"Header '{name}' was removed",
                    old_value=old_value,
                    severity=assess_header_removal_severity(name),
                    breaking=is_header_removal_breaking(name)
                )
                result.structural_changes.append(change)

                if change.breaking:
                    result.breaking_changes.append(BreakingChange(
                        type=ChangeType.HEADER_CHANGE,
                        path=path,
                        description=change.description,
                        impact=map_severity_to_impact(change.severity),
                        mitigation=f"Update client code to handle missing '{name}' header"
                    ))
            elif current.headers[name] != old_value:
                new_value = current.headers[name]
                result.has_changes = True
                result.data_changes.append(DataChange(
                    path=path,
                    old_value=old_value,
                    new_value=new_value,
                    change_type=ChangeType.HEADER_CHANGE,
                    severity=assess_header_value_severity(name),
                    description=f"Header '{name}' value changed from '{old_value}' to '{new_value}'"
                ))

        # Added headers never break clients
        for name, new_value in current.headers.items():
            if name not in previous.headers:
                result.has_changes = True
                result.structural_changes.append(StructuralChange(
                    type=ChangeType.HEADER_CHANGE,
                    path=f"$.headers.{name}",
                    description=f"Header '{name}' was added",
                    new_value=new_value,
                    severity=Severity.LOW,
                    breaking=False
                ))

    def _compare_bodies(self, previous, current, result: DiffResult) -> None:
        previous_data = parse_body(previous.body, "previous")
        current_data = parse_body(current.body, "current")

        diffs = compare_values(previous_data, current_data, ROOT_PATH, self.path_classifier)

        for diff in diffs:
            result.has_changes = True
            classification = self.classify_change(diff)
            change_type = DIFF_TYPE_CHANGE_TYPE.get(diff.kind, ChangeType.FIELD_MODIFIED)
            description = describe_field_diff(diff)

            if classification.category == ChangeCategory.STRUCTURAL:
                result.structural_changes.append(StructuralChange(
                    type=change_type,
                    path=diff.path,
                    description=description,
                    old_value=diff.old_value,
                    new_value=diff.new_value,
                    severity=classification.severity,
                    breaking=classification.breaking
                ))

                if classification.breaking:
                    result.breaking_changes.append(BreakingChange(
                        type=change_type,
                        path=diff.path,
                        description=description,
                        impact=classification.impact,
                        mitigation=self.generate_mitigation(diff)
                    ))
            else:
                # Data changes never enter breaking_changes, even on critical paths
                result.data_changes.append(DataChange(
                    path=diff.path,
                    old_value=diff.old_value,
                    new_value=diff.new_value,
                    change_type=change_type,
                    severity=classification.severity,
                    description=description
                ))

    def _compare_performance(self, previous, current, result: DiffResult) -> None:
        zero = timedelta(0)
        if previous.response_time <= zero or current.response_time <= zero:
            return

        delta = current.response_time - previous.response_time
        threshold = max(previous.response_time / 10, self.performance_threshold_floor)
        if abs(delta) < threshold:
            return

        result.has_changes = True
        percent_change = delta / previous.response_time * 100
        direction = "increased" if delta > zero else "decreased"
        description = (
            f"Response time {direction} by {format_duration(abs(delta))} "
            f"({abs(percent_change):.1f}%) from {format_duration(previous.response_time)} "
            f"to {format_duration(current.response_time)}"
        )

        result.performance_change = PerformanceChange(
            response_time_delta=delta,
            severity=assess_performance_severity(delta, previous.response_time),
            description=description
        )

    def _summarize(self, result: DiffResult) -> None:
        summary = result.summary

        for change in result.structural_changes:
            summary.total_changes += 1
            if change.breaking:
                summary.breaking_changes += 1
            self._count_severity(change.severity, result)

        for change in result.data_changes:
            summary.total_changes += 1
            self._count_severity(change.severity, result)

        if result.performance_change is not None:
            summary.total_changes += 1
            self._count_severity(result.performance_change.severity, result)

    @staticmethod
    def _count_severity(severity: Severity, result: DiffResult) -> None:
        summary = result.summary
        if severity == Severity.CRITICAL:
            summary.critical_changes += 1
        elif severity == Severity.HIGH:
            summary.high_changes += 1
        elif severity == Severity.MEDIUM:
            summary.medium_changes += 1
        elif severity == Severity.LOW:
            summary.low_changes += 1


@lru_cache()
def get_diff_engine() -> DiffEngine:
    """Process-wide engine built from settings."""
    return DiffEngine()
