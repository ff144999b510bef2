"""
Drift Severity Classification
----------------------------
This module holds the heuristics used to grade API drift: which field
paths look critical, how severe a status code, header or latency change
is, and how severity maps to consumer impact.

Severity is derived from path-name pattern matching rather than an API
contract. The path heuristic sits behind the PathClassifier protocol so a
contract-aware classifier can replace it without touching the differ or
the aggregator.
"""

from datetime import timedelta
from typing import Iterable, Optional, Protocol, runtime_checkable

from driftwatch.core.drift.types import DiffType, ImpactLevel, Severity


# Substrings that flag identifier-like or status-like fields
CRITICAL_FIELD_PATTERNS = (
    "id", "uuid", "key", "token", "version", "status", "type", "error", "code"
)

# Headers whose removal is graded critical
CRITICAL_HEADERS = frozenset({
    "content-type", "authorization", "location", "etag", "cache-control"
})

# Headers whose removal breaks clients
BREAKING_HEADERS = frozenset({"content-type", "location", "etag"})

SEVERITY_IMPACT = {
    Severity.CRITICAL: ImpactLevel.CRITICAL,
    Severity.HIGH: ImpactLevel.MAJOR,
    Severity.MEDIUM: ImpactLevel.MODERATE,
    Severity.LOW: ImpactLevel.MINOR,
}


@runtime_checkable
class PathClassifier(Protocol):
    """Decides whether a document path points at a critical field."""

    def is_critical(self, path: str) -> bool:
        ...


class KeywordPathClassifier:
    """
    Case-insensitive substring match of the whole path against a keyword set.

    Matches anywhere in the path, so "$.error_code" and "$.user_id.name"
    both count as critical while "$.description" does not.
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        source = CRITICAL_FIELD_PATTERNS if patterns is None else patterns
        self.patterns = tuple(p.lower() for p in source)

    def is_critical(self, path: str) -> bool:
        lower_path = path.lower()
        return any(pattern in lower_path for pattern in self.patterns)


DEFAULT_PATH_CLASSIFIER = KeywordPathClassifier()


def determine_severity(
    path: str,
    kind: DiffType,
    classifier: Optional[PathClassifier] = None
) -> Severity:
    """
    Severity assigned to a field diff when the tree differ emits it.

    Args:
        path: Path of the diff, rooted at "$"
        kind: Kind of the diff
        classifier: Critical-path classifier, defaults to the keyword heuristic

    Returns:
        Severity for the diff
    """
    classifier = classifier or DEFAULT_PATH_CLASSIFIER

    if kind == DiffType.REMOVED:
        return Severity.CRITICAL if classifier.is_critical(path) else Severity.HIGH
    if kind == DiffType.TYPE_CHANGED:
        return Severity.CRITICAL
    if kind == DiffType.ADDED:
        return Severity.LOW
    if kind == DiffType.MODIFIED:
        return Severity.HIGH if classifier.is_critical(path) else Severity.MEDIUM
    return Severity.LOW


def escalate_severity(severity: Severity, floor: Severity) -> Severity:
    """Raise severity to at least floor; never lowers it."""
    return severity if severity.rank >= floor.rank else floor


def map_severity_to_impact(severity: Optional[Severity]) -> ImpactLevel:
    return SEVERITY_IMPACT.get(severity, ImpactLevel.NONE)


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def assess_status_code_severity(old_code: int, new_code: int) -> Severity:
    """Success turning into anything else is critical; every other move is medium."""
    if _is_success(old_code) and not _is_success(new_code):
        return Severity.CRITICAL
    return Severity.MEDIUM


def is_status_code_change_breaking(old_code: int, new_code: int) -> bool:
    return _is_success(old_code) and not _is_success(new_code)


def assess_header_removal_severity(header_name: str) -> Severity:
    if header_name.lower() in CRITICAL_HEADERS:
        return Severity.CRITICAL
    return Severity.MEDIUM


def is_header_removal_breaking(header_name: str) -> bool:
    return header_name.lower() in BREAKING_HEADERS


def assess_header_value_severity(header_name: str) -> Severity:
    if header_name.lower() == "content-type":
        return Severity.HIGH
    return Severity.LOW


def assess_performance_severity(delta: timedelta, baseline: timedelta) -> Severity:
    """
    Grade a latency change by its percentage of the baseline.

    Slowdowns and speedups are graded on separate scales: +100% and -50%
    are both critical.
    """
    percent_change = delta / baseline * 100

    if percent_change >= 100 or percent_change <= -50:
        return Severity.CRITICAL
    if percent_change >= 50 or percent_change <= -25:
        return Severity.HIGH
    if percent_change >= 25 or percent_change <= -10:
        return Severity.MEDIUM
    return Severity.LOW
