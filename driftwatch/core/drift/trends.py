"""
Drift Trend Analysis
--------------------
Stability and latency trends over a chronological series of response
snapshots of one endpoint.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from driftwatch.core.errors import DriftWatchError, InsufficientHistoryError
from driftwatch.core.drift.types import (
    ChangeType,
    CommonChange,
    DiffResult,
    PerformanceTrend,
    ResponseSnapshot,
    TrendAnalysis,
    TrendDirection,
)

logger = logging.getLogger(__name__)

CompareFn = Callable[[ResponseSnapshot, ResponseSnapshot], DiffResult]

PERCENTILES = (50, 90, 99)


def analyze_trends(
    responses: Sequence[ResponseSnapshot],
    compare: CompareFn,
    common_change_min_frequency: int = 2
) -> TrendAnalysis:
    """
    Analyze a chronological series of snapshots.

    Args:
        responses: Snapshots ordered oldest first
        compare: Pairwise comparison, normally DiffEngine.compare_responses
        common_change_min_frequency: Pairs a path must change in to be reported

    Returns:
        TrendAnalysis for the series

    Raises:
        InsufficientHistoryError: If fewer than two snapshots are given
    """
    responses = list(responses)
    if len(responses) < 2:
        raise InsufficientHistoryError(len(responses))

    pair_count = len(responses) - 1
    changed_pairs = 0
    path_stats: Dict[str, List] = {}

    for index in range(1, len(responses)):
        previous, current = responses[index - 1], responses[index]
        try:
            result = compare(previous, current)
        except DriftWatchError as e:
            # Unlike compare_responses, one bad pair does not fail the whole
            # series; it counts as a pair without changes.
            logger.debug(f"Skipping pair {index - 1}->{index} in trend analysis: {e}")
            continue

        if result.has_changes:
            changed_pairs += 1
        _tally_paths(result, current.timestamp, path_stats)

    change_frequency = changed_pairs / pair_count

    return TrendAnalysis(
        total_responses=len(responses),
        period=responses[-1].timestamp - responses[0].timestamp,
        change_frequency=change_frequency,
        stability_score=1.0 - change_frequency,
        common_changes=_common_changes(path_stats, common_change_min_frequency),
        performance_trend=analyze_performance_trend(responses)
    )


def _tally_paths(result: DiffResult, seen_at: datetime, path_stats: Dict[str, List]) -> None:
    """Count each changed path once per pair, keeping its latest change type."""
    latest: Dict[str, ChangeType] = {}
    for change in result.structural_changes:
        latest[change.path] = change.type
    for change in result.data_changes:
        latest[change.path] = change.change_type

    for path, change_type in latest.items():
        stats = path_stats.setdefault(path, [0, change_type, seen_at])
        stats[0] += 1
        stats[1] = change_type
        stats[2] = seen_at


def _common_changes(path_stats: Dict[str, List], min_frequency: int) -> List[CommonChange]:
    common = [
        CommonChange(path=path, frequency=frequency, change_type=change_type, last_seen=last_seen)
        for path, (frequency, change_type, last_seen) in path_stats.items()
        if frequency >= min_frequency
    ]
    common.sort(key=lambda c: (-c.frequency, c.path))
    return common


def _positive_latencies(responses: Sequence[ResponseSnapshot]) -> List[timedelta]:
    return [r.response_time for r in responses if r.response_time > timedelta(0)]


def _average(durations: List[timedelta]) -> timedelta:
    return sum(durations, timedelta(0)) / len(durations)


def percentile(durations: List[timedelta], pct: float) -> timedelta:
    """Nearest-rank percentile of a non-empty list."""
    ordered = sorted(durations)
    rank = math.ceil(pct / 100 * len(ordered))
    return ordered[max(rank, 1) - 1]


def analyze_performance_trend(responses: Sequence[ResponseSnapshot]) -> Optional[PerformanceTrend]:
    """
    Compare latency in the first and second half of the series.

    The second half is degrading when its average is at least 10% above
    the first half, improving when at most 90% of it. Returns None when no
    snapshot carries a latency.
    """
    latencies = _positive_latencies(responses)
    if not latencies:
        return None

    midpoint = len(responses) // 2
    first_half = _positive_latencies(responses[:midpoint])
    second_half = _positive_latencies(responses[midpoint:])

    trend = TrendDirection.STABLE
    percentile_changes: Dict[str, timedelta] = {}

    if first_half and second_half:
        first_average = _average(first_half)
        second_average = _average(second_half)

        if second_average * 10 >= first_average * 11:
            trend = TrendDirection.DEGRADING
        elif second_average * 10 <= first_average * 9:
            trend = TrendDirection.IMPROVING

        for pct in PERCENTILES:
            percentile_changes[f"p{pct}"] = percentile(second_half, pct) - percentile(first_half, pct)

    return PerformanceTrend(
        average_response_time=_average(latencies),
        trend=trend,
        percentile_changes=percentile_changes
    )
