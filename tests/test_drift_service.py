"""
Drift Service Tests
------------------
Tests for the response history, endpoint checks and drift records.
"""

import pytest
from datetime import datetime, timezone

from driftwatch.core.drift.types import (
    ChangeType, DiffResult, Severity, StructuralChange
)
from driftwatch.core.errors import InsufficientHistoryError
from driftwatch.services.drift_service import (
    InMemoryResponseHistory,
    PERFORMANCE_PATH,
    analyze_endpoint_trends,
    build_drift_records,
    check_endpoint,
    render_value,
    select_representative_change,
)

ENDPOINT_ID = "users-api"
DETECTED_AT = datetime(2025, 2, 1, tzinfo=timezone.utc)


def structural(path: str, breaking: bool) -> StructuralChange:
    return StructuralChange(
        type=ChangeType.FIELD_REMOVED,
        path=path,
        description=f"Field '{path}' was removed",
        severity=Severity.HIGH,
        breaking=breaking
    )


# ========== TESTS FOR RESPONSE HISTORY ========== #

def test_history_is_oldest_first(history: InMemoryResponseHistory, make_response):
    for minute in range(3):
        history.record(ENDPOINT_ID, make_response({"n": minute}, minutes=minute))

    responses = history.history(ENDPOINT_ID)

    assert [r.timestamp.minute for r in responses] == [0, 1, 2]
    assert history.latest(ENDPOINT_ID) is responses[-1]
    assert [r.timestamp.minute for r in history.history(ENDPOINT_ID, limit=2)] == [1, 2]


def test_history_drops_oldest_beyond_limit(history: InMemoryResponseHistory, make_response):
    for minute in range(12):
        history.record(ENDPOINT_ID, make_response(minutes=minute))

    responses = history.history(ENDPOINT_ID)

    assert len(responses) == history.limit == 10
    assert responses[0].timestamp.minute == 2


def test_history_is_per_endpoint(history: InMemoryResponseHistory, make_response):
    history.record("b", make_response())
    history.record("a", make_response())

    assert history.latest("missing") is None
    assert history.history("missing") == []
    assert history.endpoints() == ["a", "b"]


# ========== TESTS FOR ENDPOINT CHECKS ========== #

def test_first_check_records_baseline(history, engine, make_response):
    result = check_endpoint(ENDPOINT_ID, make_response({"id": "1"}), history, engine)

    assert result.baseline is True
    assert result.diff is None
    assert result.drifts == []
    assert len(history.history(ENDPOINT_ID)) == 1


def test_check_reports_drift(history, engine, make_response):
    # Arrange
    check_endpoint(ENDPOINT_ID, make_response({"id": "123", "name": "John"}), history, engine)

    # Act
    result = check_endpoint(ENDPOINT_ID, make_response({"name": "John"}), history, engine)

    # Assert
    assert result.baseline is False
    assert result.error is None
    assert result.diff.has_changes is True
    assert len(result.drifts) == 1
    drift = result.drifts[0]
    assert drift.endpoint_id == ENDPOINT_ID
    assert drift.drift_type == "field_removed"
    assert drift.field_path == "$.id"
    assert drift.severity == Severity.CRITICAL
    assert drift.before_value == "123"
    assert drift.after_value is None
    assert drift.breaking is True
    assert len(history.history(ENDPOINT_ID)) == 2


def test_unchanged_check(history, engine, make_response):
    check_endpoint(ENDPOINT_ID, make_response({"a": 1}), history, engine)

    result = check_endpoint(ENDPOINT_ID, make_response({"a": 1}), history, engine)

    assert result.diff.has_changes is False
    assert result.drifts == []


def test_unparseable_body_is_reported_not_raised(history, engine, make_response):
    check_endpoint(ENDPOINT_ID, make_response({"a": 1}), history, engine)

    result = check_endpoint(ENDPOINT_ID, make_response("<html>"), history, engine)

    assert result.diff is None
    assert "BODY_PARSE_FAILED" in result.error
    # The bad response becomes the new comparison point
    assert history.latest(ENDPOINT_ID).body == b"<html>"


# ========== TESTS FOR DRIFT RECORDS ========== #

def test_render_value():
    assert render_value(None) is None
    assert render_value("abc") == "abc"
    assert render_value(5) == "5"
    assert render_value({"a": 1}) == '{"a": 1}'
    assert render_value([1, 2]) == "[1, 2]"


def test_drift_records_order_and_performance(engine, make_response):
    result = engine.compare_responses(
        make_response({"a": 1}, latency_ms=100),
        make_response({"a": 2, "b": True}, latency_ms=300)
    )

    records = build_drift_records(ENDPOINT_ID, result, DETECTED_AT)

    assert [(r.drift_type, r.field_path) for r in records] == [
        ("field_added", "$.b"),
        ("field_modified", "$.a"),
        ("performance_change", PERFORMANCE_PATH),
    ]
    assert records[0].after_value == "true"
    assert records[1].before_value == "1"
    assert records[2].severity == Severity.CRITICAL
    assert all(r.detected_at == DETECTED_AT for r in records)

    without_performance = build_drift_records(
        ENDPOINT_ID, result, DETECTED_AT, include_performance=False
    )
    assert PERFORMANCE_PATH not in [r.field_path for r in without_performance]


def test_select_representative_change():
    first = structural("$.a", breaking=False)
    breaking = structural("$.b", breaking=True)

    assert select_representative_change(DiffResult(structural_changes=[first, breaking])) is breaking
    assert select_representative_change(DiffResult(structural_changes=[first])) is first
    assert select_representative_change(DiffResult()) is None


# ========== TESTS FOR ENDPOINT TRENDS ========== #

def test_endpoint_trends_need_history(history, engine, make_response):
    check_endpoint(ENDPOINT_ID, make_response({"a": 1}), history, engine)

    with pytest.raises(InsufficientHistoryError):
        analyze_endpoint_trends(ENDPOINT_ID, history, engine)


def test_endpoint_trends(history, engine, make_response):
    for minute, value in enumerate([1, 1, 2, 2, 3]):
        check_endpoint(ENDPOINT_ID, make_response({"a": value}, minutes=minute), history, engine)

    analysis = analyze_endpoint_trends(ENDPOINT_ID, history, engine)
    recent = analyze_endpoint_trends(ENDPOINT_ID, history, engine, limit=2)

    assert analysis.total_responses == 5
    assert analysis.change_frequency == pytest.approx(0.5)
    assert analysis.common_changes[0].path == "$.a"
    assert recent.total_responses == 2
    assert recent.change_frequency == 1


def test_drift_record_fields(engine, make_response):
    result = engine.compare_responses(make_response({"id": "1"}), make_response({}))

    record = build_drift_records(ENDPOINT_ID, result, DETECTED_AT)[0]

    assert set(record.model_dump()) == {
        "endpoint_id", "drift_type", "severity", "description", "field_path",
        "before_value", "after_value", "breaking", "detected_at",
    }
