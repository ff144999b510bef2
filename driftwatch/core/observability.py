"""
Observability Module
-------------------
This module provides Prometheus metrics for drift checks and the HTTP API.
The drift engine itself stays free of side effects; metrics are recorded
by the service layer around engine calls.
"""

import time
import logging
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from fastapi import FastAPI
from prometheus_client import Counter, Histogram, Info
from starlette_exporter import PrometheusMiddleware, handle_metrics

from driftwatch.core.config import settings
from driftwatch.core.drift.types import DiffResult

# Set up logging
logger = logging.getLogger(__name__)

# Prometheus metrics
DRIFT_COMPARISON_COUNTER = Counter(
    'driftwatch_drift_comparisons_total',
    'Total number of response comparisons',
    ['outcome']
)

DRIFT_CHANGE_COUNTER = Counter(
    'driftwatch_drift_changes_total',
    'Total number of drift changes detected',
    ['category', 'severity', 'breaking']
)

DRIFT_COMPARISON_DURATION = Histogram(
    'driftwatch_drift_comparison_duration_seconds',
    'Duration of response comparisons in seconds',
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5)
)

API_REQUEST_DURATION = Histogram(
    'driftwatch_api_request_duration_seconds',
    'Duration of API requests in seconds',
    ['endpoint', 'method', 'status_code']
)

SYSTEM_INFO = Info(
    'driftwatch_system_info',
    'Information about the DriftWatch system'
)

SYSTEM_INFO.info({'version': settings.VERSION})


@contextmanager
def timed_execution(
    metric: Histogram,
    labels: Optional[Dict[str, str]] = None
) -> Generator[None, None, None]:
    """
    Context manager to measure execution time

    Args:
        metric: Prometheus histogram to record duration
        labels: Labels to apply to the metric
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - start_time
        if labels:
            metric.labels(**labels).observe(duration)
        else:
            metric.observe(duration)


def record_diff_metrics(result: DiffResult) -> None:
    """Count every change of a diff result by category, severity and breaking flag."""
    for change in result.structural_changes:
        DRIFT_CHANGE_COUNTER.labels(
            category="structural",
            severity=change.severity.value,
            breaking=str(change.breaking).lower()
        ).inc()

    for change in result.data_changes:
        DRIFT_CHANGE_COUNTER.labels(
            category="data",
            severity=change.severity.value,
            breaking="false"
        ).inc()

    if result.performance_change is not None:
        DRIFT_CHANGE_COUNTER.labels(
            category="performance",
            severity=result.performance_change.severity.value,
            breaking="false"
        ).inc()


def initialize_metrics(app: FastAPI) -> None:
    """
    Add Prometheus middleware and expose a /metrics endpoint

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(
        PrometheusMiddleware,
        app_name="driftwatch",
        prefix="driftwatch",
        group_paths=True
    )
    app.add_route("/metrics", handle_metrics)

    logger.info("Prometheus metrics initialized")
