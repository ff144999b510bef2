"""
Drift Detection Engine
---------------------
This package compares successive HTTP responses of an API endpoint and
classifies what changed (structure, data and latency) so operators can be
alerted to unintended API drift before it breaks consumers.

Drift refers to any difference between two time-ordered observations of
the same endpoint. The engine is a pure function of its inputs: it does
not fetch, persist or alert.
"""

from driftwatch.core.drift.detector import DiffEngine, get_diff_engine
from driftwatch.core.drift.differ import compare_values, node_kind
from driftwatch.core.drift.severity import (
    KeywordPathClassifier, PathClassifier, determine_severity
)
from driftwatch.core.drift.types import (
    ChangeContext, DiffResult, DiffType, FieldDiff, ResponseSnapshot,
    Severity, TrendAnalysis
)

__all__ = [
    'DiffEngine',
    'get_diff_engine',
    'compare_values',
    'node_kind',
    'KeywordPathClassifier',
    'PathClassifier',
    'determine_severity',
    'ChangeContext',
    'DiffResult',
    'DiffType',
    'FieldDiff',
    'ResponseSnapshot',
    'Severity',
    'TrendAnalysis'
]
