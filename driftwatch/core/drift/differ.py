"""
Drift Tree Differ
-----------------
Recursive comparison of two parsed JSON documents. Produces a flat,
ordered list of FieldDiff entries using JSON-pointer-like paths rooted at
"$" (objects as "$.key", arrays as "$.items[0]").
"""

from typing import Any, List, Optional, Tuple, Union

from driftwatch.core.drift.severity import (
    DEFAULT_PATH_CLASSIFIER, PathClassifier, determine_severity
)
from driftwatch.core.drift.types import DiffType, FieldDiff, NodeKind, Severity


ROOT_PATH = "$"


def node_kind(value: Any) -> NodeKind:
    """
    Map a parsed value onto the JSON kind it represents.

    int and float are both numbers; bool is checked first since it is an
    int subclass in Python.
    """
    if value is None:
        return NodeKind.NULL
    if isinstance(value, bool):
        return NodeKind.BOOLEAN
    if isinstance(value, (int, float)):
        return NodeKind.NUMBER
    if isinstance(value, str):
        return NodeKind.STRING
    if isinstance(value, dict):
        return NodeKind.OBJECT
    if isinstance(value, (list, tuple)):
        return NodeKind.ARRAY
    return NodeKind.SCALAR


def compare_values(
    previous: Any,
    current: Any,
    path: str = ROOT_PATH,
    classifier: Optional[PathClassifier] = None
) -> List[FieldDiff]:
    """
    Compare two parsed documents and list every divergence.

    The walk uses an explicit work stack instead of recursion, so nesting
    depth is bounded only by what the JSON parser accepts.

    Args:
        previous: Previously observed document
        current: Newly observed document
        path: Path of the documents' root
        classifier: Critical-path classifier used for severity

    Returns:
        FieldDiff entries in document order
    """
    classifier = classifier or DEFAULT_PATH_CLASSIFIER
    diffs: List[FieldDiff] = []

    # Entries are either a ready FieldDiff or a (previous, current, path)
    # triple still to be compared. Children are pushed in reverse so they
    # pop in document order.
    stack: List[Union[FieldDiff, Tuple[Any, Any, str]]] = [(previous, current, path)]

    while stack:
        item = stack.pop()
        if isinstance(item, FieldDiff):
            diffs.append(item)
            continue

        children = _compare_node(*item, classifier)
        stack.extend(reversed(children))

    return diffs


def _diff(
    path: str,
    kind: DiffType,
    classifier: PathClassifier,
    old_value: Any = None,
    new_value: Any = None
) -> FieldDiff:
    return FieldDiff(
        path=path,
        kind=kind,
        old_value=old_value,
        new_value=new_value,
        severity=determine_severity(path, kind, classifier)
    )


def _compare_node(previous: Any, current: Any, path: str, classifier: PathClassifier) -> List:
    """Compare one node; returns its own diffs and pending child comparisons, in order."""
    previous_kind = node_kind(previous)
    current_kind = node_kind(current)

    # Absent values
    if previous_kind is NodeKind.NULL and current_kind is NodeKind.NULL:
        return []
    if previous_kind is NodeKind.NULL:
        return [_diff(path, DiffType.ADDED, classifier, new_value=current)]
    if current_kind is NodeKind.NULL:
        return [_diff(path, DiffType.REMOVED, classifier, old_value=previous)]

    # Type changes stop recursion into the subtree
    if previous_kind is not current_kind or (
        previous_kind is NodeKind.SCALAR and type(previous) is not type(current)
    ):
        return [FieldDiff(
            path=path,
            kind=DiffType.TYPE_CHANGED,
            old_value=previous,
            new_value=current,
            severity=Severity.CRITICAL
        )]

    if previous_kind is NodeKind.OBJECT:
        return _object_children(previous, current, path, classifier)
    if previous_kind is NodeKind.ARRAY:
        return _array_children(previous, current, path)
    if previous != current:
        return [_diff(path, DiffType.MODIFIED, classifier, old_value=previous, new_value=current)]
    return []


def _object_children(previous, current, path, classifier) -> List:
    # Key presence decides added/removed, so a key holding null still counts
    children: List = [
        _diff(f"{path}.{key}", DiffType.REMOVED, classifier, old_value=value)
        for key, value in previous.items()
        if key not in current
    ]

    for key, value in current.items():
        field_path = f"{path}.{key}"
        if key in previous:
            children.append((previous[key], value, field_path))
        else:
            children.append(_diff(field_path, DiffType.ADDED, classifier, new_value=value))

    return children


def _array_children(previous, current, path) -> List:
    children: List = []

    # Length changes are reported on the array itself, on top of element diffs
    if len(previous) != len(current):
        children.append(FieldDiff(
            path=path,
            kind=DiffType.MODIFIED,
            old_value=f"array length: {len(previous)}",
            new_value=f"array length: {len(current)}",
            severity=Severity.MEDIUM
        ))

    for i in range(max(len(previous), len(current))):
        previous_item = previous[i] if i < len(previous) else None
        current_item = current[i] if i < len(current) else None
        children.append((previous_item, current_item, f"{path}[{i}]"))

    return children
