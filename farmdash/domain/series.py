"""
Time series merging
===================

Joins two independently sampled aggregate series into one chart table keyed
by formatted time label. Pure functions, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any, Callable, Iterable

from farmdash.schemas.telemetry import AggregatedPoint
from farmdash.utils.time import DEFAULT_LABEL_FORMAT, format_time_label

LabelFormatter = Callable[[AggregatedPoint], str]


@dataclass(frozen=True)
class ChartRow:
    """One time label with the sparse set of series values present at it."""

    time_label: str
    values: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"timeLabel": self.time_label, **self.values}


def label_formatter(fmt: str = DEFAULT_LABEL_FORMAT, tz: tzinfo | None = None) -> LabelFormatter:
    """Build the point -> label function used to bucket rows."""

    def _format(point: AggregatedPoint) -> str:
        return format_time_label(point.timestamp, fmt, tz)

    return _format


def merge_series(
    series_a: Iterable[AggregatedPoint],
    series_b: Iterable[AggregatedPoint],
    key_a: str,
    key_b: str,
    *,
    label: LabelFormatter | None = None,
) -> list[ChartRow]:
    """
    Merge two aggregate series into rows sorted by label.

    Every label seen in either series yields exactly one row. A value is set
    only where its series had a non-empty window at that label; nothing is
    interpolated or zero-filled. Within one series a later point wins a label
    collision.

    Args:
        series_a: Points for the first field.
        series_b: Points for the second field.
        key_a: Row key for values from ``series_a``.
        key_b: Row key for values from ``series_b``.
        label: Point -> label function, defaults to local ``HH:MM``.

    Returns:
        Chart rows in ascending lexicographic label order.
    """
    if key_a == key_b:
        raise ValueError(f"series keys must differ, got {key_a!r} twice")

    label = label or label_formatter()
    table: dict[str, dict[str, float]] = {}

    for key, series in ((key_a, series_a), (key_b, series_b)):
        for point in series:
            values = table.setdefault(label(point), {})
            if point.average_value is None:
                # Empty window: keep the label, drop whatever an earlier point left here
                values.pop(key, None)
            else:
                values[key] = point.average_value

    return [ChartRow(time_label=time_label, values=table[time_label]) for time_label in sorted(table)]


def rows_to_dicts(rows: Iterable[ChartRow]) -> list[dict[str, Any]]:
    return [row.to_dict() for row in rows]
