"""
Group / aggregate engine.

Rows are partitioned by a composite key made of the dimension values
joined with ``|``.  Groups keep first-seen order.  ``count`` and ``sum``
are running totals; ``avg``, ``min`` and ``max`` buffer the coerced values
per group and per measure and are reduced once the scan is done.  The
buffers live outside the output rows.
"""
from __future__ import annotations

from typing import Sequence

from datachat.engine.spec import Measure, Row, Table
from datachat.engine.values import to_measure

KEY_SEPARATOR = "|"

_BUFFERED = {"avg", "min", "max"}


def group_key(row: Row, dimensions: Sequence[str]) -> str:
    return KEY_SEPARATOR.join(str(row.get(dim, "")) for dim in dimensions)


def _reduce(aggregation: str, values: list[int | float]) -> int | float:
    if aggregation == "avg":
        return sum(values) / len(values)
    if aggregation == "min":
        return min(values)
    return max(values)


def aggregate(rows: Table, dimensions: Sequence[str], measures: Sequence[Measure]) -> Table:
    """Return one row per distinct dimension combination.

    Each output row holds the dimension values of the first row seen for
    that key, plus one ``{aggregation}_{field}`` column per measure.
    """
    if not dimensions:
        raise ValueError("aggregate() needs at least one dimension")

    # One accumulator per output column; a repeated measure is counted once
    unique: dict[str, Measure] = {}
    for m in measures:
        unique.setdefault(m.output_column, m)
    measures = list(unique.values())

    groups: dict[str, Row] = {}
    buffers: dict[str, list[list[int | float]]] = {}

    for row in rows:
        key = group_key(row, dimensions)
        group = groups.get(key)
        if group is None:
            group = {dim: row.get(dim) for dim in dimensions}
            for m in measures:
                group[m.output_column] = 0
            groups[key] = group
            buffers[key] = [[] for _ in measures]

        for i, m in enumerate(measures):
            if m.aggregation == "count":
                group[m.output_column] += 1
                continue
            value = to_measure(row.get(m.field))
            if m.aggregation == "sum":
                group[m.output_column] += value
            else:
                buffers[key][i].append(value)

    for key, group in groups.items():
        for i, m in enumerate(measures):
            if m.aggregation in _BUFFERED:
                group[m.output_column] = _reduce(m.aggregation, buffers[key][i])

    return list(groups.values())

