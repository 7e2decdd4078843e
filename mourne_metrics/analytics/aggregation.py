"""
Aggregator — groups MetricRecords by a dimension and reduces each group.

Rules:
  - Records outside the (optional) half-open date window are dropped from
    every group; undated records are dropped whenever a window is given.
  - Missing / blank dimension values are bucketed under "Unknown" so data
    gaps stay visible instead of silently disappearing.
  - Summed fields: plain addition, a missing value contributes 0.
  - Averaged fields: mean of the non-None observations only; a field with no
    observations in the group is None (never 0, never NaN).
  - Ratios (labour %, food variance %) are derived from the sums on
    AggregateRow, i.e. sum-then-divide, never a mean of per-row ratios.

Pure functions: no I/O, no clock.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from ..domain.models import AggregateRow, MetricRecord, UNKNOWN_LABEL
from ..domain.normalize import normalise_label
from ..domain.windows import DateWindow

logger = logging.getLogger(__name__)

GroupBy = Union[str, Callable[[MetricRecord], Optional[str]]]

# record attribute -> AggregateRow attribute
SUMMED_FIELDS: Dict[str, str] = {
    "sales": "sales",
    "forecast_sales": "forecast_sales",
    "labour_cost": "labour_cost",
    "ideal_food_cost": "ideal_food_cost",
    "actual_food_cost": "actual_food_cost",
    "additional_hours": "additional_hours",
}

AVERAGED_FIELDS: Dict[str, str] = {
    "dot_pct": "avg_dot_pct",
    "extremes_pct": "avg_extremes_pct",
    "sbr_pct": "avg_sbr_pct",
    "labour_pct": "avg_labour_pct",
    "food_variance_pct": "avg_food_variance_pct",
    "rnl_minutes": "avg_rnl_minutes",
    "additional_hours": "avg_additional_hours",
    "points_lost": "avg_points_lost",
    "stars": "avg_stars",
    "overall_points": "avg_overall_points",
}

# Summed fields owned by cost entries
COST_SUM_FIELDS = ("sales", "labour_cost", "ideal_food_cost", "actual_food_cost")

DIMENSIONS = ("store", "manager", "manager_id")


def _key_selector(group_by: GroupBy) -> Callable[[MetricRecord], Optional[str]]:
    if callable(group_by):
        return group_by
    if group_by not in DIMENSIONS:
        raise ValueError(
            f"Invalid dimension: {group_by}. Must be one of {', '.join(DIMENSIONS)} or a callable."
        )
    return lambda rec: getattr(rec, group_by)


def reduce_group(key: str, records: Sequence[MetricRecord]) -> AggregateRow:
    """Reduce one group's records to an AggregateRow."""
    values: Dict[str, object] = {}
    observed = set()

    for field_name, out_name in SUMMED_FIELDS.items():
        total = 0.0
        for rec in records:
            v = getattr(rec, field_name)
            if v is not None:
                total += v
                observed.add(field_name)
        values[out_name] = total

    for field_name, out_name in AVERAGED_FIELDS.items():
        obs = np.array(
            [getattr(rec, field_name) for rec in records if getattr(rec, field_name) is not None],
            dtype=float,
        )
        values[out_name] = float(obs.mean()) if obs.size else None

    days = len({rec.date for rec in records if rec.date is not None})

    return AggregateRow(
        key=key,
        count=len(records),
        days=days,
        observed_sums=frozenset(observed),
        **values,
    )


def group_records(
    records: Iterable[MetricRecord],
    group_by: GroupBy = "store",
    window: Optional[DateWindow] = None,
) -> Dict[str, List[MetricRecord]]:
    """Bucket in-window records by dimension value."""
    selector = _key_selector(group_by)
    buckets: Dict[str, List[MetricRecord]] = defaultdict(list)
    skipped = 0
    for rec in records:
        if window is not None and not window.contains(rec.date):
            skipped += 1
            continue
        key = normalise_label(selector(rec), UNKNOWN_LABEL)
        buckets[key].append(rec)
    if skipped:
        logger.debug(f"Excluded {skipped} records outside window {window}")
    return dict(buckets)


def aggregate(
    records: Iterable[MetricRecord],
    group_by: GroupBy = "store",
    window: Optional[DateWindow] = None,
) -> Dict[str, AggregateRow]:
    """
    Group records by a dimension and reduce each group.

    Args:
        records:  MetricRecords (already normalised).
        group_by: "store", "manager", "manager_id", or a callable returning
                  the group label for a record.
        window:   Optional half-open date window.

    Returns:
        Dict group label -> AggregateRow.  Ordering is not meaningful;
        leaderboards sort explicitly.
    """
    buckets = group_records(records, group_by, window)
    return {key: reduce_group(key, recs) for key, recs in buckets.items()}


def aggregate_all(
    records: Iterable[MetricRecord],
    window: Optional[DateWindow] = None,
    label: str = "Area",
) -> AggregateRow:
    """Single AggregateRow over every in-window record."""
    in_window = [r for r in records if window is None or window.contains(r.date)]
    return reduce_group(label, in_window)


def ensure_keys(
    aggregates: Dict[str, AggregateRow],
    keys: Iterable[str],
) -> Dict[str, AggregateRow]:
    """Copy of ``aggregates`` with an empty row for every key lacking data."""
    out = dict(aggregates)
    for key in keys:
        if key not in out:
            out[key] = reduce_group(key, [])
    return out


def with_cost_sums(row: AggregateRow, cost_row: Optional[AggregateRow] = None) -> AggregateRow:
    """
    Copy of ``row`` whose cost sums come from ``cost_row`` alone.

    Service shifts report sales too, so a group joining shifts with cost
    entries would divide cost-entry labour by the sales of both.  Without a
    ``cost_row`` the cost sums are zeroed and the cost ratios become None.
    """
    base = row.observed_sums if row.observed_sums is not None else frozenset(SUMMED_FIELDS)
    observed = set(base) - set(COST_SUM_FIELDS)
    values = {name: 0.0 for name in COST_SUM_FIELDS}
    if cost_row is not None:
        cost_observed = (
            cost_row.observed_sums if cost_row.observed_sums is not None else frozenset(COST_SUM_FIELDS)
        )
        observed |= set(cost_observed) & set(COST_SUM_FIELDS)
        values = {name: getattr(cost_row, name) for name in COST_SUM_FIELDS}
    return replace(row, observed_sums=frozenset(observed), **values)
