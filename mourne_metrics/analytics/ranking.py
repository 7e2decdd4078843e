"""
Composite ranker — MPI composite score and leaderboards.

Every leaderboard sorts a list of scored AggregateRows with a tuple key and
assigns positions 1..N by index after sorting.  Missing (None) metrics always
sort after present ones, whatever the direction.  Rows are pre-sorted by key
so that exact ties come out in a deterministic order.
"""

from __future__ import annotations

import dataclasses
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .. import config
from ..domain.models import (
    AggregateRow,
    AuditEntry,
    ImprovementEntry,
    MetricRecord,
    RankedEntry,
    SubScores,
)
from .scoring import (
    LINEAR_PROFILE,
    ScoringProfile,
    average_available,
    score_aggregate,
    weighted_available,
)


LABOUR_TARGET_PCT = config.LABOUR_TARGET   # labour % of sales at or below which a row is on target

SortKey = Callable[[RankedEntry], Tuple]
Aggregates = Union[Mapping[str, AggregateRow], Iterable[AggregateRow]]

AUDIT_SORT_MODES = ("points", "stars", "recent")


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------

def composite_score(
    scores: SubScores,
    weights: Optional[Mapping[str, float]] = None,
) -> Optional[float]:
    """
    MPI: mean of the non-None domain scores.

    With ``weights`` (keys service / cost / osa) the mean is weighted and the
    weights are renormalised over the domains present.  None when every
    domain is None.
    """
    if weights is None:
        return average_available([scores.service, scores.cost, scores.osa])
    return weighted_available([
        (scores.service, weights.get("service", 0.0)),
        (scores.cost, weights.get("cost", 0.0)),
        (scores.osa, weights.get("osa", 0.0)),
    ])


# ---------------------------------------------------------------------------
# Sort-key helpers
# ---------------------------------------------------------------------------

def _asc(value: Optional[float]) -> Tuple[int, float]:
    return (1, 0.0) if value is None else (0, value)


def _desc(value: Optional[float]) -> Tuple[int, float]:
    return (1, 0.0) if value is None else (0, -value)


def _abs_or_none(value: Optional[float]) -> Optional[float]:
    return None if value is None else abs(value)


def osa_sort_key(entry: RankedEntry) -> Tuple:
    """Lower points lost, then more stars, then more audits."""
    row = entry.aggregate
    return _asc(row.avg_points_lost) + _desc(row.avg_stars) + (-row.count,)


def cost_sort_key(entry: RankedEntry) -> Tuple:
    """Lower labour %, then lower (signed) food variance, then higher sales."""
    row = entry.aggregate
    return (
        _asc(row.labour_percent)
        + _asc(row.food_variance_percent)
        + (-row.sales,)
    )


def service_sort_key(entry: RankedEntry) -> Tuple:
    """Higher DOT, then lower labour %, then quicker rack-and-load."""
    row = entry.aggregate
    return (
        _desc(row.avg_dot_pct)
        + _asc(row.effective_labour_percent)
        + _asc(row.avg_rnl_minutes)
    )


def labour_target_sort_key(target_pct: float = LABOUR_TARGET_PCT) -> SortKey:
    """Rows at or under target first, then lowest labour %, then sales."""
    def key(entry: RankedEntry) -> Tuple:
        row = entry.aggregate
        labour = row.labour_percent
        delta = None if labour is None else max(0.0, labour - target_pct)
        return _asc(delta) + _asc(labour) + (-row.sales,)
    return key


def food_target_sort_key(entry: RankedEntry) -> Tuple:
    """Food variance closest to zero wins, then sales."""
    row = entry.aggregate
    return _asc(_abs_or_none(row.food_variance_percent)) + (-row.sales,)


def mpi_sort_key(entry: RankedEntry) -> Tuple:
    return _desc(entry.composite) + _desc(entry.scores.service)


# ---------------------------------------------------------------------------
# Leaderboards
# ---------------------------------------------------------------------------

def _rows(aggregates: Aggregates) -> List[AggregateRow]:
    if isinstance(aggregates, Mapping):
        return list(aggregates.values())
    return list(aggregates)


def build_leaderboard(
    aggregates: Aggregates,
    sort_key: SortKey,
    profile: ScoringProfile = LINEAR_PROFILE,
) -> List[RankedEntry]:
    """
    Score every aggregate, sort with ``sort_key`` and assign positions.

    Args:
        aggregates: AggregateRows (dict values or any iterable).
        sort_key:   Key function over an unpositioned RankedEntry.
        profile:    Scoring profile for sub-scores and composite.

    Returns:
        RankedEntry list; ``position`` is 1-based index after sorting.
    """
    unranked = []
    for row in sorted(_rows(aggregates), key=lambda r: r.key):
        scores = score_aggregate(row, profile)
        unranked.append(RankedEntry(
            position=0,
            key=row.key,
            aggregate=row,
            scores=scores,
            composite=composite_score(scores, profile.domain_weights),
        ))
    unranked.sort(key=sort_key)
    return [dataclasses.replace(e, position=i) for i, e in enumerate(unranked, start=1)]


def rank_osa(aggregates: Aggregates, profile: ScoringProfile = LINEAR_PROFILE) -> List[RankedEntry]:
    return build_leaderboard(aggregates, osa_sort_key, profile)


def rank_cost(aggregates: Aggregates, profile: ScoringProfile = LINEAR_PROFILE) -> List[RankedEntry]:
    return build_leaderboard(aggregates, cost_sort_key, profile)


def rank_service(aggregates: Aggregates, profile: ScoringProfile = LINEAR_PROFILE) -> List[RankedEntry]:
    return build_leaderboard(aggregates, service_sort_key, profile)


def rank_labour_vs_target(
    aggregates: Aggregates,
    target_pct: float = LABOUR_TARGET_PCT,
    profile: ScoringProfile = LINEAR_PROFILE,
) -> List[RankedEntry]:
    return build_leaderboard(aggregates, labour_target_sort_key(target_pct), profile)


def rank_food_vs_target(aggregates: Aggregates, profile: ScoringProfile = LINEAR_PROFILE) -> List[RankedEntry]:
    return build_leaderboard(aggregates, food_target_sort_key, profile)


def rank_mpi(aggregates: Aggregates, profile: ScoringProfile = LINEAR_PROFILE) -> List[RankedEntry]:
    return build_leaderboard(aggregates, mpi_sort_key, profile)


def rank_dot_improvement(
    current: Mapping[str, AggregateRow],
    previous: Mapping[str, AggregateRow],
) -> List[ImprovementEntry]:
    """
    Week-on-week DOT movement per key, biggest improvement first.

    Keys present in only one week (or lacking DOT data in one) get a None
    delta and sort last.
    """
    items = []
    for key in sorted(set(current) | set(previous)):
        cur = current[key].avg_dot_pct if key in current else None
        prev = previous[key].avg_dot_pct if key in previous else None
        delta = cur - prev if cur is not None and prev is not None else None
        items.append((key, cur, prev, delta))
    items.sort(key=lambda t: _desc(t[3]))
    return [
        ImprovementEntry(position=i, key=key, current_dot_pct=cur,
                         previous_dot_pct=prev, dot_delta=delta)
        for i, (key, cur, prev, delta) in enumerate(items, start=1)
    ]


# ---------------------------------------------------------------------------
# Per-audit OSA table
# ---------------------------------------------------------------------------

def _date_desc(rec: MetricRecord) -> Tuple[int, int]:
    return (1, 0) if rec.date is None else (0, -rec.date.toordinal())


def rank_osa_audits(
    records: Iterable[MetricRecord],
    sort_mode: str = "points",
) -> List[AuditEntry]:
    """
    Rank individual OSA audits.

    sort_mode:
        points — overall points desc, then stars desc, then most recent
        stars  — stars desc, then overall points desc
        recent — shift date desc, then created_at desc

    Audits without a team member name are dropped.

    Raises:
        ValueError: If sort_mode is not one of AUDIT_SORT_MODES.
    """
    if sort_mode not in AUDIT_SORT_MODES:
        raise ValueError(
            f"Invalid sort mode: {sort_mode}. Must be one of {', '.join(AUDIT_SORT_MODES)}."
        )
    rows = [r for r in records if r.manager and r.manager.strip()]

    if sort_mode == "recent":
        rows.sort(key=lambda r: r.created_at or "", reverse=True)
        rows.sort(key=_date_desc)
    elif sort_mode == "stars":
        rows.sort(key=lambda r: _desc(r.stars) + _desc(r.overall_points))
    else:
        rows.sort(key=lambda r: _desc(r.overall_points) + _desc(r.stars) + _date_desc(r))

    return [AuditEntry(position=i, record=r) for i, r in enumerate(rows, start=1)]


def top_entry(entries: List[RankedEntry]) -> Optional[RankedEntry]:
    """First entry of a leaderboard, or None when it is empty."""
    return entries[0] if entries else None


def positions(entries: Iterable[RankedEntry]) -> Dict[str, int]:
    """key → position lookup."""
    return {e.key: e.position for e in entries}
