"""
Plain-text leaderboards for the report CLI.
"""
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..domain.models import RankedEntry

Extractor = Callable[[RankedEntry], Optional[float]]


def _scaled(value: Optional[float], factor: float) -> Optional[float]:
    return None if value is None else value * factor


# name -> (header, extractor, format spec)
METRICS: Dict[str, Tuple[str, Extractor, str]] = {
    "service": ("Service", lambda e: e.scores.service, ".0f"),
    "cost": ("Cost", lambda e: e.scores.cost, ".0f"),
    "osa": ("OSA", lambda e: e.scores.osa, ".0f"),
    "composite": ("MPI", lambda e: e.composite, ".0f"),
    "sales": ("Sales £", lambda e: e.aggregate.sales, ",.0f"),
    "labour_pct": ("Labour %", lambda e: e.aggregate.labour_percent, ".2f"),
    "food_variance_pct": ("Food var %", lambda e: e.aggregate.food_variance_percent, "+.2f"),
    "sales_variance_pct": ("Sales vs fcst %", lambda e: e.aggregate.sales_variance_percent, "+.1f"),
    "dot_pct": ("DOT %", lambda e: _scaled(e.aggregate.avg_dot_pct, 100.0), ".1f"),
    "extremes_pct": ("Extremes %", lambda e: _scaled(e.aggregate.avg_extremes_pct, 100.0), ".2f"),
    "rnl_minutes": ("R&L min", lambda e: e.aggregate.avg_rnl_minutes, ".1f"),
    "points_lost": ("Pts lost", lambda e: e.aggregate.avg_points_lost, ".1f"),
    "stars": ("Stars", lambda e: e.aggregate.avg_stars, ".2f"),
    "count": ("Rows", lambda e: float(e.aggregate.count), ".0f"),
}

DEFAULT_COLUMNS = ("service", "cost", "osa", "composite")
MISSING = "-"


def metric_value(entry: RankedEntry, metric: str) -> Optional[float]:
    """Value of a named metric for one entry (None when not observed)."""
    if metric not in METRICS:
        raise ValueError(f"Unknown metric: {metric}. Must be one of {', '.join(METRICS)}.")
    return METRICS[metric][1](entry)


def metric_header(metric: str) -> str:
    if metric not in METRICS:
        raise ValueError(f"Unknown metric: {metric}. Must be one of {', '.join(METRICS)}.")
    return METRICS[metric][0]


def format_value(value: Optional[float], spec: str) -> str:
    if value is None:
        return MISSING
    return format(value, spec)


def format_leaderboard(
    entries: Iterable[RankedEntry],
    columns: Sequence[str] = DEFAULT_COLUMNS,
    labels: Optional[Mapping[str, str]] = None,
    title: Optional[str] = None,
) -> str:
    """
    Render a leaderboard as an aligned text table.

    Args:
        entries: Ranked entries, already in position order.
        columns: Metric names from METRICS, after the position and name columns.
        labels:  Optional key → display name (e.g. profile id → manager name).
        title:   Optional heading line.

    Raises:
        ValueError: for an unknown column name.
    """
    for name in columns:
        metric_header(name)
    labels = labels or {}

    header = ["#", "Name"] + [metric_header(c) for c in columns]
    body: List[List[str]] = []
    for e in entries:
        row = [str(e.position), labels.get(e.key, e.key)]
        row += [format_value(metric_value(e, c), METRICS[c][2]) for c in columns]
        body.append(row)

    widths = [len(h) for h in header]
    for row in body:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def _line(cells: Sequence[str]) -> str:
        # name column left-aligned, numbers right-aligned
        parts = [
            cell.ljust(w) if i == 1 else cell.rjust(w)
            for i, (cell, w) in enumerate(zip(cells, widths))
        ]
        return "  ".join(parts).rstrip()

    lines = []
    if title:
        lines.append(title)
        lines.append("=" * len(title))
    lines.append(_line(header))
    lines.append("  ".join("-" * w for w in widths))
    if body:
        lines.extend(_line(row) for row in body)
    else:
        lines.append("(no data)")
    return "\n".join(lines)
