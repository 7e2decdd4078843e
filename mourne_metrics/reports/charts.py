"""
Leaderboard charts rendered to PNG with matplotlib (headless Agg backend).
"""
import logging
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import matplotlib
matplotlib.use("Agg")
from matplotlib.figure import Figure  # noqa: E402

from ..domain.models import RankedEntry
from .text import metric_header, metric_value

logger = logging.getLogger(__name__)


def render_leaderboard_chart(
    entries: Sequence[RankedEntry],
    path: Union[str, Path],
    title: str = "",
    metric: str = "composite",
    labels: Optional[Mapping[str, str]] = None,
) -> Path:
    """
    Horizontal bar chart of one metric, position 1 at the top.

    Entries without a value for ``metric`` keep their row with an empty bar
    and an "n/a" annotation.

    Returns:
        Path of the written PNG.
    """
    path = Path(path)
    header = metric_header(metric)
    labels = labels or {}

    names = [labels.get(e.key, e.key) for e in entries]
    values = [metric_value(e, metric) for e in entries]

    fig = Figure(figsize=(8, max(2.5, 0.45 * len(entries) + 1.2)), dpi=100)
    ax = fig.add_subplot(1, 1, 1)
    ax.set_title(title or header)
    ax.set_xlabel(header)
    ax.grid(True, axis="x", alpha=0.3)

    if entries:
        y = list(range(len(entries)))
        widths = [0.0 if v is None else v for v in values]
        bars = ax.barh(y, widths, color="#1f77b4")
        for bar, value in zip(bars, values):
            if value is None:
                bar.set_facecolor("none")
                bar.set_edgecolor("#999999")
                ax.annotate("n/a", (0, bar.get_y() + bar.get_height() / 2),
                            xytext=(4, 0), textcoords="offset points",
                            va="center", color="#999999")
        ax.set_yticks(y)
        ax.set_yticklabels([f"{e.position}. {n}" for e, n in zip(entries, names)])
        ax.invert_yaxis()
    else:
        ax.text(0.5, 0.5, "No data", ha="center", va="center", transform=ax.transAxes)
        ax.set_yticks([])

    fig.tight_layout()
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, format="png")
    logger.debug(f"Wrote {metric} chart with {len(entries)} bars to {path}")
    return path
