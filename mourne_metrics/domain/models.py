"""
Domain models for the store performance engine.

Pure data classes + value objects. No I/O, no side effects.
All instances are built fresh per computation and never mutated afterwards.
"""
from dataclasses import dataclass, field
from datetime import date as Date
from enum import Enum
from typing import FrozenSet, Optional


UNKNOWN_LABEL = "Unknown"


class PercentUnit(Enum):
    """Scale a raw percentage column is expressed in."""
    AUTO = "auto"          # infer from magnitude: > 1 means 0-100 scale
    FRACTION = "fraction"  # already 0-1
    POINTS = "points"      # 0-100, always divide by 100


class Domain(Enum):
    """Scoring domains combined into the MPI."""
    SERVICE = "service"
    COST = "cost"
    OSA = "osa"


class MetricStatus(Enum):
    """Traffic-light status of a metric against its store target."""
    GOOD = "good"
    OK = "ok"
    BAD = "bad"
    NA = "na"


@dataclass(frozen=True)
class MetricRecord:
    """
    One observation for a (store, date) or (store, date, manager) combination.

    Produced once per raw row by ``record_from_row``; every numeric field is
    optional and None means "not observed".  Percent fields are stored on the
    0-1 scale.
    """
    store: Optional[str] = None
    date: Optional[Date] = None
    manager: Optional[str] = None
    manager_id: Optional[str] = None

    # --- Currency / hours (summed) ---
    sales: Optional[float] = None
    forecast_sales: Optional[float] = None
    labour_cost: Optional[float] = None
    ideal_food_cost: Optional[float] = None
    actual_food_cost: Optional[float] = None
    additional_hours: Optional[float] = None

    # --- Service (averaged) ---
    dot_pct: Optional[float] = None            # fraction [0,1]
    extremes_pct: Optional[float] = None       # fraction [0,1]
    sbr_pct: Optional[float] = None            # fraction [0,1]
    labour_pct: Optional[float] = None         # fraction, as reported on the shift
    food_variance_pct: Optional[float] = None  # as reported, signed
    rnl_minutes: Optional[float] = None

    # --- OSA (averaged) ---
    points_lost: Optional[float] = None
    stars: Optional[float] = None
    starting_points: Optional[float] = None
    overall_points: Optional[float] = None

    created_at: Optional[str] = None


@dataclass(frozen=True)
class AggregateRow:
    """
    Reduction of all records sharing one dimension value.

    Summed fields default to 0.0; averaged fields are None when no record in
    the group observed them.  Ratios are derived from the sums.
    """
    key: str
    count: int = 0
    days: int = 0

    # --- Sums ---
    sales: float = 0.0
    forecast_sales: float = 0.0
    labour_cost: float = 0.0
    ideal_food_cost: float = 0.0
    actual_food_cost: float = 0.0
    additional_hours: float = 0.0

    # --- Averages ---
    avg_dot_pct: Optional[float] = None
    avg_extremes_pct: Optional[float] = None
    avg_sbr_pct: Optional[float] = None
    avg_labour_pct: Optional[float] = None
    avg_food_variance_pct: Optional[float] = None
    avg_rnl_minutes: Optional[float] = None
    avg_additional_hours: Optional[float] = None
    avg_points_lost: Optional[float] = None
    avg_stars: Optional[float] = None
    avg_overall_points: Optional[float] = None

    # Summed fields with at least one observation; None = treat all as observed.
    observed_sums: Optional[FrozenSet[str]] = None

    def _observed_any(self, *names: str) -> bool:
        if self.observed_sums is None:
            return True
        return any(n in self.observed_sums for n in names)

    @property
    def labour_percent(self) -> Optional[float]:
        """Labour cost as a 0-100 percentage of sales; missing labour counts as 0."""
        if self.sales <= 0:
            return None
        return self.labour_cost / self.sales * 100.0

    @property
    def food_variance_percent(self) -> Optional[float]:
        """
        (actual - ideal food cost) as a signed 0-100 percentage of sales.

        A missing ideal or actual value counts as 0; None when the group
        recorded no food cost at all, so the food metric drops out of the
        cost score instead of reading as a perfect 0 % variance.
        """
        if self.sales <= 0 or not self._observed_any("ideal_food_cost", "actual_food_cost"):
            return None
        return (self.actual_food_cost - self.ideal_food_cost) / self.sales * 100.0

    @property
    def sales_variance_percent(self) -> Optional[float]:
        """Actual vs forecast sales, 0-100 scale."""
        if self.forecast_sales <= 0:
            return None
        return (self.sales - self.forecast_sales) / self.forecast_sales * 100.0

    @property
    def effective_labour_percent(self) -> Optional[float]:
        # Service shifts carry a reported labour % instead of £ values.
        derived = self.labour_percent
        if derived is not None and self._observed_any("labour_cost"):
            return derived
        if self.avg_labour_pct is None:
            return None
        return self.avg_labour_pct * 100.0


@dataclass(frozen=True)
class SubScores:
    """Per-domain scores in [0,100]; None when the domain had no input."""
    service: Optional[float] = None
    cost: Optional[float] = None
    osa: Optional[float] = None

    def as_dict(self) -> dict:
        return {
            Domain.SERVICE.value: self.service,
            Domain.COST.value: self.cost,
            Domain.OSA.value: self.osa,
        }


@dataclass(frozen=True)
class RankedEntry:
    """A dimension value placed at a 1-based position in a leaderboard."""
    position: int
    key: str
    aggregate: AggregateRow
    scores: SubScores = field(default_factory=SubScores)
    composite: Optional[float] = None


@dataclass(frozen=True)
class ImprovementEntry:
    """Week-on-week DOT movement for one store."""
    position: int
    key: str
    current_dot_pct: Optional[float]
    previous_dot_pct: Optional[float]
    dot_delta: Optional[float]  # None unless both weeks have DOT data


@dataclass(frozen=True)
class AuditEntry:
    """One OSA audit placed in the per-audit table."""
    position: int
    record: MetricRecord


@dataclass(frozen=True)
class StoreTargets:
    """Per-store operating targets (fractions, except minutes)."""
    dot_min: float
    labour_max: float
    rnl_max_minutes: float
    extremes_max: float
    food_variance_abs_max: float
