"""
Store / Manager Scoring Engine — Service / Cost / OSA

Maps aggregated metrics to three 0–100 domain sub-scores:

  service_score
    DOT %, extremes > 40 min %, rack-and-load minutes
    (optionally additional hours).

  cost_score
    Labour % of sales, food variance % of sales (absolute).

  osa_score
    Average stars (0–5) and average points lost per audit.

Two scoring profiles are available:

  linear (default)
    Simple monotone transfer functions per metric, clamped to [0, 100];
    a domain is the unweighted mean of its available metric scores and the
    MPI is the unweighted mean of the available domains.

  banded
    The threshold bands shown to managers on the MPI page
    (100 / 80 / 60 / 0), with weighted metrics and domains
    (Service 50 %, Cost 30 %, OSA 20 %).

Design constraints:
  - Pure functions: no file I/O, no clock, deterministic given inputs.
  - A None metric is excluded from its average, never scored as 0.
  - A domain with no available metric is None; so is an MPI with no domain.
  - Weights are renormalised over the metrics/domains actually present.
  - Percent inputs for DOT / extremes accept 0–1 or 0–100 scale; labour and
    food variance are on the 0–100 (percentage point) scale.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from ..domain.models import AggregateRow, SubScores
from ..domain.normalize import clamp as _clamp, normalise_percent01

# ---------------------------------------------------------------------------
# Constants & defaults
# ---------------------------------------------------------------------------

EXTREMES_PENALTY = 1000.0       # 1 % extremes costs 10 points
RNL_PENALTY_PER_MINUTE = 5.0    # >= 20 minutes floors the score
ADDITIONAL_HOURS_PENALTY = 5.0
FOOD_VARIANCE_PENALTY = 10.0    # 0.1 pp of variance costs 1 point
POINTS_LOST_PENALTY = 10.0
MAX_STARS = 5.0

# Banded profile: (threshold, score) pairs checked in order.
DOT_BANDS = ((0.80, 100.0), (0.75, 80.0), (0.70, 60.0))               # higher is better
EXTREMES_BANDS = ((0.03, 100.0), (0.05, 80.0), (0.08, 60.0))          # lower is better
RNL_BANDS = ((10.0, 100.0), (15.0, 80.0), (20.0, 60.0))
ADDITIONAL_HOURS_BANDS = ((1.0, 100.0), (2.5, 80.0), (4.0, 60.0))
LABOUR_BANDS = ((22.0, 100.0), (24.0, 80.0), (26.0, 60.0))
FOOD_VARIANCE_BANDS = ((0.5, 100.0), (1.0, 80.0), (1.5, 60.0))
STARS_BANDS = ((5.0, 100.0), (4.0, 80.0), (3.0, 60.0))
POINTS_LOST_BANDS = ((10.0, 100.0), (20.0, 80.0), (30.0, 60.0))

BANDED_SERVICE_WEIGHTS = {"dot": 0.4, "extremes": 0.3, "rnl": 0.2, "additional_hours": 0.1}
BANDED_COST_WEIGHTS = {"labour": 0.6, "food_variance": 0.4}
BANDED_OSA_WEIGHTS = {"stars": 0.5, "points_lost": 0.5}
BANDED_MPI_WEIGHTS = {"service": 0.5, "cost": 0.3, "osa": 0.2}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServiceMetrics:
    dot: Optional[float] = None               # 0–1 or 0–100
    extremes: Optional[float] = None          # 0–1 or 0–100
    rnl_minutes: Optional[float] = None
    additional_hours: Optional[float] = None


@dataclass(frozen=True)
class CostMetrics:
    labour_pct: Optional[float] = None          # percentage points, e.g. 24.5
    food_variance_pct: Optional[float] = None   # percentage points, signed


@dataclass(frozen=True)
class ScoringProfile:
    """
    Named scoring configuration.

    domain_weights: None → unweighted mean of available domains.
    """
    name: str
    banded: bool = False
    include_additional_hours: bool = False
    domain_weights: Optional[Dict[str, float]] = field(default=None)


LINEAR_PROFILE = ScoringProfile(name="linear")
BANDED_PROFILE = ScoringProfile(
    name="banded",
    banded=True,
    include_additional_hours=True,
    domain_weights=dict(BANDED_MPI_WEIGHTS),
)

PROFILES = {p.name: p for p in (LINEAR_PROFILE, BANDED_PROFILE)}


def get_profile(name: str) -> ScoringProfile:
    """
    Look up a scoring profile by name.

    Raises:
        ValueError: If the name is not a known profile.
    """
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Invalid scoring profile: {name}. Must be one of {', '.join(sorted(PROFILES))}."
        ) from None


# ---------------------------------------------------------------------------
# Averaging utilities
# ---------------------------------------------------------------------------

def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def average_available(values: Sequence[Optional[float]]) -> Optional[float]:
    """Unweighted mean of the non-None values; None if none are present."""
    valid = [v for v in values if v is not None]
    if not valid:
        return None
    return sum(valid) / len(valid)


def weighted_available(pairs: Sequence[Tuple[Optional[float], float]]) -> Optional[float]:
    """
    Weighted mean over the (value, weight) pairs whose value is present.
    Weights are renormalised over the present values; None if none present.
    """
    valid = [(v, w) for v, w in pairs if v is not None]
    total_w = sum(w for _, w in valid)
    if not valid or total_w <= 0:
        return None
    return sum(v * w for v, w in valid) / total_w


# ---------------------------------------------------------------------------
# Linear transfer functions (per metric, pure)
# ---------------------------------------------------------------------------

def score_dot(dot: Optional[float]) -> Optional[float]:
    """Higher is better, linear: 82 % on time → 82."""
    if not _finite(dot):
        return None
    return _clamp(normalise_percent01(dot) * 100.0, 0.0, 100.0)


def score_extremes(extremes: Optional[float]) -> Optional[float]:
    if not _finite(extremes):
        return None
    return _clamp(100.0 - normalise_percent01(extremes) * EXTREMES_PENALTY, 0.0, 100.0)


def score_rnl_minutes(rnl_minutes: Optional[float]) -> Optional[float]:
    if not _finite(rnl_minutes):
        return None
    return _clamp(100.0 - rnl_minutes * RNL_PENALTY_PER_MINUTE, 0.0, 100.0)


def score_additional_hours(additional_hours: Optional[float]) -> Optional[float]:
    if not _finite(additional_hours):
        return None
    return _clamp(100.0 - additional_hours * ADDITIONAL_HOURS_PENALTY, 0.0, 100.0)


def score_labour_pct(labour_pct: Optional[float]) -> Optional[float]:
    if not _finite(labour_pct):
        return None
    return _clamp(100.0 - labour_pct, 0.0, 100.0)


def score_food_variance_pct(food_variance_pct: Optional[float]) -> Optional[float]:
    """Symmetric: over- and under-use are penalised alike."""
    if not _finite(food_variance_pct):
        return None
    return _clamp(100.0 - abs(food_variance_pct) * FOOD_VARIANCE_PENALTY, 0.0, 100.0)


def score_stars(avg_stars: Optional[float]) -> Optional[float]:
    if not _finite(avg_stars):
        return None
    return _clamp(avg_stars / MAX_STARS * 100.0, 0.0, 100.0)


def score_points_lost(avg_points_lost: Optional[float]) -> Optional[float]:
    if not _finite(avg_points_lost):
        return None
    return _clamp(100.0 - avg_points_lost * POINTS_LOST_PENALTY, 0.0, 100.0)


# ---------------------------------------------------------------------------
# Banded transfer functions
# ---------------------------------------------------------------------------

def _band_higher(value: Optional[float], bands) -> Optional[float]:
    if not _finite(value):
        return None
    for threshold, score in bands:
        if value >= threshold:
            return score
    return 0.0


def _band_lower(value: Optional[float], bands) -> Optional[float]:
    if not _finite(value):
        return None
    for threshold, score in bands:
        if value <= threshold:
            return score
    return 0.0


def band_dot(dot: Optional[float]) -> Optional[float]:
    return _band_higher(normalise_percent01(dot) if _finite(dot) else None, DOT_BANDS)


def band_extremes(extremes: Optional[float]) -> Optional[float]:
    return _band_lower(normalise_percent01(extremes) if _finite(extremes) else None, EXTREMES_BANDS)


def band_rnl_minutes(rnl_minutes: Optional[float]) -> Optional[float]:
    return _band_lower(rnl_minutes, RNL_BANDS)


def band_additional_hours(additional_hours: Optional[float]) -> Optional[float]:
    return _band_lower(additional_hours, ADDITIONAL_HOURS_BANDS)


def band_labour_pct(labour_pct: Optional[float]) -> Optional[float]:
    return _band_lower(labour_pct, LABOUR_BANDS)


def band_food_variance_pct(food_variance_pct: Optional[float]) -> Optional[float]:
    if not _finite(food_variance_pct):
        return None
    return _band_lower(abs(food_variance_pct), FOOD_VARIANCE_BANDS)


def band_stars(avg_stars: Optional[float]) -> Optional[float]:
    return _band_higher(avg_stars, STARS_BANDS)


def band_points_lost(avg_points_lost: Optional[float]) -> Optional[float]:
    return _band_lower(avg_points_lost, POINTS_LOST_BANDS)


# ---------------------------------------------------------------------------
# Domain scores
# ---------------------------------------------------------------------------

def score_service(
    metrics: ServiceMetrics,
    include_additional_hours: bool = False,
) -> Optional[float]:
    """
    Service sub-score: mean of DOT, extremes and R&L scores (plus additional
    hours when requested).  None when every input is None.
    """
    parts = [
        score_dot(metrics.dot),
        score_extremes(metrics.extremes),
        score_rnl_minutes(metrics.rnl_minutes),
    ]
    if include_additional_hours:
        parts.append(score_additional_hours(metrics.additional_hours))
    return average_available(parts)


def score_cost(metrics: CostMetrics) -> Optional[float]:
    return average_available([
        score_labour_pct(metrics.labour_pct),
        score_food_variance_pct(metrics.food_variance_pct),
    ])


def score_osa(avg_stars: Optional[float], avg_points_lost: Optional[float]) -> Optional[float]:
    return average_available([score_stars(avg_stars), score_points_lost(avg_points_lost)])


def band_service(metrics: ServiceMetrics) -> Optional[float]:
    w = BANDED_SERVICE_WEIGHTS
    return weighted_available([
        (band_dot(metrics.dot), w["dot"]),
        (band_extremes(metrics.extremes), w["extremes"]),
        (band_rnl_minutes(metrics.rnl_minutes), w["rnl"]),
        (band_additional_hours(metrics.additional_hours), w["additional_hours"]),
    ])


def band_cost(metrics: CostMetrics) -> Optional[float]:
    w = BANDED_COST_WEIGHTS
    return weighted_available([
        (band_labour_pct(metrics.labour_pct), w["labour"]),
        (band_food_variance_pct(metrics.food_variance_pct), w["food_variance"]),
    ])


def band_osa(avg_stars: Optional[float], avg_points_lost: Optional[float]) -> Optional[float]:
    w = BANDED_OSA_WEIGHTS
    return weighted_available([
        (band_stars(avg_stars), w["stars"]),
        (band_points_lost(avg_points_lost), w["points_lost"]),
    ])


# ---------------------------------------------------------------------------
# AggregateRow → SubScores
# ---------------------------------------------------------------------------

def service_metrics_from(row: AggregateRow) -> ServiceMetrics:
    return ServiceMetrics(
        dot=row.avg_dot_pct,
        extremes=row.avg_extremes_pct,
        rnl_minutes=row.avg_rnl_minutes,
        additional_hours=row.avg_additional_hours,
    )


def cost_metrics_from(row: AggregateRow) -> CostMetrics:
    return CostMetrics(
        labour_pct=row.labour_percent,
        food_variance_pct=row.food_variance_percent,
    )


def score_aggregate(
    row: AggregateRow,
    profile: ScoringProfile = LINEAR_PROFILE,
) -> SubScores:
    """
    Compute the three domain sub-scores for one AggregateRow.

    Cost uses the sum-derived ratios of the row (labour_percent and
    food_variance_percent), never per-record averages.
    """
    service = service_metrics_from(row)
    cost = cost_metrics_from(row)
    if profile.banded:
        return SubScores(
            service=band_service(service),
            cost=band_cost(cost),
            osa=band_osa(row.avg_stars, row.avg_points_lost),
        )
    return SubScores(
        service=score_service(service, include_additional_hours=profile.include_additional_hours),
        cost=score_cost(cost),
        osa=score_osa(row.avg_stars, row.avg_points_lost),
    )


def score_all(
    rows: Dict[str, AggregateRow],
    profile: ScoringProfile = LINEAR_PROFILE,
) -> Dict[str, SubScores]:
    """Score every aggregate; same keys as the input."""
    return {key: score_aggregate(row, profile) for key, row in rows.items()}
