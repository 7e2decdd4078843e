"""
Per-store operating targets and traffic-light status rules for the daily update.
"""
from typing import Dict, Optional

from .models import MetricStatus, StoreTargets

STATUS_TOLERANCE = 0.002

DEFAULT_TARGETS: Dict[str, StoreTargets] = {
    "Downpatrick": StoreTargets(dot_min=0.82, labour_max=0.25, rnl_max_minutes=9,
                                extremes_max=0.03, food_variance_abs_max=0.003),
    "Kilkeel": StoreTargets(dot_min=0.78, labour_max=0.28, rnl_max_minutes=8,
                            extremes_max=0.04, food_variance_abs_max=0.003),
    "Newcastle": StoreTargets(dot_min=0.78, labour_max=0.25, rnl_max_minutes=9,
                              extremes_max=0.04, food_variance_abs_max=0.003),
    "Ballynahinch": StoreTargets(dot_min=0.78, labour_max=0.28, rnl_max_minutes=9,
                                 extremes_max=0.04, food_variance_abs_max=0.003),
}

FALLBACK_TARGETS = StoreTargets(
    dot_min=0.78, labour_max=0.28, rnl_max_minutes=9,
    extremes_max=0.04, food_variance_abs_max=0.003,
)


def targets_for_store(store: str, extremes_override: Optional[float] = None) -> StoreTargets:
    """
    Targets for a store, optionally replacing the extremes ceiling with the
    value the store entered in its daily inputs (fraction).
    """
    base = DEFAULT_TARGETS.get(store, FALLBACK_TARGETS)
    if extremes_override is None:
        return base
    return StoreTargets(
        dot_min=base.dot_min,
        labour_max=base.labour_max,
        rnl_max_minutes=base.rnl_max_minutes,
        extremes_max=extremes_override,
        food_variance_abs_max=base.food_variance_abs_max,
    )


def _within(a: float, b: float, tol: float) -> bool:
    return abs(a - b) <= tol


def status_higher_better(value: Optional[float], target_min: float,
                         tol: float = STATUS_TOLERANCE) -> MetricStatus:
    if value is None:
        return MetricStatus.NA
    if value >= target_min + tol:
        return MetricStatus.GOOD
    if _within(value, target_min, tol):
        return MetricStatus.OK
    return MetricStatus.BAD


def status_lower_better(value: Optional[float], target_max: float,
                        tol: float = STATUS_TOLERANCE) -> MetricStatus:
    if value is None:
        return MetricStatus.NA
    if value <= target_max - tol:
        return MetricStatus.GOOD
    if _within(value, target_max, tol):
        return MetricStatus.OK
    return MetricStatus.BAD


def status_abs_lower_better(value: Optional[float], target_abs_max: float,
                            tol: float = STATUS_TOLERANCE) -> MetricStatus:
    if value is None:
        return MetricStatus.NA
    return status_lower_better(abs(value), target_abs_max, tol)
