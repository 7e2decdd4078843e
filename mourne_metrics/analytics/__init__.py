"""Analytics package: aggregation, scoring and leaderboards."""

from .aggregation import (
    aggregate,
    aggregate_all,
    ensure_keys,
    with_cost_sums,
    SUMMED_FIELDS,
    AVERAGED_FIELDS,
)
from .scoring import (
    ServiceMetrics,
    CostMetrics,
    ScoringProfile,
    LINEAR_PROFILE,
    BANDED_PROFILE,
    get_profile,
    score_service,
    score_cost,
    score_osa,
    score_aggregate,
)
from .ranking import (
    composite_score,
    build_leaderboard,
    rank_osa,
    rank_cost,
    rank_service,
    rank_labour_vs_target,
    rank_food_vs_target,
    rank_mpi,
    rank_dot_improvement,
    rank_osa_audits,
)

__all__ = [
    "aggregate",
    "aggregate_all",
    "ensure_keys",
    "with_cost_sums",
    "SUMMED_FIELDS",
    "AVERAGED_FIELDS",
    "ServiceMetrics",
    "CostMetrics",
    "ScoringProfile",
    "LINEAR_PROFILE",
    "BANDED_PROFILE",
    "get_profile",
    "score_service",
    "score_cost",
    "score_osa",
    "score_aggregate",
    "composite_score",
    "build_leaderboard",
    "rank_osa",
    "rank_cost",
    "rank_service",
    "rank_labour_vs_target",
    "rank_food_vs_target",
    "rank_mpi",
    "rank_dot_improvement",
    "rank_osa_audits",
]
