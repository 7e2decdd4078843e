"""Workflows module: dashboard view builders."""
from .dashboards import (
    AutoRefresher,
    build_cost_controls_view,
    build_daily_update,
    build_hub_highlights,
    build_mpi_view,
    build_osa_view,
    build_service_view,
)

__all__ = [
    'AutoRefresher',
    'build_cost_controls_view',
    'build_daily_update',
    'build_hub_highlights',
    'build_mpi_view',
    'build_osa_view',
    'build_service_view',
]
