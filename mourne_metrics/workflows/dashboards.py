"""
Dashboard views: fetch a snapshot, run the pipeline once, return a frozen result.

Each builder receives its RecordSource explicitly and performs one
normalise → aggregate → score → rank pass over the rows it fetched.  Queries
for one view run concurrently through ``fetch_parallel``; any failure aborts
the whole view (no partial data, no fallback).

Views
-----
* cost controls  — store / manager cost leaderboards, labour and food vs target
* service        — area sales vs forecast, store and closing-manager rankings
* OSA            — per-person leaderboard plus the per-audit table
* MPI            — year-to-date manager leaderboard joined on profile id
* hub highlights — week-to-date winners shown on the landing page
* daily update   — previous business day store cards with target statuses

``AutoRefresher`` re-runs any builder on a fixed interval.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date as Date
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .. import config
from ..analytics.aggregation import aggregate, aggregate_all, ensure_keys, with_cost_sums
from ..analytics.ranking import (
    LABOUR_TARGET_PCT,
    rank_cost,
    rank_dot_improvement,
    rank_food_vs_target,
    rank_labour_vs_target,
    rank_mpi,
    rank_osa,
    rank_osa_audits,
    rank_service,
    top_entry,
)
from ..analytics.scoring import LINEAR_PROFILE, ScoringProfile
from ..domain.models import (
    AggregateRow,
    AuditEntry,
    ImprovementEntry,
    MetricRecord,
    MetricStatus,
    RankedEntry,
    StoreTargets,
    SubScores,
)
from ..domain.normalize import normalise_label, records_from_rows, to_number
from ..domain.targets import (
    status_abs_lower_better,
    status_higher_better,
    status_lower_better,
    targets_for_store,
)
from ..domain.windows import (
    DateWindow,
    last_n_days,
    previous_day,
    previous_week,
    week_start,
    week_to_date,
    year_to_date,
)
from ..persistence.sources import RecordQuery, RecordSource, fetch_parallel

logger = logging.getLogger(__name__)


# ============================================================
# Result types
# ============================================================

@dataclass(frozen=True)
class CostControlsView:
    window: DateWindow
    profile_name: str
    area: AggregateRow
    stores: List[RankedEntry]
    managers: List[RankedEntry]
    labour_vs_target: List[RankedEntry]
    food_vs_target: List[RankedEntry]
    undated_rows: int = 0


@dataclass(frozen=True)
class ServiceView:
    window: DateWindow
    area: AggregateRow
    stores: List[RankedEntry]
    managers: List[RankedEntry]

    @property
    def sales_variance_percent(self) -> Optional[float]:
        return self.area.sales_variance_percent


@dataclass(frozen=True)
class OsaView:
    window: DateWindow
    people: List[RankedEntry]
    audits: List[AuditEntry]


@dataclass(frozen=True)
class MpiLeaderRow:
    """One approved manager on the year-to-date MPI leaderboard."""
    position: int
    profile_id: str
    manager: str
    store: str
    scores: SubScores
    mpi: Optional[float]
    has_service: bool
    has_cost: bool
    entry: RankedEntry


@dataclass(frozen=True)
class MpiView:
    window: DateWindow
    profile_name: str
    rows: List[MpiLeaderRow]


@dataclass(frozen=True)
class HubHighlights:
    window: DateWindow
    top_store: Optional[RankedEntry] = None
    top_manager: Optional[RankedEntry] = None
    most_improved: Optional[ImprovementEntry] = None
    best_osa: Optional[RankedEntry] = None
    labour_winner: Optional[RankedEntry] = None
    food_winner: Optional[RankedEntry] = None


@dataclass(frozen=True)
class StoreCard:
    """Previous-business-day figures for one store, 0-1 fractions."""
    store: str
    sales: float
    additional_hours: float
    labour_pct: Optional[float]
    food_variance_pct: Optional[float]
    dot_pct: Optional[float]
    extremes_pct: Optional[float]
    rnl_minutes: Optional[float]
    targets: StoreTargets
    statuses: Dict[str, MetricStatus] = field(default_factory=dict)
    osa_wtd_count: int = 0


@dataclass(frozen=True)
class DailyUpdate:
    day: DateWindow
    week: DateWindow
    area: AggregateRow
    cards: List[StoreCard]
    osa_wtd_total: int = 0


# ============================================================
# Helpers
# ============================================================

def _window_query(table: str, window: DateWindow, store: Optional[str] = None, **kwargs: Any) -> RecordQuery:
    equals = {"store": store} if store else {}
    return RecordQuery(
        table=table,
        date_from=window.date_from,
        date_to=window.date_to,
        equals=equals,
        **kwargs,
    )


def _store_keys(store: Optional[str], records: Sequence[MetricRecord] = ()) -> List[str]:
    """Configured stores plus any other store seen in the data."""
    if store:
        return [store]
    seen = {r.store for r in records if r.store}
    return list(config.STORES) + sorted(seen - set(config.STORES))


def _fraction(percent: Optional[float]) -> Optional[float]:
    return None if percent is None else percent / 100.0


# ============================================================
# Cost controls
# ============================================================

def build_cost_controls_view(
    source: RecordSource,
    window: DateWindow,
    profile: ScoringProfile = LINEAR_PROFILE,
    labour_target_pct: float = LABOUR_TARGET_PCT,
) -> CostControlsView:
    """
    Cost leaderboards for one window.

    Labour % and food variance % are always derived from the summed £ values
    of each group, never averaged per shift.
    """
    rows = source.fetch(_window_query(config.COST_TABLE, window))
    records = records_from_rows(rows)
    undated = sum(1 for r in records if r.date is None)
    if undated:
        logger.warning(f"{undated} cost control rows have no valid shift date and were skipped")

    by_store = ensure_keys(aggregate(records, "store", window), _store_keys(None, records))
    by_manager = aggregate(records, "manager", window)

    return CostControlsView(
        window=window,
        profile_name=profile.name,
        area=aggregate_all(records, window),
        stores=rank_cost(by_store, profile),
        managers=rank_cost(by_manager, profile),
        labour_vs_target=rank_labour_vs_target(by_store, labour_target_pct, profile),
        food_vs_target=rank_food_vs_target(by_store, profile),
        undated_rows=undated,
    )


# ============================================================
# Service
# ============================================================

def build_service_view(
    source: RecordSource,
    today: Date,
    store: Optional[str] = None,
    lookback_days: int = config.SERVICE_LOOKBACK_DAYS,
    profile: ScoringProfile = LINEAR_PROFILE,
) -> ServiceView:
    """
    Service shifts over the last ``lookback_days`` days.

    Every configured store gets a row (empty when it has no shifts) unless a
    single ``store`` is selected.  Managers are grouped by closing manager.
    """
    window = last_n_days(today, lookback_days)
    rows = source.fetch(_window_query(config.SERVICE_TABLE, window, store))
    records = records_from_rows(rows)

    by_store = ensure_keys(aggregate(records, "store", window), _store_keys(store, records))
    by_manager = aggregate(records, "manager", window)

    return ServiceView(
        window=window,
        area=aggregate_all(records, window, label=store or "Area"),
        stores=rank_service(by_store, profile),
        managers=rank_service(by_manager, profile),
    )


# ============================================================
# OSA
# ============================================================

def build_osa_view(
    source: RecordSource,
    window: DateWindow,
    store: Optional[str] = None,
    sort_mode: str = "points",
    profile: ScoringProfile = LINEAR_PROFILE,
) -> OsaView:
    """Per-person OSA leaderboard plus the per-audit table for one window."""
    rows = source.fetch(_window_query(config.OSA_TABLE, window, store))
    records = records_from_rows(rows)
    in_window = [r for r in records if window.contains(r.date)]

    return OsaView(
        window=window,
        people=rank_osa(aggregate(in_window, "manager"), profile),
        audits=rank_osa_audits(in_window, sort_mode),
    )


# ============================================================
# MPI
# ============================================================

def build_mpi_view(
    source: RecordSource,
    today: Date,
    profile: ScoringProfile = LINEAR_PROFILE,
) -> MpiView:
    """
    Year-to-date Manager Performance Index.

    Shifts, cost entries and OSA audits are joined on the manager's profile
    id.  Only approved profiles outside EXCLUDED_ROLES with at least one
    service shift or cost entry are listed.
    """
    window = year_to_date(today)
    snapshots = fetch_parallel(source, {
        "profiles": RecordQuery(
            table=config.PROFILES_TABLE,
            date_field=None,
            equals={"approved": True},
            not_null=("display_name",),
        ),
        "service": _window_query(config.SERVICE_TABLE, window),
        "cost": _window_query(config.COST_TABLE, window),
        "osa": _window_query(config.OSA_TABLE, window),
    })

    service = records_from_rows(snapshots["service"], rnl_seconds_compat=True)
    cost = records_from_rows(snapshots["cost"])
    osa = records_from_rows(snapshots["osa"])

    service_ids = {r.manager_id for r in service if r.manager_id and window.contains(r.date)}
    cost_ids = {r.manager_id for r in cost if r.manager_id and window.contains(r.date)}

    profiles: Dict[str, Mapping[str, Any]] = {}
    for p in snapshots["profiles"]:
        pid = normalise_label(p.get("id"), None)
        if pid is None:
            continue
        if p.get("job_role") in config.EXCLUDED_ROLES:
            continue
        if pid not in service_ids and pid not in cost_ids:
            continue
        profiles[pid] = p

    joined = [r for r in service + cost + osa if r.manager_id in profiles]
    by_manager = aggregate(joined, "manager_id", window)
    # Labour and food ratios divide cost-entry values by cost-entry sales only
    cost_by_manager = aggregate([r for r in cost if r.manager_id in profiles], "manager_id", window)
    # Eligible managers always have at least one in-window record
    entries = rank_mpi(
        {k: with_cost_sums(v, cost_by_manager.get(k)) for k, v in by_manager.items() if k in profiles},
        profile,
    )

    rows = []
    for entry in entries:
        p = profiles[entry.key]
        rows.append(MpiLeaderRow(
            position=entry.position,
            profile_id=entry.key,
            manager=normalise_label(p.get("display_name")),
            store=normalise_label(p.get("store"), "-"),
            scores=entry.scores,
            mpi=entry.composite,
            has_service=entry.key in service_ids,
            has_cost=entry.key in cost_ids,
            entry=entry,
        ))
    logger.debug(f"MPI leaderboard: {len(rows)} of {len(snapshots['profiles'])} profiles eligible")
    return MpiView(window=window, profile_name=profile.name, rows=rows)


# ============================================================
# Hub highlights
# ============================================================

def build_hub_highlights(
    source: RecordSource,
    today: Date,
    profile: ScoringProfile = LINEAR_PROFILE,
) -> HubHighlights:
    """
    Week-to-date winners for the landing page.

    Most improved compares the week so far with the whole previous week.
    """
    wtd = week_to_date(today)
    prev = previous_week(today)
    both_weeks = DateWindow(prev.date_from, wtd.date_to)

    snapshots = fetch_parallel(source, {
        "service": _window_query(config.SERVICE_TABLE, both_weeks),
        "cost": _window_query(config.COST_TABLE, wtd),
        "osa": _window_query(config.OSA_TABLE, wtd),
    })
    service = records_from_rows(snapshots["service"])
    cost = records_from_rows(snapshots["cost"])
    osa = records_from_rows(snapshots["osa"])

    service_stores = aggregate(service, "store", wtd)
    cost_stores = aggregate(cost, "store", wtd)
    improvement = rank_dot_improvement(service_stores, aggregate(service, "store", prev))
    improved = improvement[0] if improvement and improvement[0].dot_delta is not None else None

    return HubHighlights(
        window=wtd,
        top_store=top_entry(rank_service(service_stores, profile)),
        top_manager=top_entry(rank_service(aggregate(service, "manager", wtd), profile)),
        most_improved=improved,
        best_osa=top_entry(rank_osa(aggregate(osa, "manager", wtd), profile)),
        labour_winner=top_entry(rank_labour_vs_target(cost_stores, profile=profile)),
        food_winner=top_entry(rank_food_vs_target(cost_stores, profile)),
    )


# ============================================================
# Daily update
# ============================================================

def _extremes_override(inputs: Optional[Mapping[str, Any]]) -> Optional[float]:
    if not inputs:
        return None
    value = to_number(inputs.get("target_extremes_over40_pct"))
    return None if value is None else value / 100.0


def build_store_card(
    store: str,
    cost_row: AggregateRow,
    service_row: AggregateRow,
    inputs: Optional[Mapping[str, Any]] = None,
    osa_wtd_count: int = 0,
) -> StoreCard:
    """Figures and traffic-light statuses for one store."""
    targets = targets_for_store(store, _extremes_override(inputs))
    labour = _fraction(cost_row.labour_percent)
    food = _fraction(cost_row.food_variance_percent)
    statuses = {
        "dot": status_higher_better(service_row.avg_dot_pct, targets.dot_min),
        "labour": status_lower_better(labour, targets.labour_max),
        "rnl": status_lower_better(service_row.avg_rnl_minutes, targets.rnl_max_minutes),
        "extremes": status_lower_better(service_row.avg_extremes_pct, targets.extremes_max),
        "food_variance": status_abs_lower_better(food, targets.food_variance_abs_max),
    }
    return StoreCard(
        store=store,
        sales=cost_row.sales,
        additional_hours=service_row.additional_hours,
        labour_pct=labour,
        food_variance_pct=food,
        dot_pct=service_row.avg_dot_pct,
        extremes_pct=service_row.avg_extremes_pct,
        rnl_minutes=service_row.avg_rnl_minutes,
        targets=targets,
        statuses=statuses,
        osa_wtd_count=osa_wtd_count,
    )


def build_daily_update(source: RecordSource, today: Date) -> DailyUpdate:
    """
    Store cards for the previous business day (yesterday, UK calendar).

    OSA audit counts run from the Monday of that day's week up to and
    including the day itself.
    """
    day = previous_day(today)
    week = DateWindow(week_start(day.date_from), day.date_to, "Week to date")

    snapshots = fetch_parallel(source, {
        "service": _window_query(config.SERVICE_TABLE, day),
        "cost": _window_query(config.COST_TABLE, day),
        "osa": _window_query(config.OSA_TABLE, week),
        "inputs": RecordQuery(
            table=config.DAILY_INPUTS_TABLE,
            date_field="date",
            date_from=day.date_from,
            date_to=day.date_to,
        ),
    })
    service = records_from_rows(snapshots["service"])
    cost = records_from_rows(snapshots["cost"])
    osa = records_from_rows(snapshots["osa"])
    inputs_by_store = {
        normalise_label(row.get("store")): row for row in snapshots["inputs"]
    }

    stores = _store_keys(None, service + cost)
    service_by_store = ensure_keys(aggregate(service, "store", day), stores)
    cost_by_store = ensure_keys(aggregate(cost, "store", day), stores)
    osa_counts = {k: v.count for k, v in aggregate(osa, "store", week).items()}

    cards = [
        build_store_card(
            store,
            cost_by_store[store],
            service_by_store[store],
            inputs_by_store.get(store),
            osa_counts.get(store, 0),
        )
        for store in stores
    ]
    return DailyUpdate(
        day=day,
        week=week,
        area=aggregate_all(cost, day),
        cards=cards,
        osa_wtd_total=sum(1 for r in osa if week.contains(r.date)),
    )


# ============================================================
# Auto refresh
# ============================================================

class AutoRefresher:
    """
    Re-run a view builder every ``interval`` seconds on a daemon thread.

    Each successful run replaces ``latest``.  A failing run is logged and
    handed to ``on_error``; the loop keeps going and the previous result
    stays in place.  Exceptions raised by either callback are logged and
    dropped.
    """

    def __init__(
        self,
        build: Callable[[], Any],
        interval: float = config.REFRESH_INTERVAL_SECONDS,
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.build = build
        self.interval = interval
        self.on_result = on_result
        self.on_error = on_error
        self.latest: Any = None
        self.last_error: Optional[Exception] = None
        self.runs = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Any:
        """Run the builder now; returns the result or None on failure."""
        with self._lock:
            self.runs += 1
            try:
                result = self.build()
            except Exception as e:
                logger.warning(f"Refresh failed: {e}")
                self.last_error = e
                self._notify(self.on_error, e)
                return None
            self.latest = result
            self.last_error = None
        self._notify(self.on_result, result)
        return result

    @staticmethod
    def _notify(callback: Optional[Callable[[Any], None]], value: Any) -> None:
        # A failing callback must not end the refresh loop
        if callback is None:
            return
        try:
            callback(value)
        except Exception as e:
            logger.error(f"Refresh callback {getattr(callback, '__name__', callback)!r} failed: {e}", exc_info=True)

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="auto-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
