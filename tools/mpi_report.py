#!/usr/bin/env python3
"""
Store performance report: leaderboards from exported snapshots or the hosted store.

Usage:
    python tools/mpi_report.py                               # YTD MPI from data/*.csv
    python tools/mpi_report.py --view cost --range wtd       # cost controls, week to date
    python tools/mpi_report.py --view service --store Kilkeel
    python tools/mpi_report.py --view osa --from 2026-01-01 --to 2026-01-31
    python tools/mpi_report.py --view mpi --source supabase --chart mpi.png
    python tools/mpi_report.py --view hub --today 2026-03-04

Exit Codes:
    0 = Report printed
    1 = Data could not be loaded (missing snapshot, network, credentials)
    2 = Invalid arguments
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from mourne_metrics import config
from mourne_metrics.analytics.scoring import PROFILES, get_profile
from mourne_metrics.domain.models import RankedEntry
from mourne_metrics.domain.windows import RANGE_MODES, uk_today, window_for_mode
from mourne_metrics.persistence.sources import (
    CSVRecordSource,
    RecordSource,
    SourceError,
    create_supabase_source,
)
from mourne_metrics.reports.charts import render_leaderboard_chart
from mourne_metrics.reports.text import format_leaderboard, format_value
from mourne_metrics.utils.error_formatting import ErrorFormatter
from mourne_metrics.utils.logging_config import get_logger, set_console_level, setup_logging
from mourne_metrics.utils.paths import get_data_dir
from mourne_metrics.workflows.dashboards import (
    build_cost_controls_view,
    build_daily_update,
    build_hub_highlights,
    build_mpi_view,
    build_osa_view,
    build_service_view,
)

logger = get_logger("mourne_metrics.tools.mpi_report")

VIEWS = ("mpi", "cost", "service", "osa", "hub", "daily")

DEFAULT_RANGES = {
    "cost": "previous_day",
    "osa": "mtd",
}


class Chart:
    """Leaderboard the --chart option draws for a view."""

    def __init__(self, entries: Sequence[RankedEntry], title: str, metric: str,
                 labels: Optional[Dict[str, str]] = None):
        self.entries = entries
        self.title = title
        self.metric = metric
        self.labels = labels


# ============================================================
# Argument handling
# ============================================================

def _iso_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {text!r}, expected YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print store performance leaderboards",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--view", choices=VIEWS, default="mpi", help="Report to build (default: mpi)")
    parser.add_argument("--source", choices=("csv", "supabase"), default="csv",
                        help="Where rows come from (default: csv)")
    parser.add_argument("--data-dir", type=Path, help="Directory of <table>.csv snapshots (default: data/)")
    parser.add_argument("--range", dest="range_mode", choices=RANGE_MODES,
                        help="Date range for cost and osa views")
    parser.add_argument("--from", dest="date_from", type=_iso_date, help="Custom range start (inclusive)")
    parser.add_argument("--to", dest="date_to", type=_iso_date, help="Custom range end (inclusive)")
    parser.add_argument("--today", type=_iso_date, help="Reference date (default: today, UK)")
    parser.add_argument("--store", help="Restrict service / osa views to one store")
    parser.add_argument("--sort", dest="sort_mode", choices=("points", "stars", "recent"),
                        default="points", help="OSA audit table order (default: points)")
    parser.add_argument("--profile", choices=sorted(PROFILES),
                        help="Scoring profile (default: from settings.json)")
    parser.add_argument("--chart", type=Path, help="Also write the main leaderboard as a PNG")
    parser.add_argument("--verbose", action="store_true", help="Show log messages on the console")
    return parser


def _make_source(args: argparse.Namespace) -> RecordSource:
    if args.source == "supabase":
        url, key = config.get_supabase_credentials()
        if not url or not key:
            raise SourceError(
                f"Supabase credentials missing: set {config.SUPABASE_URL_ENV} and {config.SUPABASE_KEY_ENV}"
            )
        return create_supabase_source(url, key)
    return CSVRecordSource(args.data_dir or get_data_dir())


# ============================================================
# Views
# ============================================================

def _report_mpi(source, args, today, profile) -> Optional[Chart]:
    view = build_mpi_view(source, today, profile)
    labels = {r.profile_id: f"{r.manager} ({r.store})" for r in view.rows}
    entries = [r.entry for r in view.rows]
    print(format_leaderboard(
        entries, ("service", "cost", "osa", "composite"), labels,
        title=f"MPI leaderboard, {view.window.label} [{view.profile_name}]",
    ))
    return Chart(entries, "Manager Performance Index (YTD)", "composite", labels)


def _report_cost(source, args, today, profile) -> Optional[Chart]:
    window = window_for_mode(args.range_mode or DEFAULT_RANGES["cost"], today, args.date_from, args.date_to)
    view = build_cost_controls_view(source, window, profile)
    area_labour = format_value(view.area.labour_percent, ".2f")
    area_food = format_value(view.area.food_variance_percent, "+.2f")
    print(f"Cost controls, {window.label}: sales £{view.area.sales:,.0f}, "
          f"labour {area_labour}%, food variance {area_food}%")
    if view.undated_rows:
        print(f"Note: {view.undated_rows} rows without a valid shift date were skipped")
    print()
    columns = ("sales", "labour_pct", "food_variance_pct", "cost")
    print(format_leaderboard(view.stores, columns, title="Stores"))
    print()
    print(format_leaderboard(view.managers, columns, title="Managers"))
    print()
    print(format_leaderboard(view.labour_vs_target, ("labour_pct", "sales"),
                             title=f"Labour vs {config.LABOUR_TARGET:g}% target"))
    print()
    print(format_leaderboard(view.food_vs_target, ("food_variance_pct", "sales"), title="Food variance"))
    return Chart(view.stores, f"Labour % by store, {window.label}", "labour_pct")


def _report_service(source, args, today, profile) -> Optional[Chart]:
    view = build_service_view(source, today, store=args.store, profile=profile)
    variance = format_value(view.sales_variance_percent, "+.1f")
    print(f"Service, {view.window.label}: sales £{view.area.sales:,.0f} "
          f"vs forecast £{view.area.forecast_sales:,.0f} ({variance}%)")
    print()
    columns = ("dot_pct", "extremes_pct", "rnl_minutes", "sales_variance_pct", "service")
    print(format_leaderboard(view.stores, columns, title="Stores"))
    print()
    print(format_leaderboard(view.managers, columns, title="Closing managers"))
    return Chart(view.stores, f"DOT % by store, {view.window.label}", "dot_pct")


def _report_osa(source, args, today, profile) -> Optional[Chart]:
    window = window_for_mode(args.range_mode or DEFAULT_RANGES["osa"], today, args.date_from, args.date_to)
    view = build_osa_view(source, window, store=args.store, sort_mode=args.sort_mode, profile=profile)
    print(format_leaderboard(view.people, ("points_lost", "stars", "count", "osa"),
                             title=f"OSA, {window.label}"))
    print()
    print(f"Audits ({args.sort_mode})")
    if not view.audits:
        print("(no data)")
    for audit in view.audits:
        rec = audit.record
        day = rec.date.isoformat() if rec.date else "-"
        print(f"{audit.position:>3}  {day}  {rec.manager:<24} {rec.store or '-':<14} "
              f"points {format_value(rec.overall_points, '.0f'):>4}  "
              f"stars {format_value(rec.stars, '.0f')}")
    return Chart(view.people, f"OSA points lost, {window.label}", "points_lost")


def _pct(fraction: Optional[float], spec: str = ".1f") -> str:
    return format_value(None if fraction is None else fraction * 100, spec)


def _report_hub(source, args, today, profile) -> Optional[Chart]:
    hub = build_hub_highlights(source, today, profile)
    print(f"Highlights, {hub.window.label} "
          f"({hub.window.date_from.isoformat()} to {hub.window.last_day.isoformat()})")

    def _show(label: str, name: Optional[str], detail: str = "") -> None:
        print(f"  {label:<16} {name or '-'}{detail if name else ''}")

    for label, entry in (("Top store", hub.top_store), ("Top manager", hub.top_manager)):
        _show(label, entry and entry.key,
              entry and f" (DOT {_pct(entry.aggregate.avg_dot_pct)}%)")
    improved = hub.most_improved
    _show("Most improved", improved and improved.key,
          improved and f" ({_pct(improved.dot_delta, '+.1f')} pts DOT)")
    best = hub.best_osa
    _show("Best OSA", best and best.key,
          best and f" ({format_value(best.aggregate.avg_points_lost, '.1f')} pts lost)")
    labour = hub.labour_winner
    _show("Labour winner", labour and labour.key,
          labour and f" ({format_value(labour.aggregate.labour_percent, '.2f')}%)")
    food = hub.food_winner
    _show("Food winner", food and food.key,
          food and f" ({format_value(food.aggregate.food_variance_percent, '+.2f')}%)")
    return None


def _report_daily(source, args, today, profile) -> Optional[Chart]:
    update = build_daily_update(source, today)
    print(f"Daily update for {update.day.date_from.isoformat()} "
          f"(OSA audits this week: {update.osa_wtd_total})")
    for card in update.cards:
        status = ", ".join(f"{k} {v.value}" for k, v in card.statuses.items())
        print(f"  {card.store:<14} sales £{card.sales:,.0f}  labour {_pct(card.labour_pct)}%  "
              f"DOT {_pct(card.dot_pct)}%  R&L {format_value(card.rnl_minutes, '.1f')}  "
              f"OSA wtd {card.osa_wtd_count}  [{status}]")
    return None


REPORTS = {
    "mpi": _report_mpi,
    "cost": _report_cost,
    "service": _report_service,
    "osa": _report_osa,
    "hub": _report_hub,
    "daily": _report_daily,
}


# ============================================================
# Entry point
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging()
    if args.verbose:
        set_console_level(logging.INFO)

    if (args.date_from or args.date_to) and args.range_mode not in (None, "custom"):
        parser.error("--from/--to require --range custom")
    if args.date_from or args.date_to:
        args.range_mode = "custom"

    today = args.today or uk_today()
    profile = get_profile(args.profile or config.get_scoring_profile_name())

    try:
        source = _make_source(args)
        chart = REPORTS[args.view](source, args, today, profile)
    except SourceError as e:
        ctx = ErrorFormatter.format_fetch_error(e, args.view, {"Source": args.source})
        logger.error(ctx.format_for_log())
        print(ctx.format_for_display(include_technical=args.verbose), file=sys.stderr)
        return 1
    except ValueError as e:
        ctx = ErrorFormatter.format_validation_error("arguments", " ".join(argv or sys.argv[1:]), str(e))
        logger.warning(ctx.format_for_log())
        print(ctx.format_for_display(include_technical=True), file=sys.stderr)
        return 2

    if args.chart:
        if chart is None:
            print(f"Note: the {args.view} view has no chart", file=sys.stderr)
        else:
            path = render_leaderboard_chart(chart.entries, args.chart, chart.title, chart.metric, chart.labels)
            print(f"\nChart written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
