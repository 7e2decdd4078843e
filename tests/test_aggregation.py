"""
Tests for mourne_metrics/analytics/aggregation.py

Covers:
  - Sum-then-divide cost ratios (never a mean of per-row ratios)
  - Averages over observed values only, None when nothing observed
  - "Unknown" bucket for missing dimension values
  - Half-open window filtering, undated records
  - Empty groups and key padding
  - Cost-only sums for groups joining shifts with cost entries
"""

from datetime import date

import pytest

from mourne_metrics.analytics.aggregation import (
    aggregate,
    aggregate_all,
    ensure_keys,
    reduce_group,
    with_cost_sums,
)
from mourne_metrics.domain.models import MetricRecord
from mourne_metrics.domain.windows import DateWindow


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_record(store="Kilkeel", day=date(2026, 1, 5), **fields) -> MetricRecord:
    return MetricRecord(store=store, date=day, **fields)


JAN = DateWindow(date(2026, 1, 1), date(2026, 2, 1))


# ---------------------------------------------------------------------------
# 1. Cost ratios
# ---------------------------------------------------------------------------

class TestCostRatios:

    def test_labour_is_sum_then_divide(self):
        records = [
            _make_record(sales=1000.0, labour_cost=200.0),   # 20 %
            _make_record(sales=3000.0, labour_cost=900.0),   # 30 %
        ]
        row = aggregate(records, "store")["Kilkeel"]
        assert row.sales == 4000.0
        assert row.labour_cost == 1100.0
        assert row.labour_percent == pytest.approx(27.5)
        # mean of ratios would be 25.0
        assert row.labour_percent != pytest.approx(25.0)

    def test_food_variance_signed(self):
        records = [
            _make_record(sales=2000.0, ideal_food_cost=500.0, actual_food_cost=510.0),
            _make_record(sales=2000.0, ideal_food_cost=500.0, actual_food_cost=498.0),
        ]
        row = aggregate(records, "store")["Kilkeel"]
        assert row.food_variance_percent == pytest.approx(8.0 / 4000.0 * 100.0)

    def test_zero_sales_gives_no_ratio(self):
        row = aggregate([_make_record(sales=0.0, labour_cost=100.0)], "store")["Kilkeel"]
        assert row.labour_percent is None
        assert row.food_variance_percent is None

    def test_unobserved_food_costs_give_no_variance(self):
        row = aggregate([_make_record(sales=1000.0, labour_cost=250.0)], "store")["Kilkeel"]
        assert row.labour_percent == pytest.approx(25.0)
        assert row.food_variance_percent is None

    def test_missing_labour_cost_counts_as_zero(self):
        row = aggregate([_make_record(sales=1000.0)], "store")["Kilkeel"]
        assert row.labour_percent == pytest.approx(0.0)

    def test_one_sided_food_cost_counts_missing_side_as_zero(self):
        row = aggregate([_make_record(sales=1000.0, actual_food_cost=5.0)], "store")["Kilkeel"]
        assert row.food_variance_percent == pytest.approx(0.5)

    def test_sales_variance(self):
        records = [_make_record(sales=1100.0, forecast_sales=1000.0)]
        row = aggregate(records, "store")["Kilkeel"]
        assert row.sales_variance_percent == pytest.approx(10.0)


# ---------------------------------------------------------------------------
# 2. Averages
# ---------------------------------------------------------------------------

class TestAverages:

    def test_mean_over_observed_only(self):
        records = [
            _make_record(dot_pct=0.80),
            _make_record(dot_pct=None),
            _make_record(dot_pct=0.90),
        ]
        row = aggregate(records, "store")["Kilkeel"]
        assert row.avg_dot_pct == pytest.approx(0.85)
        assert row.count == 3

    def test_no_observation_is_none(self):
        row = aggregate([_make_record(sales=100.0)], "store")["Kilkeel"]
        assert row.avg_dot_pct is None
        assert row.avg_stars is None
        assert row.avg_rnl_minutes is None

    def test_missing_summed_value_contributes_zero(self):
        records = [_make_record(sales=100.0), _make_record(sales=None)]
        row = aggregate(records, "store")["Kilkeel"]
        assert row.sales == 100.0

    def test_distinct_days(self):
        records = [
            _make_record(day=date(2026, 1, 5)),
            _make_record(day=date(2026, 1, 5)),
            _make_record(day=date(2026, 1, 6)),
        ]
        assert aggregate(records, "store")["Kilkeel"].days == 2

    def test_effective_labour_falls_back_to_reported(self):
        row = aggregate([_make_record(labour_pct=0.24)], "store")["Kilkeel"]
        assert row.labour_percent is None
        assert row.effective_labour_percent == pytest.approx(24.0)

    def test_effective_labour_prefers_reported_without_labour_cost(self):
        # Service shifts carry sales and a reported labour %, no labour cost
        row = aggregate([_make_record(sales=1000.0, labour_pct=0.24)], "store")["Kilkeel"]
        assert row.labour_percent == pytest.approx(0.0)
        assert row.effective_labour_percent == pytest.approx(24.0)

    def test_effective_labour_uses_cost_when_recorded(self):
        row = aggregate([_make_record(sales=1000.0, labour_cost=230.0, labour_pct=0.24)], "store")["Kilkeel"]
        assert row.effective_labour_percent == pytest.approx(23.0)


# ---------------------------------------------------------------------------
# 3. Grouping
# ---------------------------------------------------------------------------

class TestGrouping:

    def test_groups_by_store(self):
        records = [_make_record("Kilkeel"), _make_record("Newcastle"), _make_record("Kilkeel")]
        result = aggregate(records, "store")
        assert set(result) == {"Kilkeel", "Newcastle"}
        assert result["Kilkeel"].count == 2

    def test_missing_dimension_goes_to_unknown(self):
        records = [_make_record(None), _make_record("  ")]
        result = aggregate(records, "store")
        assert list(result) == ["Unknown"]
        assert result["Unknown"].count == 2

    def test_group_by_manager(self):
        records = [
            _make_record(manager="Jamie"),
            _make_record(manager="Alex"),
            _make_record(manager=None),
        ]
        assert set(aggregate(records, "manager")) == {"Jamie", "Alex", "Unknown"}

    def test_group_by_callable(self):
        records = [_make_record(day=date(2026, 1, 5)), _make_record(day=date(2026, 1, 6))]
        result = aggregate(records, lambda r: r.date.isoformat())
        assert set(result) == {"2026-01-05", "2026-01-06"}

    def test_invalid_dimension(self):
        with pytest.raises(ValueError, match="Invalid dimension"):
            aggregate([_make_record()], "region")


# ---------------------------------------------------------------------------
# 4. Windows
# ---------------------------------------------------------------------------

class TestWindowFiltering:

    def test_outside_window_excluded(self):
        records = [
            _make_record(day=date(2026, 1, 31), sales=100.0),
            _make_record(day=date(2026, 2, 1), sales=999.0),
            _make_record(day=date(2025, 12, 31), sales=999.0),
        ]
        row = aggregate(records, "store", JAN)["Kilkeel"]
        assert row.sales == 100.0
        assert row.count == 1

    def test_undated_excluded_with_window(self):
        records = [_make_record(day=None, sales=50.0), _make_record(sales=100.0)]
        assert aggregate(records, "store", JAN)["Kilkeel"].sales == 100.0
        assert aggregate(records, "store")["Kilkeel"].sales == 150.0

    def test_group_with_no_in_window_records_absent(self):
        records = [_make_record("Newcastle", day=date(2025, 6, 1))]
        assert aggregate(records, "store", JAN) == {}


# ---------------------------------------------------------------------------
# 5. Empty groups
# ---------------------------------------------------------------------------

class TestEmptyGroups:

    def test_reduce_empty(self):
        row = reduce_group("Ballynahinch", [])
        assert row.count == 0
        assert row.days == 0
        assert row.sales == 0.0
        assert row.labour_cost == 0.0
        assert row.avg_dot_pct is None
        assert row.labour_percent is None

    def test_ensure_keys_pads(self):
        result = ensure_keys(aggregate([_make_record("Kilkeel")], "store"), ["Kilkeel", "Kilkeel", "Downpatrick"])
        assert set(result) == {"Kilkeel", "Downpatrick"}
        assert result["Downpatrick"].count == 0
        assert result["Kilkeel"].count == 1

    def test_aggregate_all(self):
        records = [_make_record("Kilkeel", sales=100.0), _make_record("Newcastle", sales=300.0)]
        row = aggregate_all(records, JAN)
        assert row.key == "Area"
        assert row.sales == 400.0
        assert row.count == 2


# ---------------------------------------------------------------------------
# 6. Cost-only sums for joined groups
# ---------------------------------------------------------------------------

class TestWithCostSums:

    def test_cost_ratios_use_cost_entry_sales(self):
        shift = _make_record(manager_id="p1", sales=1000.0, dot_pct=0.8)
        entry = _make_record(manager_id="p1", sales=1000.0, labour_cost=250.0)
        joined = aggregate([shift, entry], "manager_id")["p1"]
        assert joined.labour_percent == pytest.approx(12.5)

        cost_only = aggregate([entry], "manager_id")["p1"]
        row = with_cost_sums(joined, cost_only)
        assert row.sales == 1000.0
        assert row.labour_percent == pytest.approx(25.0)
        assert row.food_variance_percent is None
        assert row.avg_dot_pct == pytest.approx(0.8)
        assert row.count == 2

    def test_without_cost_entries_ratios_are_none(self):
        shift = _make_record(manager_id="p1", sales=1000.0, forecast_sales=900.0, labour_pct=0.22)
        row = with_cost_sums(aggregate([shift], "manager_id")["p1"])
        assert row.sales == 0.0
        assert row.forecast_sales == 900.0
        assert row.labour_percent is None
        assert row.food_variance_percent is None
        assert row.effective_labour_percent == pytest.approx(22.0)
