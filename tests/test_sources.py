"""
Tests for mourne_metrics/persistence/sources.py

Covers:
  - In-memory predicates: half-open / inclusive dates, equality, not-null
  - Ordering by date (descending by default) and row limit
  - CSV snapshots (tmp_path) and missing tables
  - Supabase query translation with a fake client; errors wrapped in FetchError
  - fetch_parallel: all results, fail fast on any error
"""

import csv
from datetime import date

import pytest

from mourne_metrics.persistence.sources import (
    CSVRecordSource,
    FetchError,
    InMemoryRecordSource,
    RecordQuery,
    SourceError,
    SupabaseRecordSource,
    TableNotFoundError,
    fetch_parallel,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_rows():
    return [
        {"shift_date": "2026-01-03", "store": "Kilkeel", "sales_gbp": 100, "manager_name": "Jo"},
        {"shift_date": "2026-01-05", "store": "Kilkeel", "sales_gbp": 200, "manager_name": None},
        {"shift_date": "2026-01-04", "store": "Newcastle", "sales_gbp": 300, "manager_name": "Sam"},
        {"shift_date": "2026-01-06", "store": "Kilkeel", "sales_gbp": 400, "manager_name": "Lee"},
        {"shift_date": "", "store": "Kilkeel", "sales_gbp": 500, "manager_name": "Kim"},
    ]


def _dates(rows):
    return [r["shift_date"] for r in rows]


class _FakeResponse:
    def __init__(self, data):
        self.data = data


class _FakeNot:
    def __init__(self, query):
        self._query = query

    def is_(self, column, value):
        self._query.calls.append(("not.is", column, value))
        return self._query


class _FakeQuery:
    """Records the chained PostgREST calls the source makes."""

    def __init__(self, table, data, error=None):
        self.table = table
        self.calls = []
        self._data = data
        self._error = error

    def _record(self, name, *args, **kwargs):
        self.calls.append((name,) + args + tuple(sorted(kwargs.items())))
        return self

    def select(self, *args):
        return self._record("select", *args)

    def gte(self, *args):
        return self._record("gte", *args)

    def lt(self, *args):
        return self._record("lt", *args)

    def lte(self, *args):
        return self._record("lte", *args)

    def eq(self, *args):
        return self._record("eq", *args)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args):
        return self._record("limit", *args)

    @property
    def not_(self):
        return _FakeNot(self)

    def execute(self):
        if self._error is not None:
            raise self._error
        return _FakeResponse(self._data)


class _FakeClient:
    def __init__(self, data=None, error=None):
        self.queries = []
        self._data = data
        self._error = error

    def table(self, name):
        q = _FakeQuery(name, self._data, self._error)
        self.queries.append(q)
        return q


# ---------------------------------------------------------------------------
# 1. In-memory source
# ---------------------------------------------------------------------------

class TestInMemorySource:

    def test_half_open_date_range(self):
        source = InMemoryRecordSource({"service_shifts": _make_rows()})
        rows = source.fetch(RecordQuery(
            table="service_shifts", date_from=date(2026, 1, 4), date_to=date(2026, 1, 6),
        ))
        assert _dates(rows) == ["2026-01-05", "2026-01-04"]

    def test_inclusive_end(self):
        source = InMemoryRecordSource({"service_shifts": _make_rows()})
        rows = source.fetch(RecordQuery(
            table="service_shifts", date_from=date(2026, 1, 4), date_to=date(2026, 1, 6),
            date_to_inclusive=True,
        ))
        assert _dates(rows) == ["2026-01-06", "2026-01-05", "2026-01-04"]

    def test_equality_and_not_null(self):
        source = InMemoryRecordSource({"service_shifts": _make_rows()})
        rows = source.fetch(RecordQuery(
            table="service_shifts", equals={"store": "Kilkeel"}, not_null=("manager_name",),
        ))
        assert [r["manager_name"] for r in rows] == ["Lee", "Jo", "Kim"]

    def test_order_and_limit(self):
        source = InMemoryRecordSource({"service_shifts": _make_rows()})
        rows = source.fetch(RecordQuery(table="service_shifts", limit=2))
        assert _dates(rows) == ["2026-01-06", "2026-01-05"]
        rows = source.fetch(RecordQuery(table="service_shifts", order_desc=False))
        assert _dates(rows)[:2] == ["2026-01-03", "2026-01-04"]
        assert _dates(rows)[-1] == ""

    def test_column_projection(self):
        source = InMemoryRecordSource({"service_shifts": _make_rows()})
        rows = source.fetch(RecordQuery(table="service_shifts", columns="store, sales_gbp", limit=1))
        assert rows == [{"store": "Kilkeel", "sales_gbp": 400}]

    def test_unordered_query(self):
        source = InMemoryRecordSource({"profiles": [{"id": "b"}, {"id": "a"}]})
        rows = source.fetch(RecordQuery(table="profiles", date_field=None))
        assert [r["id"] for r in rows] == ["b", "a"]

    def test_unknown_table(self):
        source = InMemoryRecordSource({})
        with pytest.raises(TableNotFoundError):
            source.fetch(RecordQuery(table="service_shifts"))

    def test_date_bounds_need_field(self):
        with pytest.raises(ValueError):
            RecordQuery(table="profiles", date_field=None, date_from=date(2026, 1, 1))


# ---------------------------------------------------------------------------
# 2. CSV source
# ---------------------------------------------------------------------------

class TestCSVSource:

    def _write(self, path, rows):
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)

    def test_reads_snapshot(self, tmp_path):
        self._write(tmp_path / "cost_control_entries.csv", _make_rows())
        source = CSVRecordSource(tmp_path)
        rows = source.fetch(RecordQuery(
            table="cost_control_entries", date_from=date(2026, 1, 1), date_to=date(2026, 2, 1),
            equals={"store": "Kilkeel"},
        ))
        assert _dates(rows) == ["2026-01-06", "2026-01-05", "2026-01-03"]
        assert rows[0]["sales_gbp"] == "400"

    def test_boolean_equality_on_text_cells(self, tmp_path):
        self._write(tmp_path / "profiles.csv", [
            {"id": "p1", "approved": "true"},
            {"id": "p2", "approved": "false"},
            {"id": "p3", "approved": "TRUE"},
        ])
        rows = CSVRecordSource(tmp_path).fetch(
            RecordQuery(table="profiles", date_field=None, equals={"approved": True})
        )
        assert [r["id"] for r in rows] == ["p1", "p3"]

    def test_missing_snapshot(self, tmp_path):
        with pytest.raises(TableNotFoundError):
            CSVRecordSource(tmp_path).fetch(RecordQuery(table="service_shifts"))


# ---------------------------------------------------------------------------
# 3. Supabase source
# ---------------------------------------------------------------------------

class TestSupabaseSource:

    def test_query_translation(self):
        client = _FakeClient(data=[{"store": "Kilkeel"}])
        source = SupabaseRecordSource(client)
        rows = source.fetch(RecordQuery(
            table="service_shifts",
            columns="store,dot_pct",
            date_from=date(2026, 1, 1),
            date_to=date(2026, 2, 1),
            equals={"store": "Kilkeel"},
            not_null=("dot_pct",),
            limit=500,
        ))
        assert rows == [{"store": "Kilkeel"}]
        calls = client.queries[0].calls
        assert client.queries[0].table == "service_shifts"
        assert calls == [
            ("select", "store,dot_pct"),
            ("gte", "shift_date", "2026-01-01"),
            ("lt", "shift_date", "2026-02-01"),
            ("eq", "store", "Kilkeel"),
            ("not.is", "dot_pct", "null"),
            ("order", "shift_date", ("desc", True)),
            ("limit", 500),
        ]

    def test_inclusive_end_uses_lte(self):
        client = _FakeClient(data=[])
        SupabaseRecordSource(client).fetch(RecordQuery(
            table="osa_internal_results", date_to=date(2026, 1, 31), date_to_inclusive=True,
        ))
        assert ("lte", "shift_date", "2026-01-31") in client.queries[0].calls

    def test_unordered_query_skips_order(self):
        client = _FakeClient(data=[])
        SupabaseRecordSource(client).fetch(RecordQuery(table="profiles", date_field=None))
        assert all(c[0] != "order" for c in client.queries[0].calls)

    def test_no_data_is_empty_list(self):
        client = _FakeClient(data=None)
        assert SupabaseRecordSource(client).fetch(RecordQuery(table="profiles", date_field=None)) == []

    def test_client_error_wrapped(self):
        client = _FakeClient(error=ConnectionError("network down"))
        with pytest.raises(FetchError) as exc_info:
            SupabaseRecordSource(client).fetch(RecordQuery(table="service_shifts"))
        assert exc_info.value.table == "service_shifts"
        assert isinstance(exc_info.value.__cause__, ConnectionError)


# ---------------------------------------------------------------------------
# 4. Parallel fetch
# ---------------------------------------------------------------------------

class _FailingSource:
    def __init__(self, failing_table):
        self.failing_table = failing_table

    def fetch(self, query):
        if query.table == self.failing_table:
            raise RuntimeError("boom")
        return [{"table": query.table}]


class TestFetchParallel:

    def test_all_results_by_name(self):
        source = InMemoryRecordSource({"a": [{"x": 1}], "b": [{"x": 2}, {"x": 3}]})
        result = fetch_parallel(source, {
            "first": RecordQuery(table="a", date_field=None),
            "second": RecordQuery(table="b", date_field=None),
        })
        assert len(result["first"]) == 1
        assert len(result["second"]) == 2

    def test_empty(self):
        assert fetch_parallel(InMemoryRecordSource({}), {}) == {}

    def test_unexpected_error_becomes_fetch_error(self):
        with pytest.raises(FetchError) as exc_info:
            fetch_parallel(_FailingSource("b"), {
                "a": RecordQuery(table="a"),
                "b": RecordQuery(table="b"),
            })
        assert exc_info.value.table == "b"

    def test_source_errors_propagate(self):
        source = InMemoryRecordSource({"a": []})
        with pytest.raises(SourceError):
            fetch_parallel(source, {
                "a": RecordQuery(table="a"),
                "missing": RecordQuery(table="missing"),
            })
