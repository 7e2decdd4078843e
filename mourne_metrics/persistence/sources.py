"""
Record sources: the query capability the views fetch their snapshots from.

The engine never reaches for a shared client.  Every view receives a
``RecordSource`` explicitly:

- InMemoryRecordSource  fixtures / tests
- CSVRecordSource       exported table snapshots (<table>.csv)
- SupabaseRecordSource  the hosted Postgres tables through the Supabase client

A query is a date-range + equality filter on one table, ordered by the date
field (descending by default) with an optional row limit.  Sources return
plain dicts; mapping to MetricRecord happens in domain.normalize.
"""

import csv
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date as Date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from ..domain.normalize import normalise_iso_date

logger = logging.getLogger(__name__)


# ============================================================
# Exceptions
# ============================================================

class SourceError(Exception):
    """Base exception for record source operations"""
    pass


class FetchError(SourceError):
    """Raised when a query against the backing store fails"""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class TableNotFoundError(SourceError):
    """Raised when a table (or its snapshot file) does not exist"""
    pass


# ============================================================
# Query
# ============================================================

@dataclass(frozen=True)
class RecordQuery:
    """
    Filter over one table.

    date_to is exclusive unless date_to_inclusive is set.  With no date_field
    the query is unordered and cannot carry date bounds.  ``equals`` holds
    column → value equality predicates (e.g. store); ``not_null`` lists
    columns that must be present.
    """
    table: str
    columns: str = "*"
    date_field: Optional[str] = "shift_date"
    date_from: Optional[Date] = None
    date_to: Optional[Date] = None
    date_to_inclusive: bool = False
    equals: Mapping[str, Any] = field(default_factory=dict)
    not_null: Sequence[str] = ()
    order_desc: bool = True
    limit: Optional[int] = None

    def __post_init__(self):
        if self.date_field is None and (self.date_from is not None or self.date_to is not None):
            raise ValueError(f"Query on {self.table} has date bounds but no date_field")
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")


class RecordSource(Protocol):
    def fetch(self, query: RecordQuery) -> List[Dict[str, Any]]:
        ...


_TRUE_STRINGS = ("true", "t", "1", "yes")
_FALSE_STRINGS = ("false", "f", "0", "no")


def _values_equal(actual: Any, expected: Any) -> bool:
    # CSV snapshots hold every cell as text
    if actual == expected:
        return True
    if actual is None:
        return False
    text = str(actual).strip().lower()
    if isinstance(expected, bool):
        return text in (_TRUE_STRINGS if expected else _FALSE_STRINGS)
    return text == str(expected).strip().lower()


def _row_matches(row: Mapping[str, Any], query: RecordQuery) -> bool:
    if query.date_from is not None or query.date_to is not None:
        day = normalise_iso_date(row.get(query.date_field))
        if day is None:
            return False
        if query.date_from is not None and day < query.date_from:
            return False
        if query.date_to is not None:
            if query.date_to_inclusive and day > query.date_to:
                return False
            if not query.date_to_inclusive and day >= query.date_to:
                return False
    for column, expected in query.equals.items():
        if not _values_equal(row.get(column), expected):
            return False
    for column in query.not_null:
        if row.get(column) in (None, ""):
            return False
    return True


def _project(row: Mapping[str, Any], columns: str) -> Dict[str, Any]:
    if columns.strip() == "*":
        return dict(row)
    names = [c.strip() for c in columns.split(",") if c.strip()]
    return {name: row.get(name) for name in names}


def apply_query(rows: Sequence[Mapping[str, Any]], query: RecordQuery) -> List[Dict[str, Any]]:
    """Evaluate a RecordQuery over rows held in memory."""
    matched = [r for r in rows if _row_matches(r, query)]

    if query.date_field is not None:
        def _date_key(row: Mapping[str, Any]) -> Tuple[int, int]:
            day = normalise_iso_date(row.get(query.date_field))
            if day is None:
                return (1, 0)
            return (0, -day.toordinal() if query.order_desc else day.toordinal())

        matched.sort(key=_date_key)
    if query.limit is not None:
        matched = matched[:query.limit]
    return [_project(r, query.columns) for r in matched]


# ============================================================
# Sources
# ============================================================

class InMemoryRecordSource:
    """Source over dict rows held in memory, keyed by table name."""

    def __init__(self, tables: Mapping[str, Sequence[Mapping[str, Any]]]):
        self.tables = {name: list(rows) for name, rows in tables.items()}

    def fetch(self, query: RecordQuery) -> List[Dict[str, Any]]:
        if query.table not in self.tables:
            raise TableNotFoundError(f"Unknown table: {query.table}")
        return apply_query(self.tables[query.table], query)


class CSVRecordSource:
    """
    Source over exported table snapshots: one ``<table>.csv`` per table in
    ``data_dir``.  Empty cells come back as "" and are handled by the
    normaliser like any other blank value.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _read_csv(self, table: str) -> List[Dict[str, str]]:
        filepath = self.data_dir / f"{table}.csv"
        if not filepath.exists():
            raise TableNotFoundError(f"No snapshot for table {table} at {filepath}")
        try:
            with open(filepath, "r", newline="", encoding="utf-8") as f:
                return list(csv.DictReader(f))
        except (OSError, csv.Error) as e:
            raise FetchError(f"Could not read {filepath}: {e}", table=table) from e

    def fetch(self, query: RecordQuery) -> List[Dict[str, Any]]:
        return apply_query(self._read_csv(query.table), query)


class SupabaseRecordSource:
    """
    Source over the hosted Postgres tables, via an injected Supabase client.

    Any client-side exception (network, auth, bad column) is wrapped in
    FetchError; no retries, no fallback data.
    """

    def __init__(self, client: Any):
        self.client = client

    def fetch(self, query: RecordQuery) -> List[Dict[str, Any]]:
        try:
            q = self.client.table(query.table).select(query.columns)
            if query.date_from is not None:
                q = q.gte(query.date_field, query.date_from.isoformat())
            if query.date_to is not None:
                if query.date_to_inclusive:
                    q = q.lte(query.date_field, query.date_to.isoformat())
                else:
                    q = q.lt(query.date_field, query.date_to.isoformat())
            for column, value in query.equals.items():
                q = q.eq(column, value)
            for column in query.not_null:
                q = q.not_.is_(column, "null")
            if query.date_field is not None:
                q = q.order(query.date_field, desc=query.order_desc)
            if query.limit is not None:
                q = q.limit(query.limit)
            response = q.execute()
        except Exception as e:
            logger.warning(f"Query on {query.table} failed: {e}")
            raise FetchError(f"Failed to load {query.table}: {e}", table=query.table) from e
        return list(response.data or [])


def create_supabase_source(url: str, key: str) -> SupabaseRecordSource:
    """Build a SupabaseRecordSource from project URL and API key."""
    from supabase import create_client

    if not url or not key:
        raise ValueError("Supabase URL and key are required")
    return SupabaseRecordSource(create_client(url, key))


# ============================================================
# Parallel fetch
# ============================================================

def fetch_parallel(
    source: RecordSource,
    queries: Mapping[str, RecordQuery],
    max_workers: int = 4,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Run independent queries concurrently and wait for all of them.

    Args:
        source:      Record source shared by all queries.
        queries:     name → RecordQuery.
        max_workers: Thread pool size.

    Returns:
        name → rows.

    Raises:
        FetchError: as soon as any query fails; no partial result is returned.
    """
    if not queries:
        return {}
    results: Dict[str, List[Dict[str, Any]]] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(source.fetch, q): name for name, q in queries.items()}
        for future in as_completed(futures):
            name = futures[future]
            try:
                results[name] = future.result()
            except SourceError:
                for f in futures:
                    f.cancel()
                raise
            except Exception as e:
                for f in futures:
                    f.cancel()
                raise FetchError(f"Failed to load {name}: {e}", table=queries[name].table) from e
    logger.debug(
        "Fetched " + ", ".join(f"{name}={len(rows)}" for name, rows in sorted(results.items()))
    )
    return results
