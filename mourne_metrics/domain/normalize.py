"""
Metric normaliser.

Turns heterogeneous raw values (numbers, numeric strings, blanks, percentages
on either a 0-1 or a 0-100 scale) into a canonical numeric form, and maps an
arbitrary backend row onto the fixed ``MetricRecord`` schema exactly once.

Every function here is total: unparseable input becomes None, nothing raises.
"""

import logging
import math
from datetime import date as Date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .models import MetricRecord, PercentUnit, UNKNOWN_LABEL

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------

def to_number(raw: Any) -> Optional[float]:
    """
    Parse a raw field value into a finite float.

    Returns None for None, blank strings, booleans, non-numeric strings and
    NaN/inf.  Strings may carry a leading currency sign, a trailing percent
    sign and thousands separators ("£1,250.50", "24.5%").
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip().replace(",", "")
        if text.startswith("£"):
            text = text[1:]
        if text.endswith("%"):
            text = text[:-1]
        text = text.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    else:
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return None
    if not math.isfinite(value):
        return None
    return value


def normalise_percent01(raw: Any) -> Optional[float]:
    """
    Bring a percentage onto the 0-1 scale.

    Values > 1 are taken to be on the 0-100 scale and divided by 100; anything
    else is used as-is.  Exactly 1 is treated as already fractional (100 %).
    """
    value = to_number(raw)
    if value is None:
        return None
    return value / 100.0 if value > 1 else value


def to_fraction(raw: Any, unit: PercentUnit = PercentUnit.AUTO) -> Optional[float]:
    """Convert a percentage in a declared unit to the 0-1 scale."""
    if unit is PercentUnit.AUTO:
        return normalise_percent01(raw)
    value = to_number(raw)
    if value is None:
        return None
    if unit is PercentUnit.POINTS:
        return value / 100.0
    return value


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return max(lo, min(hi, value))


def mean(values: Iterable[Optional[float]]) -> Optional[float]:
    """Mean of the non-None values; None when there are none."""
    valid = [v for v in values if v is not None]
    if not valid:
        return None
    return sum(valid) / len(valid)


def normalise_rack_load_minutes(raw: Any) -> Optional[float]:
    """
    Rack-and-load time in minutes.

    Some exports store seconds: values in (60, 3600] are converted.  Values
    <= 0, or above 120 minutes after conversion, are rejected.
    """
    value = to_number(raw)
    if value is None or value <= 0:
        return None
    minutes = value / 60.0 if 60 < value <= 3600 else value
    if minutes <= 0 or minutes > 120:
        return None
    return minutes


def normalise_iso_date(raw: Any) -> Optional[Date]:
    """Parse date / datetime / 'YYYY-MM-DD...' into a date, else None."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, Date):
        return raw
    if not isinstance(raw, str):
        return None
    text = raw.strip()[:10]
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


def normalise_label(raw: Any, default: Optional[str] = UNKNOWN_LABEL) -> Optional[str]:
    """Stripped string label, or ``default`` for missing / blank values."""
    if raw is None:
        return default
    text = str(raw).strip()
    return text if text else default


# ---------------------------------------------------------------------------
# Record normalisation (alias resolution at the boundary)
# ---------------------------------------------------------------------------

# Internal field -> backend column names, in lookup order.
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "store": ("store", "store_name", "shop"),
    "date": ("shift_date", "date", "shift_day", "shiftDay"),
    "manager": (
        "manager_name", "manager", "closing_manager", "shift_manager",
        "team_member_name", "user",
    ),
    "manager_id": (
        "manager_profile_id", "manager_user_id", "team_member_profile_id",
    ),
    "sales": ("sales_gbp", "sales", "net_sales", "actual_sales"),
    "forecast_sales": ("forecast_sales", "forecast_sales_gbp"),
    "labour_cost": ("labour_cost_gbp", "labour_gbp", "labour_cost", "labour"),
    "ideal_food_cost": ("ideal_food_cost_gbp", "ideal_food", "ideal_food_gbp"),
    "actual_food_cost": ("actual_food_cost_gbp", "actual_food", "actual_food_gbp"),
    "additional_hours": ("additional_hours",),
    "dot_pct": ("dot_pct", "dot"),
    "extremes_pct": ("extremes_pct", "extreme_over_40", "extremes_over40_pct"),
    "sbr_pct": ("sbr_pct",),
    "labour_pct": ("labour_pct",),
    "food_variance_pct": ("food_var_pct", "food_variance_pct"),
    "rnl_minutes": ("rnl_minutes", "rnl_mins"),
    "points_lost": ("points_lost",),
    "stars": ("stars", "star_rating"),
    "starting_points": ("starting_points",),
    "overall_points": ("overall_points",),
    "created_at": ("created_at",),
}

PERCENT_FIELDS = ("dot_pct", "extremes_pct", "sbr_pct", "labour_pct")

PLAIN_NUMERIC_FIELDS = (
    "sales", "forecast_sales", "labour_cost", "ideal_food_cost",
    "actual_food_cost", "additional_hours", "food_variance_pct",
    "points_lost", "stars", "starting_points", "overall_points",
)


def _first_present(row: Mapping[str, Any], names: Sequence[str]) -> Any:
    """Value of the first alias that is present and not None."""
    for name in names:
        if name in row and row[name] is not None:
            return row[name]
    return None


def record_from_row(
    row: Mapping[str, Any],
    field_units: Optional[Mapping[str, PercentUnit]] = None,
    rnl_seconds_compat: bool = False,
) -> MetricRecord:
    """
    Map one backend row onto a ``MetricRecord``.

    Args:
        row:                Raw row (column name -> value), any alias set.
        field_units:        Declared unit per percent field; AUTO otherwise.
        rnl_seconds_compat: Accept rack-and-load values stored in seconds.

    Returns:
        MetricRecord; missing dimension labels stay None here so the
        aggregator can bucket them under "Unknown".
    """
    units = dict(field_units or {})
    values: Dict[str, Any] = {}

    values["store"] = normalise_label(_first_present(row, FIELD_ALIASES["store"]), None)
    values["date"] = normalise_iso_date(_first_present(row, FIELD_ALIASES["date"]))
    values["manager"] = normalise_label(_first_present(row, FIELD_ALIASES["manager"]), None)
    values["manager_id"] = normalise_label(_first_present(row, FIELD_ALIASES["manager_id"]), None)

    for name in PLAIN_NUMERIC_FIELDS:
        values[name] = to_number(_first_present(row, FIELD_ALIASES[name]))

    for name in PERCENT_FIELDS:
        unit = units.get(name, PercentUnit.AUTO)
        values[name] = to_fraction(_first_present(row, FIELD_ALIASES[name]), unit)

    raw_rnl = _first_present(row, FIELD_ALIASES["rnl_minutes"])
    if rnl_seconds_compat:
        values["rnl_minutes"] = normalise_rack_load_minutes(raw_rnl)
    else:
        values["rnl_minutes"] = to_number(raw_rnl)

    if values["overall_points"] is None:
        start, lost = values["starting_points"], values["points_lost"]
        if start is not None and lost is not None:
            values["overall_points"] = start - lost

    created = _first_present(row, FIELD_ALIASES["created_at"])
    values["created_at"] = str(created) if created is not None else None

    return MetricRecord(**values)


def records_from_rows(
    rows: Iterable[Mapping[str, Any]],
    field_units: Optional[Mapping[str, PercentUnit]] = None,
    rnl_seconds_compat: bool = False,
) -> List[MetricRecord]:
    """List version of ``record_from_row``."""
    records = [
        record_from_row(r, field_units=field_units, rnl_seconds_compat=rnl_seconds_compat)
        for r in rows
    ]
    undated = sum(1 for r in records if r.date is None)
    if undated:
        logger.debug(f"{undated} of {len(records)} rows have no parseable date")
    return records
