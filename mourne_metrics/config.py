"""
Project configuration and constants.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Stores shown on every dashboard, in display order
STORES = ("Downpatrick", "Kilkeel", "Newcastle", "Ballynahinch")

# Profiles with these job roles never appear on the MPI leaderboard
EXCLUDED_ROLES = frozenset({"Area Manager", "OEC"})

# Labour % of sales (0-100 scale) at or below which a store is on target
LABOUR_TARGET = 25.0

REFRESH_INTERVAL_SECONDS = 60

# Backend tables
SERVICE_TABLE = "service_shifts"
COST_TABLE = "cost_control_entries"
OSA_TABLE = "osa_internal_results"
PROFILES_TABLE = "profiles"
DAILY_INPUTS_TABLE = "daily_update_store_inputs"

# Service view lookback (days)
SERVICE_LOOKBACK_DAYS = 60

DEFAULT_SCORING_PROFILE = "linear"

SUPABASE_URL_ENV = "SUPABASE_URL"
SUPABASE_KEY_ENV = "SUPABASE_KEY"


# ============================================================
# settings.json
# ============================================================

def _settings_file(settings_file: Optional[Path] = None) -> Path:
    if settings_file is not None:
        return Path(settings_file)
    from .utils.paths import get_settings_path
    return get_settings_path()


def load_settings(settings_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read settings.json.

    Returns:
        Settings dict; empty when the file is missing or unreadable.
    """
    path = _settings_file(settings_file)
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            settings = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return {}
    if not isinstance(settings, dict):
        logger.warning(f"Ignoring settings file {path}: top level is not an object")
        return {}
    return settings


def save_settings(settings: Dict[str, Any], settings_file: Optional[Path] = None) -> bool:
    """Write settings.json. Returns True if successful."""
    path = _settings_file(settings_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(settings, f, indent=2)
        return True
    except IOError as e:
        logger.warning(f"Could not write settings file {path}: {e}")
        return False


# ============================================================
# Scoring profile
# ============================================================

def get_scoring_profile_name(settings_file: Optional[Path] = None) -> str:
    """
    Scoring profile selected in settings.json ("linear" or "banded").

    Unknown or missing values fall back to DEFAULT_SCORING_PROFILE.
    """
    from .analytics.scoring import PROFILES

    name = load_settings(settings_file).get("scoring_profile", DEFAULT_SCORING_PROFILE)
    if name not in PROFILES:
        logger.warning(f"Unknown scoring profile in settings: {name!r}")
        return DEFAULT_SCORING_PROFILE
    return name


def set_scoring_profile_name(name: str, settings_file: Optional[Path] = None) -> bool:
    """
    Persist the scoring profile.

    Returns:
        True if successful, False for an unknown profile or a write failure.
    """
    from .analytics.scoring import PROFILES

    if name not in PROFILES:
        return False
    settings = load_settings(settings_file)
    settings["scoring_profile"] = name
    return save_settings(settings, settings_file)


# ============================================================
# Supabase credentials
# ============================================================

def get_supabase_credentials(settings_file: Optional[Path] = None) -> Tuple[Optional[str], Optional[str]]:
    """
    (url, key) for the hosted data store.

    Environment variables win; settings.json keys ``supabase_url`` /
    ``supabase_key`` are the fallback.  Either value may be None.
    """
    url = os.environ.get(SUPABASE_URL_ENV) or None
    key = os.environ.get(SUPABASE_KEY_ENV) or None
    if url and key:
        return url, key
    settings = load_settings(settings_file)
    return url or settings.get("supabase_url"), key or settings.get("supabase_key")
