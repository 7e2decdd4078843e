"""
Path resolver for mourne_metrics.

Rules
-----
* base_dir  → $MOURNE_METRICS_HOME when set, otherwise the project root
* data_dir  → base_dir/data  (settings.json and CSV table snapshots);
              fallback ~/.mourne_metrics/data if base_dir is read-only
* logs_dir  → base_dir/logs; fallback ~/.mourne_metrics/logs

Directories are created on first request, never at import time.
"""

import os
from pathlib import Path

HOME_ENV_VAR = "MOURNE_METRICS_HOME"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _get_base_dir() -> Path:
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    # mourne_metrics/utils/paths.py → project root
    return Path(__file__).resolve().parent.parent.parent


def _try_writable(path: Path) -> bool:
    """
    Return True if *path* can be created and used as a writable directory.

    Uses a canary-file probe so permission problems surface here rather
    than on the first log write.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        canary = path / ".write_probe"
        canary.touch()
        canary.unlink()
        return True
    except OSError:
        return False


def _user_dir(sub: str) -> Path:
    return Path.home() / ".mourne_metrics" / sub


def _resolve(sub: str) -> Path:
    primary = _get_base_dir() / sub
    if _try_writable(primary):
        return primary
    fallback = _user_dir(sub)
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_base_dir() -> Path:
    return _get_base_dir()


def get_data_dir() -> Path:
    """Directory holding settings.json and exported table snapshots."""
    return _resolve("data")


def get_logs_dir() -> Path:
    return _resolve("logs")


def get_settings_path() -> Path:
    return get_data_dir() / "settings.json"
