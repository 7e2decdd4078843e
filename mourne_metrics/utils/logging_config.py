"""
Logging configuration for mourne_metrics.

Provides:
- File logging for warnings and errors (rejected inputs, fetch failures)
- Console logging for critical errors only
- Automatic log rotation
"""
import logging
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

APP_LOGGER_NAME = "mourne_metrics"


def setup_logging(
    log_dir: Optional[Union[str, Path]] = None,
    app_name: str = APP_LOGGER_NAME,
) -> logging.Logger:
    """
    Attach file + console handlers to the application logger.

    Module loggers (``logging.getLogger(__name__)``) live under the
    ``mourne_metrics`` namespace and propagate here.  Calling this twice is
    harmless: an already-configured logger is returned untouched.

    Args:
        log_dir: Directory for log files (created if missing).  When None
                 ``utils.paths.get_logs_dir()`` is used.
        app_name: Logger name, also used as the log file prefix.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(logging.DEBUG)

    if logger.handlers:
        return logger

    if log_dir is None:
        from .paths import get_logs_dir
        log_path = get_logs_dir()
    else:
        log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Rotating file: 5MB, keep 3 backups
    log_file = log_path / f"{app_name}_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding='utf-8',
    )
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    ))
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.CRITICAL)
    console_handler.setFormatter(logging.Formatter('CRITICAL: %(message)s'))
    logger.addHandler(console_handler)

    return logger


def set_console_level(level: int, app_name: str = APP_LOGGER_NAME) -> None:
    """Lower the console threshold (the CLI's --verbose flag)."""
    for handler in logging.getLogger(app_name).handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(level)


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)
