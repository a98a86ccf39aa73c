"""
Logging setup.

Everything logs under the "historian" logger. The full stream goes to a
log file; stderr only sees warnings so the HTTP server's console
stays readable.

Environment:
    HISTORIAN_DEBUG     debug level when truthy
    HISTORIAN_LOG_FILE  log file (default: <data dir>/historian.log)
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from historian.configs.paths import get_data_path

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every request or telemetry call at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "chromadb")


def _debug_from_env() -> bool:
    return os.environ.get("HISTORIAN_DEBUG", "").lower() in ("true", "1", "yes")


def _default_log_file() -> Path:
    configured = os.environ.get("HISTORIAN_LOG_FILE")
    return Path(configured) if configured else get_data_path() / "historian.log"


def _with_format(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.setLevel(level)
    return handler


def setup_logging(debug: Optional[bool] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Install the stderr and file handlers on the "historian" logger.

    Safe to call again; previous handlers are replaced.

    Args:
        debug: Debug level instead of INFO (default: HISTORIAN_DEBUG)
        log_file: Log file path (default: HISTORIAN_LOG_FILE or the data dir)
    """
    level = logging.DEBUG if (_debug_from_env() if debug is None else debug) else logging.INFO
    log_path = Path(log_file) if log_file else _default_log_file()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("historian")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_with_format(logging.StreamHandler(sys.stderr), logging.WARNING))
    logger.addHandler(_with_format(logging.FileHandler(log_path), level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging to file: {log_path}")
    return logger


def get_logger(component: str) -> logging.Logger:
    """Component logger, e.g. get_logger("search.engine") -> historian.search.engine."""
    return logging.getLogger(f"historian.{component}")
