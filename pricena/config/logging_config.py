# pricena/config/logging_config.py

"""Per-run timestamped logging configuration for pricena.

Each launch creates a dedicated log file inside ``logs/`` named with the
launch timestamp (e.g. ``logs/run_20261019_153045.log``).  Every
``pricena.*`` logger (orchestrator, caches, one per source adapter)
routes through this file handler, so a single run's fan-out, timeouts
and rejected items can be read back in order.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pricena.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

# Adapter loggers are named pricena.<source>; keep the suffix on stderr
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(source)-12s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _SourceFilter(logging.Filter):
    """Expose the logger name without the ``pricena.`` prefix as ``source``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.source = record.name.removeprefix("pricena.")
        return True


def _console_level() -> int:
    level = logging.getLevelName(Settings.CONSOLE_LOG_LEVEL)
    return level if isinstance(level, int) else logging.WARNING


def setup_logging() -> Path:
    """Initialise the root ``pricena`` logger for the current run.

    Returns:
        The :class:`~pathlib.Path` to the log file created for this run.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    root_logger = logging.getLogger("pricena")
    root_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, CLI re-entry) keep the first handlers
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_console_level())
    console_handler.addFilter(_SourceFilter())
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info("Logging initialised, log file: %s", log_file)

    return log_file
