# src/config/logging_config.py

"""Per-run timestamped logging configuration for trustmart.

Every launch (CLI command, TUI session) writes to its own file inside
``logs/`` named after the launch time, e.g. ``logs/run_20261018_101500.log``.
All ``trustmart.*`` loggers propagate into that file, so a moderation
action and the scoring run it triggered can be read side by side.

Only warnings and errors reach stderr; the console stays usable for the
JSON the CLI prints on stdout.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# SDK loggers that are chatty at DEBUG
_NOISY_LOGGERS: tuple[str, ...] = (
    "google_genai",
    "httpx",
    "httpcore",
    "asyncio",
)


def _console_level() -> int:
    """Resolve the stderr level from TRUSTMART_LOG_LEVEL (default WARNING)."""
    raw = os.getenv("TRUSTMART_LOG_LEVEL", "WARNING").upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.WARNING


def setup_logging() -> Path:
    """Initialise the ``trustmart`` logger tree for the current run.

    Returns:
        The :class:`~pathlib.Path` of the log file created for this run.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    root_logger = logging.getLogger("trustmart")
    root_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, TUI relaunch) must not stack handlers
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_console_level())
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info("Logging initialised — log file: %s", log_file)
    return log_file
