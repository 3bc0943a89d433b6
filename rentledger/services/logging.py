"""Root logger setup for billing runs.

Every record goes to the console and to a log file. Forced balance
recalculations log at WARNING with an "AUDIT:" prefix, so the file keeps
a record of every manual repair even when LOG_LEVEL is raised to WARNING.
"""

import logging
import os
import sys
from pathlib import Path

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_LEVEL_MAP = {name: logging.getLevelNamesMapping()[name] for name in LEVEL_NAMES}

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_level(level_name: str | None = None) -> int:
    """Level for a name such as "warning"; LOG_LEVEL is read when no name is given.

    Unknown names resolve to INFO.
    """
    name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    return LOG_LEVEL_MAP.get(name, logging.INFO)


def _build_handlers(log_path: Path) -> list[logging.Handler]:
    return [logging.StreamHandler(sys.stdout), logging.FileHandler(log_path)]


def setup_logging(log_file: str = "logs/rentledger.log", level_name: str | None = None) -> None:
    """
    Replace the root logger's handlers with console and file output.

    Calling it again swaps the handlers rather than stacking them, so a
    long-running process can reconfigure after reloading its settings.

    Args:
        log_file: File that receives every record; its directory is created
        level_name: Level for the root logger and both handlers
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = get_log_level(level_name)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()
    root.setLevel(level)

    for handler in _build_handlers(log_path):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
