"""
Logging setup for insight-runner: console plus a rotating run log
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-18s | %(name)-40s | %(message)s"
LOG_FILE = "insight_runner.log"

# Per-request INFO lines would drown the per-tenant log
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(log_dir: str = "data/logs", console_level: int = logging.INFO) -> logging.Logger:
    """
    Route all insight-runner logging to the console and ``<log_dir>/insight_runner.log``.

    The file keeps DEBUG detail (10 MB x 5 backups). Calling this again replaces
    the handlers instead of stacking them.
    """
    log_path = Path(log_dir) / LOG_FILE
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)

    file_handler = RotatingFileHandler(
        log_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    for handler in (console_handler, file_handler):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging to {log_path} (console level {logging.getLevelName(console_level)})")
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
