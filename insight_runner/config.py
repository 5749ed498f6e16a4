"""
Runtime configuration loaded from the environment (.env supported)
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from insight_runner.errors import ConfigurationError

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_UNIT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_WORKERS = 1
DEFAULT_LEDGER_PATH = "data/insight_runs.db"
DEFAULT_LOG_DIR = "data/logs"


def _read_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Everything a run needs that is not passed on the command line."""

    api_url: str = DEFAULT_API_URL
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    unit_timeout_seconds: float = DEFAULT_UNIT_TIMEOUT_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS
    run_deadline_seconds: Optional[float] = None
    ledger_path: str = DEFAULT_LEDGER_PATH
    log_dir: str = DEFAULT_LOG_DIR

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            dotenv: If True, load a .env file first (existing variables win)

        Raises:
            ConfigurationError: If a numeric variable is malformed
        """
        if dotenv:
            load_dotenv()

        return cls(
            api_url=os.getenv("INSIGHTS_API_URL") or DEFAULT_API_URL,
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_service_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
            unit_timeout_seconds=_read_float(
                "INSIGHT_UNIT_TIMEOUT_SECONDS", DEFAULT_UNIT_TIMEOUT_SECONDS
            ),
            max_workers=_read_int("INSIGHT_MAX_WORKERS", DEFAULT_MAX_WORKERS),
            run_deadline_seconds=_read_float("INSIGHT_RUN_DEADLINE_SECONDS", None),
            ledger_path=os.getenv("INSIGHT_LEDGER_PATH") or DEFAULT_LEDGER_PATH,
            log_dir=os.getenv("INSIGHT_LOG_DIR") or DEFAULT_LOG_DIR,
        )
