"""Environment driven configuration.

Values are read from environment variables once and cached.  ``NEON_URL``
switches the record sources from the local SQLite file to Postgres.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    neon_url: str = ""
    db_path: Path = DATA_DIR / "engagement.db"
    default_days: int = 90
    max_days: int = 365
    min_sends: int = 5
    top_n: int = 10
    report_workers: int = 3
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def use_neon(self) -> bool:
        return bool(self.neon_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build :class:`Settings` from the current environment."""
    db_path = os.getenv("ANALYTICS_DB_PATH", "").strip()
    return Settings(
        neon_url=os.getenv("NEON_URL", "").strip(),
        db_path=Path(db_path) if db_path else DATA_DIR / "engagement.db",
        default_days=_int_env("ANALYTICS_DEFAULT_DAYS", 90),
        max_days=_int_env("ANALYTICS_MAX_DAYS", 365),
        min_sends=_int_env("ANALYTICS_MIN_SENDS", 5),
        top_n=_int_env("ANALYTICS_TOP_N", 10),
        report_workers=max(1, _int_env("ANALYTICS_REPORT_WORKERS", 3)),
        api_host=os.getenv("ANALYTICS_API_HOST", "0.0.0.0"),
        api_port=_int_env("ANALYTICS_API_PORT", 8000),
    )
