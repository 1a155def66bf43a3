import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engagement_analytics.settings import get_settings

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)

_ENV_VARS = (
    "NEON_URL",
    "ANALYTICS_DB_PATH",
    "ANALYTICS_DEFAULT_DAYS",
    "ANALYTICS_MAX_DAYS",
    "ANALYTICS_MIN_SENDS",
    "ANALYTICS_TOP_N",
    "ANALYTICS_REPORT_WORKERS",
)


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW
