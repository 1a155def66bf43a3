"""Bridges between raw pandas records and typed Polars frames.

Sources return pandas DataFrames with whatever types the store produced.
Everything below the bridge works on Polars frames with a fixed schema, so
the normalisation rules live here in one place:

* addresses are stripped and lowercased, blanks become null;
* timestamps are parsed leniently into UTC, malformed values become null;
* counters become non-negative integers;
* flags accept booleans, ``"1"/"true"/"yes"`` and list-like attachments.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import pandas as pd
import polars as pl

UTC_DATETIME = pl.Datetime("us", "UTC")

EVENT_SCHEMA: dict[str, Any] = {
    "recipient": pl.Utf8,
    "sent_at": UTC_DATETIME,
    "opens": pl.Int64,
    "clicks": pl.Int64,
    "first_open_at": UTC_DATETIME,
    "first_click_at": UTC_DATETIME,
    "subject": pl.Utf8,
    "content_key": pl.Utf8,
    "attachments": pl.Boolean,
    "device_type": pl.Utf8,
    "geo_country": pl.Utf8,
    "forward_count": pl.Int64,
    "is_test": pl.Boolean,
}

SUBSCRIBER_SCHEMA: dict[str, Any] = {
    "email": pl.Utf8,
    "signup_date": UTC_DATETIME,
    "status": pl.Utf8,
}

_TS_COLS = ("sent_at", "first_open_at", "first_click_at")
_COUNT_COLS = ("opens", "clicks", "forward_count")
_FLAG_COLS = ("attachments", "is_test")
_TEXT_COLS = ("subject", "content_key", "device_type", "geo_country")
_TRUE_STRINGS = {"1", "true", "yes"}


def to_pd(df_pl: pl.DataFrame | pd.DataFrame | None) -> pd.DataFrame:
    """Convert Polars to pandas at integration boundaries."""
    if df_pl is None:
        return pd.DataFrame()
    if isinstance(df_pl, pd.DataFrame):
        return df_pl
    return df_pl.to_pandas()


def assert_schema(df: pl.DataFrame | pd.DataFrame, cols: Iterable[str]) -> None:
    """Raise ``ValueError`` when any of ``cols`` is missing from ``df``."""
    present = set(df.columns)
    missing = [c for c in cols if c not in present]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def utc_now(now: datetime | None = None) -> datetime:
    """Return ``now`` as an aware UTC datetime (current time when omitted)."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _ensure_ts(series: pd.Series) -> pd.Series:
    return pd.to_datetime(series, errors="coerce", utc=True, format="mixed")


def _normalize_email(s: pd.Series) -> pd.Series:
    s = s.astype("string").str.strip().str.lower()
    return s.replace("", pd.NA)


def _normalize_text(s: pd.Series) -> pd.Series:
    s = s.astype("string").str.strip()
    return s.replace("", pd.NA)


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if hasattr(value, "__len__"):
        # attachment lists: any attachment counts
        return len(value) > 0
    if value is None or pd.isna(value):
        return False
    return bool(value)


def _as_count(s: pd.Series) -> pd.Series:
    return pd.to_numeric(s, errors="coerce").astype("float64").fillna(0).clip(lower=0).astype("int64")


def _empty(schema: dict[str, Any]) -> pl.DataFrame:
    return pl.DataFrame(schema=schema)


def _is_prepared(df: Any, schema: dict[str, Any]) -> bool:
    """True for Polars frames that already went through this bridge."""
    return isinstance(df, pl.DataFrame) and dict(df.schema) == schema


def prepare_events(
    events: pd.DataFrame | pl.DataFrame | None,
    *,
    exclude_tests: bool = True,
) -> pl.DataFrame:
    """Normalise raw event records into a frame with :data:`EVENT_SCHEMA`.

    Test sends are dropped unless ``exclude_tests`` is false, so no
    aggregate downstream ever sees them.
    """
    if _is_prepared(events, EVENT_SCHEMA):
        return events.filter(~pl.col("is_test")) if exclude_tests else events
    ev = to_pd(events)
    if ev.empty:
        return _empty(EVENT_SCHEMA)
    ev = ev.copy()
    for col in EVENT_SCHEMA:
        if col not in ev.columns:
            ev[col] = None

    ev["recipient"] = _normalize_email(ev["recipient"])
    for col in _TS_COLS:
        ev[col] = _ensure_ts(ev[col])
    for col in _COUNT_COLS:
        ev[col] = _as_count(ev[col])
    for col in _FLAG_COLS:
        ev[col] = ev[col].map(_as_flag).astype(bool)
    for col in _TEXT_COLS:
        ev[col] = _normalize_text(ev[col])

    out = pl.from_pandas(ev[list(EVENT_SCHEMA)], include_index=False).cast(EVENT_SCHEMA)
    if exclude_tests:
        out = out.filter(~pl.col("is_test"))
    return out


def prepare_subscribers(subscribers: pd.DataFrame | pl.DataFrame | None) -> pl.DataFrame:
    """Normalise subscriber records into a frame with :data:`SUBSCRIBER_SCHEMA`.

    Records without an address are dropped; duplicates keep the last entry.
    A missing status means ``active``.
    """
    if _is_prepared(subscribers, SUBSCRIBER_SCHEMA):
        return subscribers
    sg = to_pd(subscribers)
    if sg.empty:
        return _empty(SUBSCRIBER_SCHEMA)
    sg = sg.copy()
    for col in SUBSCRIBER_SCHEMA:
        if col not in sg.columns:
            sg[col] = None

    sg["email"] = _normalize_email(sg["email"])
    sg["signup_date"] = _ensure_ts(sg["signup_date"])
    sg["status"] = _normalize_text(sg["status"]).str.lower().fillna("active")

    out = pl.from_pandas(sg[list(SUBSCRIBER_SCHEMA)], include_index=False).cast(SUBSCRIBER_SCHEMA)
    return (
        out.filter(pl.col("email").is_not_null())
        .unique(subset=["email"], keep="last", maintain_order=True)
    )
