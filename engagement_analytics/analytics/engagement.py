"""Engagement aggregation over per-message records.

:func:`aggregate_engagement` produces every message-level aggregate of the
report in one call: totals, unique recipient counts, hourly and weekday
histograms, time-to-first-open buckets, subject length buckets, attachment
impact, device and location rollups and the best subjects and content keys.

All aggregates are sums, distinct counts or histogram increments, so the
result does not depend on record order.  Hours and weekdays are taken in
UTC.  A record without a recipient still counts toward totals but not
toward any recipient keyed aggregate; a record with a malformed timestamp
is skipped by the time buckets only.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd
import polars as pl

from .frame_bridge import prepare_events
from .quality import wilson_lower_bound

WEEKDAYS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

# upper bounds in hours, checked in order
ENGAGEMENT_BUCKETS = (("immediate", 1.0), ("quick", 6.0), ("delayed", 24.0))
LATE_BUCKET = "late"

_HAS_RECIPIENT = pl.col("recipient").is_not_null()


def _pct(num: float, den: float) -> float:
    return (num / den) * 100.0 if den > 0 else 0.0


def _distinct_recipients(condition: Optional[pl.Expr] = None) -> pl.Expr:
    col = pl.col("recipient")
    if condition is not None:
        col = col.filter(condition)
    return col.drop_nulls().n_unique()


def _hour_weekday_counts(ev: pl.DataFrame, ts_col: str) -> tuple[Dict[int, int], Dict[int, int]]:
    stamped = ev.filter(pl.col(ts_col).is_not_null())
    if stamped.is_empty():
        return {}, {}
    by_hour = stamped.group_by(pl.col(ts_col).dt.hour().alias("slot")).agg(pl.len().alias("n"))
    # Polars weekdays run Mon=1..Sun=7; slot 0 is Sunday
    by_day = stamped.group_by((pl.col(ts_col).dt.weekday() % 7).alias("slot")).agg(pl.len().alias("n"))
    return (
        {int(r["slot"]): int(r["n"]) for r in by_hour.to_dicts()},
        {int(r["slot"]): int(r["n"]) for r in by_day.to_dicts()},
    )


def _time_analysis(ev: pl.DataFrame) -> Dict[str, Any]:
    open_hours, open_days = _hour_weekday_counts(ev, "first_open_at")
    click_hours, click_days = _hour_weekday_counts(ev, "first_click_at")

    hourly = [
        {"hour": h, "opens": open_hours.get(h, 0), "clicks": click_hours.get(h, 0)}
        for h in range(24)
    ]
    daily = [
        {"day": name, "opens": open_days.get(i, 0), "clicks": click_days.get(i, 0)}
        for i, name in enumerate(WEEKDAYS)
    ]

    buckets = {name: 0 for name, _ in ENGAGEMENT_BUCKETS}
    buckets[LATE_BUCKET] = 0
    delays = ev.filter(
        pl.col("first_open_at").is_not_null() & pl.col("sent_at").is_not_null()
    ).select(
        ((pl.col("first_open_at") - pl.col("sent_at")).dt.total_seconds() / 3600.0).alias("hours")
    )
    for hours in delays["hours"].to_list():
        for name, bound in ENGAGEMENT_BUCKETS:
            if hours < bound:
                buckets[name] += 1
                break
        else:
            buckets[LATE_BUCKET] += 1

    return {"hourly_pattern": hourly, "daily_pattern": daily, "time_to_engagement": buckets}


def _subject_lengths(ev: pl.DataFrame) -> List[Dict[str, Any]]:
    subjects = ev.filter(pl.col("subject").is_not_null())
    if subjects.is_empty():
        return []
    grouped = (
        subjects.group_by(((pl.col("subject").str.len_chars() // 10) * 10).alias("length"))
        .agg(
            pl.len().cast(pl.Int64).alias("sent"),
            pl.col("opens").sum().alias("opens"),
            pl.col("clicks").sum().alias("clicks"),
        )
        .sort("length")
    )
    rows = grouped.to_dicts()
    for row in rows:
        row["open_rate"] = _pct(row["opens"], row["sent"])
        row["click_rate"] = _pct(row["clicks"], row["sent"])
    return rows


def _attachment_impact(ev: pl.DataFrame) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for key, flag in (("with_attachments", True), ("without_attachments", False)):
        part = ev.filter(pl.col("attachments") == flag)
        sent = part.height
        opens = int(part["opens"].sum()) if sent else 0
        out[key] = {"sent": sent, "opens": opens, "open_rate": _pct(opens, sent)}
    return out


def _breakdown(ev: pl.DataFrame, column: str, label: str) -> List[Dict[str, Any]]:
    """Opens/clicks per value of ``column`` over records that were opened."""
    part = ev.filter(pl.col(column).is_not_null() & (pl.col("opens") > 0))
    if part.is_empty():
        return []
    grouped = (
        part.group_by(pl.col(column).alias(label))
        .agg(
            pl.col("opens").sum().alias("opens"),
            pl.col("clicks").sum().alias("clicks"),
            _distinct_recipients().cast(pl.Int64).alias("unique_users"),
        )
        .sort(["opens", label], descending=[True, False])
    )
    rows = grouped.to_dicts()
    for row in rows:
        users = row["unique_users"]
        row["avg_opens_per_user"] = row["opens"] / users if users > 0 else 0.0
    return rows


def _top_performers(
    ev: pl.DataFrame, column: str, label: str, *, min_sends: int, top_n: int
) -> List[Dict[str, Any]]:
    part = ev.filter(pl.col(column).is_not_null())
    if part.is_empty():
        return []
    grouped = (
        part.group_by(pl.col(column).alias(label))
        .agg(
            pl.len().cast(pl.Int64).alias("sent"),
            pl.col("opens").sum().alias("opens"),
            pl.col("clicks").sum().alias("clicks"),
            _distinct_recipients(pl.col("opens") > 0).cast(pl.Int64).alias("unique_opens"),
            _distinct_recipients(pl.col("clicks") > 0).cast(pl.Int64).alias("unique_clicks"),
        )
        .filter(pl.col("sent") >= min_sends)
    )
    if grouped.is_empty():
        return []
    grouped = grouped.with_columns(
        (pl.col("unique_opens") / pl.col("sent") * 100.0).alias("open_rate"),
        (pl.col("unique_clicks") / pl.col("sent") * 100.0).alias("click_rate"),
    ).sort(["open_rate", label], descending=[True, False]).head(top_n)

    rows = grouped.to_dicts()
    scores = wilson_lower_bound(grouped["unique_opens"].to_numpy(), grouped["sent"].to_numpy())
    for row, score in zip(rows, scores):
        row["confidence_score"] = float(score)
    return rows


def aggregate_engagement(
    events: pd.DataFrame | pl.DataFrame | None,
    *,
    min_sends: int = 5,
    top_n: int = 10,
) -> Dict[str, Any]:
    """Aggregate message-level engagement for one analysis window."""
    ev = prepare_events(events)
    known = ev.filter(_HAS_RECIPIENT)

    opens = int(ev["opens"].sum()) if ev.height else 0
    clicks = int(ev["clicks"].sum()) if ev.height else 0
    unique_recipients = known["recipient"].n_unique() if known.height else 0
    unique_openers = known.filter(pl.col("opens") > 0)["recipient"].n_unique()
    unique_clickers = known.filter(pl.col("clicks") > 0)["recipient"].n_unique()

    metrics = {
        "opens": opens,
        "clicks": clicks,
        "unique_openers": unique_openers,
        "unique_clickers": unique_clickers,
        "multiple_opens": known.filter(pl.col("opens") > 1).height,
        "multiple_clicks": known.filter(pl.col("clicks") > 1).height,
        "forward_shares": int(ev["forward_count"].sum()) if ev.height else 0,
    }

    return {
        "total_emails": ev.height,
        "unique_recipients": unique_recipients,
        "engagement_metrics": metrics,
        "rates": {
            "open_rate": _pct(unique_openers, unique_recipients),
            "click_rate": _pct(unique_clickers, unique_recipients),
            "click_to_open_rate": _pct(unique_clickers, unique_openers),
        },
        "time_analysis": _time_analysis(ev),
        "content_analysis": {
            "subject_line_length": _subject_lengths(ev),
            "attachment_impact": _attachment_impact(ev),
        },
        "device_engagement": _breakdown(ev, "device_type", "device"),
        "location_engagement": _breakdown(ev, "geo_country", "country"),
        "top_subjects": _top_performers(ev, "subject", "subject", min_sends=min_sends, top_n=top_n),
        "top_content": _top_performers(ev, "content_key", "content_key", min_sends=min_sends, top_n=top_n),
    }
