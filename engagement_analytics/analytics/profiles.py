from __future__ import annotations

from datetime import datetime
from typing import Optional

import pandas as pd
import polars as pl

from .frame_bridge import UTC_DATETIME, prepare_events, prepare_subscribers, utc_now

PROFILE_COLUMNS = [
    "email",
    "signup_date",
    "status",
    "total_emails",
    "total_opens",
    "total_clicks",
    "last_engaged_at",
    "engagement_score",
    "days_since_signup",
    "frequency",
    "days_since_last_engaged",
    "last_engaged_age",
    "value",
]

_ENGAGED = (pl.col("opens") > 0) | (pl.col("clicks") > 0)


def _per_recipient(ev: pl.DataFrame) -> pl.DataFrame:
    return (
        ev.filter(pl.col("recipient").is_not_null())
        .group_by("recipient")
        .agg(
            pl.len().cast(pl.Int64).alias("total_emails"),
            pl.col("opens").sum().alias("total_opens"),
            pl.col("clicks").sum().alias("total_clicks"),
            pl.col("sent_at").filter(_ENGAGED).max().alias("last_engaged_at"),
        )
        .rename({"recipient": "email"})
    )


def _elapsed_days(now_lit: pl.Expr, col: str) -> pl.Expr:
    return (now_lit - pl.col(col)).dt.total_days().clip(lower_bound=0)


def build_profiles(
    subscribers: pd.DataFrame | pl.DataFrame | None,
    events: pd.DataFrame | pl.DataFrame | None,
    *,
    now: Optional[datetime] = None,
) -> pl.DataFrame:
    """Accumulate one engagement profile per known subscriber.

    Events are matched to subscribers by normalized address; events of
    unknown recipients are ignored here.  ``last_engaged_at`` is the latest
    ``sent_at`` of an event with at least one open or click; ``last_engaged_age``
    is the exact time since then and ``days_since_last_engaged`` its whole days.
    """
    subs = prepare_subscribers(subscribers)
    ev = prepare_events(events)
    now_lit = pl.lit(utc_now(now), dtype=UTC_DATETIME)

    totals = _per_recipient(ev)
    out = subs.join(totals, on="email", how="left").with_columns(
        pl.col("total_emails").fill_null(0).cast(pl.Int64),
        pl.col("total_opens").fill_null(0).cast(pl.Int64),
        pl.col("total_clicks").fill_null(0).cast(pl.Int64),
        pl.col("last_engaged_at").cast(UTC_DATETIME),
    )

    days_since_signup = (
        pl.when(pl.col("signup_date").is_null())
        .then(pl.lit(0, dtype=pl.Int64))
        .otherwise(_elapsed_days(now_lit, "signup_date"))
    )
    out = out.with_columns(
        pl.when(pl.col("total_emails") > 0)
        .then((pl.col("total_opens") + 2 * pl.col("total_clicks")) / pl.col("total_emails") * 100.0)
        .otherwise(0.0)
        .alias("engagement_score"),
        days_since_signup.cast(pl.Int64).alias("days_since_signup"),
        (pl.col("total_opens") + 2 * pl.col("total_clicks")).alias("value"),
    )
    out = out.with_columns(
        # emails per week since signup
        pl.when(pl.col("days_since_signup") > 0)
        .then(pl.col("total_emails") / (pl.col("days_since_signup") / 7.0))
        .otherwise(0.0)
        .alias("frequency"),
        pl.when(pl.col("last_engaged_at").is_null())
        .then(pl.col("days_since_signup"))
        .otherwise(_elapsed_days(now_lit, "last_engaged_at"))
        .cast(pl.Int64)
        .alias("days_since_last_engaged"),
        # exact duration, null when never engaged
        (now_lit - pl.col("last_engaged_at")).alias("last_engaged_age"),
    )
    return out.select(PROFILE_COLUMNS)
