"""Signup cohort analysis.

Subscribers are grouped by the period they signed up in and each cohort is
measured on how many members received mail (``active``) and how many of
those opened or clicked (``engaged``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
import polars as pl

from .profiles import build_profiles

COHORT_TYPES = ("weekly", "monthly", "quarterly")


def cohort_key_expr(cohort_type: str) -> pl.Expr:
    """Expression mapping ``signup_date`` to its cohort key.

    weekly -> ISO week start (Monday) ``YYYY-MM-DD``; monthly -> ``YYYY-MM``;
    quarterly -> ``YYYY-Qn``.
    """
    signup = pl.col("signup_date")
    if cohort_type == "weekly":
        return signup.dt.truncate("1w").dt.strftime("%Y-%m-%d")
    if cohort_type == "monthly":
        return signup.dt.strftime("%Y-%m")
    if cohort_type == "quarterly":
        return pl.format("{}-Q{}", signup.dt.year(), signup.dt.quarter())
    raise ValueError(f"Unknown cohort type: {cohort_type!r} (expected one of {COHORT_TYPES})")


def _ratio(num: str, den: str, scale: float = 1.0) -> pl.Expr:
    return (
        pl.when(pl.col(den) > 0)
        .then(pl.col(num) / pl.col(den) * scale)
        .otherwise(0.0)
    )


def _summary(cohorts: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not cohorts:
        return {
            "total_cohorts": 0,
            "avg_active_rate": 0.0,
            "avg_engagement_rate": 0.0,
            "best_cohort": None,
            "worst_cohort": None,
        }
    n = len(cohorts)
    # max/min keep the first cohort on ties
    best = max(cohorts, key=lambda c: c["engagement_rate"])
    worst = min(cohorts, key=lambda c: c["engagement_rate"])
    return {
        "total_cohorts": n,
        "avg_active_rate": sum(c["active_rate"] for c in cohorts) / n,
        "avg_engagement_rate": sum(c["engagement_rate"] for c in cohorts) / n,
        "best_cohort": dict(best),
        "worst_cohort": dict(worst),
    }


def cohorts_from_profiles(profiles: pl.DataFrame, cohort_type: str = "monthly") -> Dict[str, Any]:
    """Cohort table and summary from a frame built by ``build_profiles``."""
    key = cohort_key_expr(cohort_type)
    placed = profiles.filter(pl.col("signup_date").is_not_null())

    table = (
        placed.with_columns(key.alias("cohort"))
        .group_by("cohort")
        .agg(
            pl.col("signup_date").min().alias("signup_date"),
            pl.len().cast(pl.Int64).alias("subscribers"),
            (pl.col("total_emails") > 0).sum().cast(pl.Int64).alias("active_users"),
            ((pl.col("total_opens") + pl.col("total_clicks")) > 0).sum().cast(pl.Int64).alias("engaged_users"),
            pl.col("total_emails").sum().alias("total_emails"),
            pl.col("total_opens").sum().alias("total_opens"),
            pl.col("total_clicks").sum().alias("total_clicks"),
        )
        .with_columns(
            _ratio("active_users", "subscribers", 100.0).alias("active_rate"),
            _ratio("engaged_users", "active_users", 100.0).alias("engagement_rate"),
            _ratio("total_emails", "active_users").alias("avg_emails_per_user"),
            _ratio("total_opens", "active_users").alias("avg_opens_per_user"),
        )
        .sort(["signup_date", "cohort"])
    )

    cohorts = table.to_dicts()
    for row in cohorts:
        signup: Optional[datetime] = row["signup_date"]
        row["signup_date"] = signup.isoformat() if signup is not None else None

    return {"cohort_type": cohort_type, "cohorts": cohorts, "summary": _summary(cohorts)}


def analyze_cohorts(
    subscribers: pd.DataFrame | pl.DataFrame | None,
    events: pd.DataFrame | pl.DataFrame | None,
    cohort_type: str = "monthly",
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Group subscribers into signup cohorts and rate each cohort."""
    cohort_key_expr(cohort_type)
    return cohorts_from_profiles(build_profiles(subscribers, events, now=now), cohort_type)
