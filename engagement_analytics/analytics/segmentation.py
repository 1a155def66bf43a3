"""Behavioral segmentation of subscribers.

Segments come from an ordered rule list evaluated top to bottom; the first
rule that matches wins and ``hibernating`` catches everyone else, so the
segments partition the subscriber base.

    champions       score > 80 and frequency > 2
    loyalists       score > 60 and frequency > 1
    newSubscribers  signed up less than 30 days ago
    promising       signed up less than 90 days ago and score > 40
    needsAttention  score > 20 and last engaged more than 30 days ago
    cannotLose      frequency > 2 and last engaged more than 60 days ago
    hibernating     everyone else

``score`` is the engagement score and ``frequency`` the number of emails
per week since signup.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
import polars as pl

from .profiles import build_profiles

_score = pl.col("engagement_score")
_freq = pl.col("frequency")
_tenure = pl.col("days_since_signup")
_lapsed = pl.col("days_since_last_engaged")

SEGMENT_RULES: List[Tuple[str, pl.Expr]] = [
    ("champions", (_score > 80) & (_freq > 2)),
    ("loyalists", (_score > 60) & (_freq > 1)),
    ("newSubscribers", _tenure < 30),
    ("promising", (_tenure < 90) & (_score > 40)),
    ("needsAttention", (_score > 20) & (_lapsed > 30)),
    ("cannotLose", (_freq > 2) & (_lapsed > 60)),
]
FALLBACK_SEGMENT = "hibernating"

SEGMENTS = tuple(label for label, _ in SEGMENT_RULES) + (FALLBACK_SEGMENT,)


def segment_expr(
    rules: Sequence[Tuple[str, pl.Expr]] = SEGMENT_RULES,
    fallback: str = FALLBACK_SEGMENT,
) -> pl.Expr:
    """Fold ``rules`` into a single first-match-wins expression."""
    if not rules:
        return pl.lit(fallback)
    (label, predicate), *rest = rules
    chain = pl.when(predicate).then(pl.lit(label))
    for label, predicate in rest:
        chain = chain.when(predicate).then(pl.lit(label))
    return chain.otherwise(pl.lit(fallback))


def assign_segments(profiles: pl.DataFrame) -> pl.DataFrame:
    return profiles.with_columns(segment_expr().alias("segment"))


def _segment_insights(stats: Dict[str, Dict[str, Any]]) -> List[Dict[str, str]]:
    insights: List[Dict[str, str]] = []
    champions = stats["champions"]["percentage"]
    hibernating = stats["hibernating"]["percentage"]
    newcomers = stats["newSubscribers"]["percentage"]

    if champions > 15:
        insights.append({
            "type": "positive",
            "message": f"Strong champion segment ({champions:.1f}%) indicates excellent content quality",
        })
    if hibernating > 40:
        insights.append({
            "type": "warning",
            "message": f"Large hibernating segment ({hibernating:.1f}%) suggests list quality issues",
        })
    if newcomers > 20:
        insights.append({
            "type": "info",
            "message": f"High new subscriber percentage ({newcomers:.1f}%) shows good growth",
        })

    high_value = stats["champions"]["count"] + stats["loyalists"]["count"]
    low_value = stats["hibernating"]["count"] + stats["needsAttention"]["count"]
    if high_value < low_value:
        insights.append({
            "type": "warning",
            "message": "More low-value subscribers than high-value ones - focus on engagement",
        })
    return insights


def segments_from_profiles(profiles: pl.DataFrame) -> Dict[str, Any]:
    segmented = assign_segments(profiles)
    total = segmented.height

    grouped = {
        row["segment"]: row
        for row in segmented.group_by("segment")
        .agg(
            pl.len().cast(pl.Int64).alias("count"),
            pl.col("engagement_score").mean().alias("avg_engagement_score"),
            pl.col("frequency").mean().alias("avg_frequency"),
            pl.col("value").sum().alias("total_value"),
        )
        .to_dicts()
    }

    stats: Dict[str, Dict[str, Any]] = {}
    for segment in SEGMENTS:
        row = grouped.get(segment)
        count = int(row["count"]) if row else 0
        stats[segment] = {
            "count": count,
            "percentage": (count / total) * 100.0 if total > 0 else 0.0,
            "avg_engagement_score": float(row["avg_engagement_score"] or 0.0) if row else 0.0,
            "avg_frequency": float(row["avg_frequency"] or 0.0) if row else 0.0,
            "total_value": int(row["total_value"] or 0) if row else 0,
        }

    return {"total": total, "segments": stats, "insights": _segment_insights(stats)}


def analyze_segments(
    subscribers: pd.DataFrame | pl.DataFrame | None,
    events: pd.DataFrame | pl.DataFrame | None,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Assign each subscriber to one behavioral segment and summarise."""
    return segments_from_profiles(build_profiles(subscribers, events, now=now))
