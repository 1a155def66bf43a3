"""Engagement analytics: aggregation, cohorts, churn, segments and scoring."""

from . import (
    cohorts,
    db,
    engagement,
    insights,
    lifecycle,
    profiles,
    quality,
    recommend,
    report,
    segmentation,
)

__all__ = [
    "cohorts",
    "db",
    "engagement",
    "insights",
    "lifecycle",
    "profiles",
    "quality",
    "recommend",
    "report",
    "segmentation",
]
