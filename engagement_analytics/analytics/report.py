"""Assembly of the engagement report and its single entry point.

:func:`build_report` is a pure function of the two record sets and
``now``: it aggregates the events once, builds one profile frame, runs the
cohort, churn and segment analyses side by side on a small thread pool and
finishes with predictions and recommendations.

:func:`run_engagement_report` wraps it with request validation and the one
fetch from the record sources.  Callers get either a complete report or a
single ``{"ok": False, "error": ...}`` result.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import pandas as pd
import polars as pl

from ..settings import get_settings
from . import db
from .cohorts import COHORT_TYPES, cohorts_from_profiles
from .engagement import aggregate_engagement
from .errors import AnalyticsError, InvalidRequestError, SourceUnavailableError
from .frame_bridge import UTC_DATETIME, assert_schema, prepare_events, utc_now
from .insights import generate_predictions
from .lifecycle import churn_from_profiles
from .profiles import build_profiles
from .recommend import generate_recommendations
from .segmentation import segments_from_profiles

LOGGER = logging.getLogger(__name__)

EventSource = Callable[[str, datetime], pd.DataFrame]
SubscriberSource = Callable[[str], pd.DataFrame]

MIN_DAYS = 1


@dataclass(frozen=True)
class ReportRequest:
    tenant_id: Optional[str]
    cohort_type: str = "monthly"
    include_churn: bool = True
    days: Optional[int] = None


def clamp_days(days: Optional[int]) -> int:
    """Clamp the analysis window to ``[1, max_days]``; ``None`` means the default."""
    settings = get_settings()
    if days is None:
        return settings.default_days
    return max(MIN_DAYS, min(int(days), settings.max_days))


def validate_request(request: ReportRequest) -> None:
    if not request.tenant_id or not str(request.tenant_id).strip():
        raise InvalidRequestError("tenant_id required")
    if request.cohort_type not in COHORT_TYPES:
        raise InvalidRequestError(
            f"cohort_type must be one of {', '.join(COHORT_TYPES)}"
        )


def _in_window(events: pl.DataFrame, since: datetime, until: datetime) -> pl.DataFrame:
    sent = pl.col("sent_at")
    lower = pl.lit(since, dtype=UTC_DATETIME)
    upper = pl.lit(until, dtype=UTC_DATETIME)
    # records with an unreadable send time still count toward totals
    return events.filter(sent.is_null() | ((sent >= lower) & (sent < upper)))


def build_report(
    events: pd.DataFrame | pl.DataFrame | None,
    subscribers: pd.DataFrame | pl.DataFrame | None,
    *,
    days: Optional[int] = None,
    cohort_type: str = "monthly",
    include_churn: bool = True,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Compute the full report for one tenant's records."""
    settings = get_settings()
    until = utc_now(now)
    window = clamp_days(days)
    since = until - timedelta(days=window)

    ev = _in_window(prepare_events(events), since, until)
    engagement = aggregate_engagement(ev, min_sends=settings.min_sends, top_n=settings.top_n)
    profiles = build_profiles(subscribers, ev, now=until)

    with ThreadPoolExecutor(max_workers=settings.report_workers) as pool:
        cohorts_job = pool.submit(cohorts_from_profiles, profiles, cohort_type)
        churn_job = pool.submit(churn_from_profiles, profiles) if include_churn else None
        segments_job = pool.submit(segments_from_profiles, profiles)
        cohorts = cohorts_job.result()
        churn = churn_job.result() if churn_job is not None else None
        segments = segments_job.result()

    return {
        "period": {
            "days": window,
            "since": since.isoformat(),
            "until": until.isoformat(),
        },
        "engagement": engagement,
        "cohorts": cohorts,
        "churn": churn,
        "segments": segments,
        "predictions": generate_predictions(engagement, cohorts),
        "recommendations": generate_recommendations(engagement, segments),
    }


def _fetch(
    tenant_id: str,
    since: datetime,
    event_source: EventSource,
    subscriber_source: SubscriberSource,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    try:
        events = event_source(tenant_id, since)
        subscribers = subscriber_source(tenant_id)
        if subscribers is not None and not subscribers.empty:
            assert_schema(subscribers, ["email"])
    except SourceUnavailableError:
        raise
    except Exception as exc:
        raise SourceUnavailableError(f"Failed to load records: {exc}") from exc
    return events, subscribers


def run_engagement_report(
    request: ReportRequest,
    *,
    event_source: Optional[EventSource] = None,
    subscriber_source: Optional[SubscriberSource] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate, fetch once, compute; never returns a partial report."""
    try:
        validate_request(request)
    except InvalidRequestError as exc:
        return {"ok": False, "error": str(exc)}

    tenant_id = str(request.tenant_id).strip()
    until = utc_now(now)
    days = clamp_days(request.days)
    since = until - timedelta(days=days)

    try:
        events, subscribers = _fetch(
            tenant_id,
            since,
            event_source or db.load_events,
            subscriber_source or db.load_subscribers,
        )
        report = build_report(
            events,
            subscribers,
            days=days,
            cohort_type=request.cohort_type,
            include_churn=request.include_churn,
            now=until,
        )
    except AnalyticsError as exc:
        LOGGER.exception("Engagement report failed for tenant %s", tenant_id)
        return {"ok": False, "error": str(exc)}

    LOGGER.info(
        "Engagement report for tenant %s: %d days, %d emails, %d subscribers",
        tenant_id,
        days,
        report["engagement"]["total_emails"],
        report["segments"]["total"],
    )
    return {"ok": True, **report}
