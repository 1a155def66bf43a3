from datetime import timedelta

import pandas as pd
import pytest

from engagement_analytics.analytics.report import (
    ReportRequest,
    build_report,
    clamp_days,
    run_engagement_report,
)
from engagement_analytics.settings import get_settings

from conftest import NOW


def _ts(days_ago: float) -> str:
    return (NOW - timedelta(days=days_ago)).isoformat()


def _subscribers() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "email": ["a@x.com", "b@x.com", "c@x.com", "d@x.com"],
            "signup_date": [_ts(200), _ts(100), _ts(20), _ts(45)],
            "status": ["active", "active", "unsubscribed", "active"],
        }
    )


def _events() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "recipient": ["a@x.com", "a@x.com", "b@x.com", "c@x.com", "d@x.com", "a@x.com"],
            "sent_at": [_ts(1), _ts(5), _ts(40), _ts(3), _ts(2), _ts(150)],
            "opens": [1, 2, 1, 0, 0, 1],
            "clicks": [1, 0, 0, 0, 0, 0],
            "subject": ["Hi", "Hi", "News", "News", "Hi", "Old"],
            "first_open_at": [_ts(0.9), _ts(4.5), _ts(39), None, None, _ts(149)],
        }
    )


def _sources(events: pd.DataFrame, subscribers: pd.DataFrame, seen: list | None = None):
    def event_source(tenant_id, since):
        if seen is not None:
            seen.append((tenant_id, since))
        return events

    def subscriber_source(tenant_id):
        return subscribers

    return {"event_source": event_source, "subscriber_source": subscriber_source}


@pytest.mark.parametrize("days, expected", [(0, 1), (-3, 1), (9999, 365), (30, 30), (None, 90)])
def test_clamp_days(days, expected) -> None:
    assert clamp_days(days) == expected


def test_clamp_days_follows_configuration(monkeypatch) -> None:
    monkeypatch.setenv("ANALYTICS_MAX_DAYS", "120")
    monkeypatch.setenv("ANALYTICS_DEFAULT_DAYS", "30")
    get_settings.cache_clear()

    assert clamp_days(9999) == 120
    assert clamp_days(None) == 30


def test_full_report_sections() -> None:
    result = run_engagement_report(
        ReportRequest("acme", cohort_type="weekly"),
        now=NOW,
        **_sources(_events(), _subscribers()),
    )

    assert result["ok"] is True
    assert result["period"]["days"] == 90
    # the 150 day old send is outside the default window
    assert result["engagement"]["total_emails"] == 5
    assert result["cohorts"]["cohort_type"] == "weekly"
    assert result["churn"]["total"] == 4
    assert result["churn"]["classifications"]["unsubscribed"]["count"] == 1
    assert result["segments"]["total"] == 4
    assert set(result["predictions"]) == {
        "engagement_trend",
        "overall_engagement_rate",
        "predicted_churn",
        "risk_factors",
    }
    assert result["recommendations"][-1]["title"] == "Optimize Send Times"


def test_sources_called_once_with_clamped_window() -> None:
    seen: list = []

    run_engagement_report(
        ReportRequest(" acme ", days=9999),
        now=NOW,
        **_sources(_events(), _subscribers(), seen),
    )

    assert seen == [("acme", NOW - timedelta(days=365))]


def test_days_window_filters_events() -> None:
    result = run_engagement_report(
        ReportRequest("acme", days=7), now=NOW, **_sources(_events(), _subscribers())
    )

    assert result["period"]["days"] == 7
    assert result["engagement"]["total_emails"] == 4


def test_report_is_idempotent() -> None:
    request = ReportRequest("acme", cohort_type="quarterly")
    first = run_engagement_report(request, now=NOW, **_sources(_events(), _subscribers()))
    second = run_engagement_report(request, now=NOW, **_sources(_events(), _subscribers()))

    assert first == second


def test_test_sends_change_nothing() -> None:
    events = _events()
    noisy = pd.concat(
        [
            events.assign(is_test=False),
            pd.DataFrame(
                {
                    "recipient": ["b@x.com", "d@x.com", "zz@x.com"],
                    "sent_at": [_ts(1), _ts(1), _ts(1)],
                    "opens": [5, 3, 1],
                    "clicks": [2, 1, 1],
                    "subject": ["Hi", "Test", "Test"],
                    "first_open_at": [_ts(0.5), _ts(0.5), _ts(0.5)],
                    "is_test": [True, True, True],
                }
            ),
        ],
        ignore_index=True,
    )

    clean = build_report(events, _subscribers(), now=NOW)
    with_tests = build_report(noisy, _subscribers(), now=NOW)

    assert clean == with_tests


def test_churn_can_be_skipped() -> None:
    result = run_engagement_report(
        ReportRequest("acme", include_churn=False), now=NOW, **_sources(_events(), _subscribers())
    )

    assert result["ok"] is True
    assert result["churn"] is None


@pytest.mark.parametrize(
    "request_, message",
    [
        (ReportRequest(None), "tenant_id required"),
        (ReportRequest("  "), "tenant_id required"),
        (ReportRequest("acme", cohort_type="daily"), "cohort_type must be one of"),
    ],
)
def test_invalid_requests_fail_before_fetching(request_, message) -> None:
    seen: list = []

    result = run_engagement_report(request_, now=NOW, **_sources(_events(), _subscribers(), seen))

    assert result["ok"] is False
    assert message in result["error"]
    assert seen == []


def test_source_failure_yields_single_error() -> None:
    def broken(tenant_id, since):
        raise RuntimeError("connection reset")

    result = run_engagement_report(
        ReportRequest("acme"),
        now=NOW,
        event_source=broken,
        subscriber_source=lambda tenant_id: _subscribers(),
    )

    assert result == {"ok": False, "error": "Failed to load records: connection reset"}


def test_malformed_subscriber_records_fail_the_report() -> None:
    result = run_engagement_report(
        ReportRequest("acme"),
        now=NOW,
        **_sources(_events(), pd.DataFrame({"address": ["a@x.com"]})),
    )

    assert result["ok"] is False
    assert "email" in result["error"]


def test_empty_tenant_produces_zeroed_report() -> None:
    result = run_engagement_report(
        ReportRequest("acme"), now=NOW, **_sources(pd.DataFrame(), pd.DataFrame())
    )

    assert result["ok"] is True
    assert result["engagement"]["total_emails"] == 0
    assert result["cohorts"]["cohorts"] == []
    assert result["segments"]["total"] == 0
