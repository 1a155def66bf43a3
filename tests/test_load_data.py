import sqlite3
from datetime import timedelta
from pathlib import Path

import pytest

from engagement_analytics.analytics import db
from engagement_analytics.analytics.errors import SourceUnavailableError
from engagement_analytics.analytics.report import ReportRequest, run_engagement_report

from conftest import NOW


def _create_db(path: Path) -> None:
    db.create_schema(path)
    conn = sqlite3.connect(path)
    cur = conn.cursor()
    cur.executemany(
        "INSERT INTO email_messages (tenant_id, recipient, sent_at, opens, clicks, "
        "first_open_at, subject, attachments, is_test) VALUES (?,?,?,?,?,?,?,?,?)",
        [
            ("t1", "a@example.com", "2026-06-14 09:00:00", 1, 1, "2026-06-14 09:20:00", "Hello", 0, 0),
            ("t1", "b@example.com", "2026-06-10T08:00:00", 0, 0, None, "Hello", 1, 0),
            ("t1", "a@example.com", "2026-06-13 08:00:00", 4, 0, "2026-06-13 08:01:00", "Test", 0, 1),
            ("t1", "a@example.com", "2026-01-01 08:00:00", 1, 0, None, "Old", 0, 0),
            ("t2", "z@example.com", "2026-06-14 09:00:00", 1, 0, None, "Other", 0, 0),
        ],
    )
    cur.executemany(
        "INSERT INTO subscribers (tenant_id, email, signup_date, status) VALUES (?,?,?,?)",
        [
            ("t1", "a@example.com", "2026-05-01", "active"),
            ("t1", "b@example.com", "2026-05-20", "unsubscribed"),
            ("t2", "z@example.com", "2026-05-01", "active"),
        ],
    )
    conn.commit()
    conn.close()


def test_load_events_filters_tenant_and_window(tmp_path: Path) -> None:
    path = tmp_path / "engagement.db"
    _create_db(path)

    events = db.load_events("t1", NOW - timedelta(days=30), path=path)

    assert len(events) == 3
    assert set(events["recipient"]) == {"a@example.com", "b@example.com"}
    assert list(events.columns) == db.EVENT_COLUMNS


def test_load_subscribers(tmp_path: Path) -> None:
    path = tmp_path / "engagement.db"
    _create_db(path)

    subscribers = db.load_subscribers("t1", path=path)

    assert sorted(subscribers["email"]) == ["a@example.com", "b@example.com"]
    assert list(subscribers.columns) == db.SUBSCRIBER_COLUMNS


def test_missing_database_raises(tmp_path: Path) -> None:
    with pytest.raises(SourceUnavailableError):
        db.load_events("t1", NOW, path=tmp_path / "missing.db")


def test_missing_table_raises(tmp_path: Path) -> None:
    path = tmp_path / "empty.db"
    sqlite3.connect(path).close()

    with pytest.raises(SourceUnavailableError):
        db.load_subscribers("t1", path=path)


def test_report_from_sqlite(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "engagement.db"
    _create_db(path)
    monkeypatch.setenv("ANALYTICS_DB_PATH", str(path))
    from engagement_analytics.settings import get_settings

    get_settings.cache_clear()

    result = run_engagement_report(ReportRequest("t1", days=30), now=NOW)

    assert result["ok"] is True
    # test send dropped; the January send is outside the window
    assert result["engagement"]["total_emails"] == 2
    assert result["engagement"]["content_analysis"]["attachment_impact"]["with_attachments"]["sent"] == 1
    assert result["churn"]["classifications"]["unsubscribed"]["count"] == 1
    assert result["churn"]["classifications"]["active"]["count"] == 1


def test_load_events_keeps_records_without_send_time(tmp_path: Path) -> None:
    path = tmp_path / "engagement.db"
    _create_db(path)
    conn = sqlite3.connect(path)
    conn.execute(
        "INSERT INTO email_messages (tenant_id, recipient, sent_at, opens) VALUES (?,?,?,?)",
        ("t1", "b@example.com", None, 1),
    )
    conn.commit()
    conn.close()

    events = db.load_events("t1", NOW - timedelta(days=30), path=path)
    result = run_engagement_report(
        ReportRequest("t1", days=30),
        now=NOW,
        event_source=lambda tenant_id, since: db.load_events(tenant_id, since, path=path),
        subscriber_source=lambda tenant_id: db.load_subscribers(tenant_id, path=path),
    )

    assert len(events) == 4
    assert events["sent_at"].isna().sum() == 1
    assert result["engagement"]["total_emails"] == 3
