import pandas as pd
import polars as pl
import pytest

from engagement_analytics.analytics.frame_bridge import (
    EVENT_SCHEMA,
    SUBSCRIBER_SCHEMA,
    assert_schema,
    prepare_events,
    prepare_subscribers,
    to_pd,
)


def test_prepare_events_normalises_raw_records() -> None:
    raw = pd.DataFrame(
        {
            "recipient": [" A@X.com ", ""],
            "sent_at": ["2026-06-01T10:00:00Z", "garbage"],
            "opens": ["2", None],
            "attachments": [["f.pdf"], "yes"],
            "is_test": ["no", "1"],
        }
    )

    ev = prepare_events(raw, exclude_tests=False)

    assert dict(ev.schema) == EVENT_SCHEMA
    assert ev["recipient"].to_list() == ["a@x.com", None]
    assert ev["sent_at"].null_count() == 1
    assert ev["opens"].to_list() == [2, 0]
    assert ev["attachments"].to_list() == [True, True]
    assert prepare_events(raw).height == 1


def test_prepared_frames_pass_through_unchanged() -> None:
    ev = prepare_events(pd.DataFrame({"recipient": ["a@x.com"], "opens": [1]}))
    subs = prepare_subscribers(pd.DataFrame({"email": ["a@x.com"], "signup_date": ["2026-01-01"]}))

    assert prepare_events(ev).equals(ev)
    assert prepare_subscribers(subs) is subs
    assert isinstance(to_pd(subs), pd.DataFrame)
    assert dict(subs.schema) == SUBSCRIBER_SCHEMA


def test_prepare_subscribers_dedupes_and_defaults_status() -> None:
    raw = pd.DataFrame(
        {
            "email": ["a@x.com", "A@x.com", None],
            "signup_date": ["2026-01-01", "2026-02-01", "2026-03-01"],
            "status": ["unsubscribed", None, "active"],
        }
    )

    subs = prepare_subscribers(raw)

    assert subs.height == 1
    assert subs.row(0, named=True)["status"] == "active"


def test_assert_schema_names_missing_columns() -> None:
    with pytest.raises(ValueError, match="email"):
        assert_schema(pl.DataFrame({"address": ["a@x.com"]}), ["email"])
