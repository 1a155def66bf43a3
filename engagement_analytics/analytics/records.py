"""Value objects for engagement events and subscriber records.

Sources hand DataFrames to the analytics functions.  These dataclasses are
a convenience for callers that hold individual records; ``events_frame``
and ``subscribers_frame`` turn them into the tabular shape the rest of the
package expects.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

import pandas as pd

from .frame_bridge import EVENT_SCHEMA, SUBSCRIBER_SCHEMA


@dataclass(frozen=True)
class EngagementEvent:
    """One sent message plus the counters trackers appended to it."""

    recipient: Optional[str]
    sent_at: Optional[datetime]
    opens: int = 0
    clicks: int = 0
    first_open_at: Optional[datetime] = None
    first_click_at: Optional[datetime] = None
    subject: Optional[str] = None
    content_key: Optional[str] = None
    attachments: bool = False
    device_type: Optional[str] = None
    geo_country: Optional[str] = None
    forward_count: int = 0
    is_test: bool = False


@dataclass(frozen=True)
class SubscriberRecord:
    email: Optional[str]
    signup_date: Optional[datetime]
    status: str = "active"


def events_frame(events: Iterable[EngagementEvent]) -> pd.DataFrame:
    rows = [asdict(e) for e in events]
    return pd.DataFrame(rows, columns=list(EVENT_SCHEMA))


def subscribers_frame(subscribers: Iterable[SubscriberRecord]) -> pd.DataFrame:
    rows = [asdict(s) for s in subscribers]
    return pd.DataFrame(rows, columns=list(SUBSCRIBER_SCHEMA))
