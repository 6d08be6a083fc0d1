"""
Send Records and Derived Rates
==============================

Canonical per-send record consumed by every analysis in the package, plus
the guarded rate helpers used to derive engagement and risk metrics.

A record is one email send: a campaign blast or one flow message on one day.
Counters are non-negative integers and revenue is a non-negative float.
Rates are never stored on the record; they are derived on demand.

Example Usage:
--------------
>>> from datetime import datetime
>>> from email_insights.core.records import SendRecord, Channel
>>>
>>> rec = SendRecord(
...     sent_date=datetime(2024, 3, 4, 9, 30),
...     emails_sent=12000, unique_opens=4800, unique_clicks=360,
...     total_orders=48, revenue=3120.0,
...     subject="Last chance: 20% off ends tonight",
... )
>>> print(f"Open rate: {rec.open_rate:.1%}")
>>> print(f"Revenue per email: ${rec.revenue_per_email:.3f}")
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional


class Channel(str, Enum):
    """Source of a send: a one-off campaign or an automated flow message."""
    CAMPAIGN = "campaign"
    FLOW = "flow"


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return numerator / denominator


_COUNTER_FIELDS = (
    "emails_sent",
    "unique_opens",
    "unique_clicks",
    "total_orders",
    "unsubscribes_count",
    "spam_complaints_count",
    "bounces_count",
)


@dataclass(frozen=True)
class SendRecord:
    """One email send with its volume, engagement, revenue and risk counters."""
    sent_date: datetime
    emails_sent: int = 0
    unique_opens: int = 0
    unique_clicks: int = 0
    total_orders: int = 0
    revenue: float = 0.0
    unsubscribes_count: int = 0
    spam_complaints_count: int = 0
    bounces_count: int = 0
    subject: Optional[str] = None
    name: Optional[str] = None
    segment_tags: FrozenSet[str] = field(default_factory=frozenset)
    channel: Channel = Channel.CAMPAIGN

    def __post_init__(self):
        if not isinstance(self.sent_date, datetime):
            if isinstance(self.sent_date, date):
                # promote plain dates to midnight so ordering works uniformly
                object.__setattr__(
                    self, "sent_date", datetime(self.sent_date.year, self.sent_date.month, self.sent_date.day)
                )
            else:
                raise ValueError(f"sent_date must be a date or datetime, got {type(self.sent_date).__name__}")
        for name in _COUNTER_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.revenue < 0:
            raise ValueError("revenue must be non-negative")
        if not isinstance(self.segment_tags, frozenset):
            object.__setattr__(self, "segment_tags", frozenset(self.segment_tags or ()))
        if not isinstance(self.channel, Channel):
            object.__setattr__(self, "channel", Channel(self.channel))

    @property
    def day(self) -> date:
        return self.sent_date.date()

    @property
    def is_campaign(self) -> bool:
        return self.channel is Channel.CAMPAIGN

    @property
    def subject_text(self) -> str:
        """Subject line, falling back to the send name; stripped."""
        return (self.subject or self.name or "").strip()

    @property
    def open_rate(self) -> float:
        return safe_divide(self.unique_opens, self.emails_sent)

    @property
    def click_rate(self) -> float:
        return safe_divide(self.unique_clicks, self.emails_sent)

    @property
    def click_to_open_rate(self) -> float:
        return safe_divide(self.unique_clicks, self.unique_opens)

    @property
    def conversion_rate(self) -> float:
        return safe_divide(self.total_orders, self.emails_sent)

    @property
    def revenue_per_email(self) -> float:
        return safe_divide(self.revenue, self.emails_sent)

    @property
    def unsubscribe_rate(self) -> float:
        return safe_divide(self.unsubscribes_count, self.emails_sent)

    @property
    def spam_rate(self) -> float:
        return safe_divide(self.spam_complaints_count, self.emails_sent)

    @property
    def bounce_rate(self) -> float:
        return safe_divide(self.bounces_count, self.emails_sent)


def campaigns_only(records: Iterable[SendRecord]) -> List[SendRecord]:
    return [r for r in records if r.channel is Channel.CAMPAIGN]


def flows_only(records: Iterable[SendRecord]) -> List[SendRecord]:
    return [r for r in records if r.channel is Channel.FLOW]
