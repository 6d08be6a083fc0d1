"""
Opportunity Window Selection
============================

Picks the analysis window for an account by walking back from the latest
observed send until enough volume is captured, bounded below by 90 days and
above by 365 days.

The window is anchored to the most recent send rather than the wall clock so
that stale data exports still analyse their own latest activity.

Example Usage:
--------------
>>> from email_insights.data import windows
>>>
>>> window = windows.compute_opportunity_window(records)
>>> print(f"{window.start:%Y-%m-%d} -> {window.end:%Y-%m-%d} ({window.days} days)")
>>> in_window = windows.filter_records_in_window(records, window)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from email_insights.core.records import SendRecord

logger = logging.getLogger(__name__)

MIN_SENDS: int = 5000
MIN_DAYS: int = 90
MAX_DAYS: int = 365
FALLBACK_DAYS: int = 365


@dataclass(frozen=True)
class DateRange:
    """Analysis window; ``is_capped`` is True when MAX_DAYS was hit before MIN_SENDS."""
    start: datetime
    end: datetime
    days: int
    sends_captured: int
    is_capped: bool


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _day_end(day: date) -> datetime:
    return datetime.combine(day, time.max)


def compute_opportunity_window(
    records: Iterable[SendRecord],
    now: Optional[datetime] = None,
    min_sends: int = MIN_SENDS,
    min_days: int = MIN_DAYS,
    max_days: int = MAX_DAYS,
) -> DateRange:
    """
    Smallest trailing window holding ``min_sends`` emails and ``min_days`` days.

    Parameters
    ----------
    records : iterable of SendRecord
        Campaign and flow sends
    now : datetime, optional
        End of the fallback window when there are no records. Defaults to
        the current time
    min_sends : int, default=5000
        Volume target
    min_days : int, default=90
        Shortest window returned
    max_days : int, default=365
        Longest window returned; reaching it sets ``is_capped``

    Returns
    -------
    DateRange

    Notes
    -----
    Boundaries are whole days: ``start`` is midnight of the first day and
    ``end`` the last instant of the latest send's day. ``days`` is the
    number of days from the first day to the anchor day.

    Records are walked newest first. The walk stops when it passes the
    ``max_days`` boundary (start clamped to exactly that boundary) or once
    the volume target is met at or beyond the ``min_days`` boundary. A start
    later than the ``min_days`` boundary is pulled back to it.
    """
    if min_days > max_days:
        raise ValueError("min_days must not exceed max_days")

    events = sorted(records, key=lambda r: r.sent_date, reverse=True)
    if not events:
        end_day = (now or datetime.now()).date()
        start_day = end_day - timedelta(days=FALLBACK_DAYS)
        return DateRange(_day_start(start_day), _day_end(end_day), FALLBACK_DAYS, 0, False)

    anchor = events[0].day
    min_boundary = anchor - timedelta(days=min_days)
    max_boundary = anchor - timedelta(days=max_days)

    accumulated = 0
    start = anchor
    is_capped = False
    for record in events:
        if record.day < max_boundary:
            start = max_boundary
            is_capped = True
            break
        accumulated += record.emails_sent
        start = record.day
        if accumulated >= min_sends and record.day <= min_boundary:
            break

    if start > min_boundary:
        start = min_boundary

    days = (anchor - start).days
    logger.debug("Opportunity window %s..%s (%d days, %d sends, capped=%s)",
                 start, anchor, days, accumulated, is_capped)
    return DateRange(_day_start(start), _day_end(anchor), days, accumulated, is_capped)


def filter_records_in_window(records: Iterable[SendRecord], window: DateRange) -> List[SendRecord]:
    """Records sent on any day from ``window.start`` through ``window.end``."""
    start_day, end_day = window.start.date(), window.end.date()
    return [r for r in records if start_day <= r.day <= end_day]
