"""
Temporal Aggregation
====================

Groups send records into calendar-aligned weekly (Monday start) or monthly
(1st of month) buckets and synthesises explicit zero buckets for every period
with no activity, so downstream statistics can tell "nothing happened" from
"no data collected".

Two ladders are offered:

- ``build_period_buckets``: from the first to the last observed period, with
  completeness judged against ``as_of`` (wall-clock now by default).
- ``build_period_buckets_in_range``: a fixed historical slice from the period
  containing ``start`` to the period containing ``end``, with completeness
  judged against the end of the range's last day.

Example Usage:
--------------
>>> from datetime import datetime
>>> from email_insights.aggregation import periods
>>>
>>> buckets = periods.build_period_buckets_in_range(
...     records, start=datetime(2024, 1, 1), end=datetime(2024, 6, 30), granularity='week'
... )
>>> complete = [b for b in buckets if b.is_complete]
>>> print(f"{len(complete)} complete weeks, latest: {complete[-1].label}")
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Set, Union

from email_insights.core.records import Channel, SendRecord

GRANULARITIES = ('week', 'month')

DateLike = Union[date, datetime]


@dataclass
class PeriodBucket:
    """Revenue and activity for one week or month."""
    period_start: date
    period_end: date
    label: str
    total_revenue: float = 0.0
    campaign_revenue: float = 0.0
    flow_revenue: float = 0.0
    campaign_send_count: int = 0
    days_with_activity: Set[date] = field(default_factory=set)
    is_complete: bool = False

    def revenue_for(self, scope: str) -> float:
        if scope == 'campaigns':
            return self.campaign_revenue
        if scope == 'flows':
            return self.flow_revenue
        if scope == 'all':
            return self.total_revenue
        raise ValueError(f"Unknown scope '{scope}', expected 'all', 'campaigns' or 'flows'")


def as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _check_granularity(granularity: str) -> None:
    if granularity not in GRANULARITIES:
        raise ValueError(f"granularity must be one of {GRANULARITIES}, got '{granularity}'")


def week_start(value: DateLike) -> date:
    """Monday of the week containing ``value``."""
    d = as_date(value)
    return d - timedelta(days=d.weekday())


def month_start(value: DateLike) -> date:
    d = as_date(value)
    return d.replace(day=1)


def period_start(value: DateLike, granularity: str = 'week') -> date:
    _check_granularity(granularity)
    return week_start(value) if granularity == 'week' else month_start(value)


def next_period_start(start: date, granularity: str = 'week') -> date:
    """First day of the period following the one beginning at ``start``."""
    _check_granularity(granularity)
    if granularity == 'week':
        return start + timedelta(days=7)
    if start.month == 12:
        return date(start.year + 1, 1, 1)
    return date(start.year, start.month + 1, 1)


def period_label(start: date, granularity: str = 'week') -> str:
    """'Mar 4' for weeks, 'Mar 2024' for months."""
    if granularity == 'week':
        return f"{start.strftime('%b')} {start.day}"
    return start.strftime('%b %Y')


def iter_period_starts(first: date, last: date, granularity: str = 'week') -> List[date]:
    """Every period start from ``first`` to ``last`` inclusive."""
    starts = []
    current = first
    while current <= last:
        starts.append(current)
        current = next_period_start(current, granularity)
    return starts


def _new_bucket(start: date, granularity: str) -> PeriodBucket:
    return PeriodBucket(
        period_start=start,
        period_end=next_period_start(start, granularity),
        label=period_label(start, granularity),
    )


def _accumulate(bucket: PeriodBucket, record: SendRecord) -> None:
    bucket.total_revenue += record.revenue
    if record.channel is Channel.CAMPAIGN:
        bucket.campaign_revenue += record.revenue
        bucket.campaign_send_count += 1
    else:
        bucket.flow_revenue += record.revenue
    bucket.days_with_activity.add(record.day)


def _mark_completeness(buckets: List[PeriodBucket], boundary: datetime) -> None:
    for bucket in buckets:
        bucket.is_complete = datetime.combine(bucket.period_end, time.min) <= boundary


def _ladder(
    grouped: Dict[date, PeriodBucket],
    first: date,
    last: date,
    granularity: str,
) -> List[PeriodBucket]:
    return [grouped.get(start) or _new_bucket(start, granularity)
            for start in iter_period_starts(first, last, granularity)]


def build_period_buckets(
    records: Iterable[SendRecord],
    granularity: str = 'week',
    as_of: Optional[datetime] = None,
) -> List[PeriodBucket]:
    """
    Bucket all records from the first to the last observed period.

    Parameters
    ----------
    records : iterable of SendRecord
        Campaign and flow sends
    granularity : {'week', 'month'}, default='week'
        Period size
    as_of : datetime, optional
        Completeness boundary. A bucket is complete iff its (exclusive) end is
        at or before this instant. Defaults to ``datetime.now()``.

    Returns
    -------
    list of PeriodBucket
        Contiguous, ascending ladder with zero buckets for empty periods.
        Empty input returns an empty list.
    """
    _check_granularity(granularity)
    boundary = as_of if as_of is not None else datetime.now()

    grouped: Dict[date, PeriodBucket] = {}
    for record in records:
        start = period_start(record.sent_date, granularity)
        if start not in grouped:
            grouped[start] = _new_bucket(start, granularity)
        _accumulate(grouped[start], record)

    if not grouped:
        return []

    buckets = _ladder(grouped, min(grouped), max(grouped), granularity)
    _mark_completeness(buckets, boundary)
    return buckets


def build_period_buckets_in_range(
    records: Iterable[SendRecord],
    start: DateLike,
    end: DateLike,
    granularity: str = 'week',
) -> List[PeriodBucket]:
    """
    Bucket records into the full period ladder spanning ``[start, end]``.

    Only records dated between the first period's start and the end of the
    ``end`` day are counted. Completeness is evaluated against midnight after
    ``end``, so a week finishing on the range's last day is complete even if
    that day is today.

    Returns
    -------
    list of PeriodBucket
        One bucket per period from the period containing ``start`` to the
        period containing ``end``. Empty when ``end < start``.
    """
    _check_granularity(granularity)
    start_day, end_day = as_date(start), as_date(end)
    if end_day < start_day:
        return []

    first = period_start(start_day, granularity)
    last = period_start(end_day, granularity)
    boundary = datetime.combine(end_day + timedelta(days=1), time.min)

    grouped: Dict[date, PeriodBucket] = {}
    for record in records:
        day = record.day
        if day < first or day > end_day:
            continue
        key = period_start(day, granularity)
        if key not in grouped:
            grouped[key] = _new_bucket(key, granularity)
        _accumulate(grouped[key], record)

    buckets = _ladder(grouped, first, last, granularity)
    _mark_completeness(buckets, boundary)
    return buckets


def period_series(
    records: Iterable[SendRecord],
    start: DateLike,
    end: DateLike,
    granularity: str = 'week',
) -> List[Dict[str, float]]:
    """
    Per-period sums of volume, revenue, engagement and risk counters.

    Returns one dict per period in the ladder spanning ``[start, end]``. As in
    ``build_period_buckets_in_range``, records are counted from the start of
    the period containing ``start`` so the first period is never truncated.
    Keys are ``period_start``, ``emails``, ``revenue``, ``opens``, ``clicks``,
    ``orders``, ``unsubscribes``, ``spam``, ``bounces``.
    """
    _check_granularity(granularity)
    start_day, end_day = as_date(start), as_date(end)
    if end_day < start_day:
        return []

    first = period_start(start_day, granularity)
    sums: Dict[date, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for record in records:
        day = record.day
        if day < first or day > end_day:
            continue
        row = sums[period_start(day, granularity)]
        row['emails'] += record.emails_sent
        row['revenue'] += record.revenue
        row['opens'] += record.unique_opens
        row['clicks'] += record.unique_clicks
        row['orders'] += record.total_orders
        row['unsubscribes'] += record.unsubscribes_count
        row['spam'] += record.spam_complaints_count
        row['bounces'] += record.bounces_count

    series = []
    for key in iter_period_starts(first, period_start(end_day, granularity), granularity):
        row = sums.get(key, {})
        series.append({
            'period_start': key,
            'emails': float(row.get('emails', 0.0)),
            'revenue': float(row.get('revenue', 0.0)),
            'opens': float(row.get('opens', 0.0)),
            'clicks': float(row.get('clicks', 0.0)),
            'orders': float(row.get('orders', 0.0)),
            'unsubscribes': float(row.get('unsubscribes', 0.0)),
            'spam': float(row.get('spam', 0.0)),
            'bounces': float(row.get('bounces', 0.0)),
        })
    return series
