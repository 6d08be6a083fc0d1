"""
Send Record Loaders
===================

Converts canonical pandas DataFrames of campaign and flow sends into
``SendRecord`` objects, validating every row before it reaches the analyses.

Canonical columns:
------------------
- sent_date (required): Anything ``pd.to_datetime`` parses
- emails_sent (required)
- unique_opens, unique_clicks, total_orders, revenue, unsubscribes_count,
  spam_complaints_count, bounces_count: Default 0 when absent
- subject, name: Optional text
- segment_tags: Optional list/set of tags or a comma-separated string

Example Usage:
--------------
>>> import pandas as pd
>>> from email_insights.data import loaders
>>>
>>> campaigns = pd.DataFrame({
...     'sent_date': ['2024-03-04', '2024-03-11'],
...     'emails_sent': [12000, 11800],
...     'unique_opens': [4800, 4500],
...     'revenue': [3120.0, 2890.5],
...     'subject': ['Spring sale starts now', 'Last chance: 20% off'],
... })
>>> records = loaders.load_send_records(campaigns=campaigns)
>>> print(f"Loaded {len(records)} records")
"""

import logging
from typing import Any, FrozenSet, List, Optional

import numpy as np
import pandas as pd

from email_insights.core.records import Channel, SendRecord

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('sent_date', 'emails_sent')
COUNTER_COLUMNS = (
    'unique_opens',
    'unique_clicks',
    'total_orders',
    'unsubscribes_count',
    'spam_complaints_count',
    'bounces_count',
)
TEXT_COLUMNS = ('subject', 'name')


def _parse_tags(value: Any) -> FrozenSet[str]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return frozenset()
    if isinstance(value, str):
        parts = value.split(',')
    else:
        parts = list(value)
    return frozenset(str(p).strip() for p in parts if str(p).strip())


def _parse_text(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    return str(value)


def records_from_frame(frame: pd.DataFrame, channel: str = 'campaign') -> List[SendRecord]:
    """
    Build validated SendRecords from a canonical DataFrame.

    Parameters
    ----------
    frame : pd.DataFrame
        One row per send, canonical column names
    channel : {'campaign', 'flow'}, default='campaign'
        Channel assigned to every row

    Returns
    -------
    list of SendRecord
        In frame order

    Raises
    ------
    ValueError
        Missing required columns, unknown channel, unparseable dates,
        non-numeric or fractional counters, or negative counters/revenue
    """
    try:
        channel = Channel(channel)
    except ValueError as exc:
        raise ValueError(f"channel must be 'campaign' or 'flow', got '{channel}'") from exc

    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    df = frame.copy()
    df['sent_date'] = pd.to_datetime(df['sent_date'], errors='coerce')
    bad_dates = df.index[df['sent_date'].isna()].tolist()
    if bad_dates:
        raise ValueError(f"Unparseable sent_date in rows {bad_dates[:5]}")
    if df['sent_date'].dt.tz is not None:
        # records are naive; keep the wall-clock time of the export
        df['sent_date'] = df['sent_date'].dt.tz_localize(None)

    numeric = ('emails_sent',) + COUNTER_COLUMNS + ('revenue',)
    for col in numeric:
        if col not in df.columns:
            df[col] = 0
        df[col] = pd.to_numeric(df[col], errors='coerce')
        bad = df.index[df[col].isna()].tolist()
        if bad:
            raise ValueError(f"Non-numeric {col} in rows {bad[:5]}")
        negative = df.index[df[col] < 0].tolist()
        if negative:
            raise ValueError(f"Negative {col} in rows {negative[:5]}")
        if col != 'revenue':
            fractional = df.index[(df[col] % 1) != 0].tolist()
            if fractional:
                raise ValueError(f"Non-integer {col} in rows {fractional[:5]}")

    records = []
    for row in df.to_dict('records'):
        records.append(SendRecord(
            sent_date=row['sent_date'].to_pydatetime(),
            emails_sent=int(row['emails_sent']),
            unique_opens=int(row['unique_opens']),
            unique_clicks=int(row['unique_clicks']),
            total_orders=int(row['total_orders']),
            revenue=float(row['revenue']),
            unsubscribes_count=int(row['unsubscribes_count']),
            spam_complaints_count=int(row['spam_complaints_count']),
            bounces_count=int(row['bounces_count']),
            subject=_parse_text(row.get('subject')),
            name=_parse_text(row.get('name')),
            segment_tags=_parse_tags(row.get('segment_tags')),
            channel=channel,
        ))
    return records


def load_send_records(
    campaigns: Optional[pd.DataFrame] = None,
    flows: Optional[pd.DataFrame] = None,
) -> List[SendRecord]:
    """
    Combine campaign and flow frames into one list of SendRecords.

    Either frame may be omitted. Records are returned ordered by send time.
    """
    records: List[SendRecord] = []
    if campaigns is not None:
        records.extend(records_from_frame(campaigns, 'campaign'))
    if flows is not None:
        records.extend(records_from_frame(flows, 'flow'))
    records.sort(key=lambda r: r.sent_date)
    logger.info("Loaded %d send records (%d campaign rows, %d flow rows)", len(records),
                0 if campaigns is None else len(campaigns), 0 if flows is None else len(flows))
    return records
