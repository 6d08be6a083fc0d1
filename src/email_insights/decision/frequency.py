"""
Campaign Send Frequency
=======================

Groups campaigns into Monday-aligned calendar weeks and compares weeks by how
many campaigns they carried: 1, 2, 3, or 4 and more. Each bucket reports
summed counters, per-week and per-campaign averages, and weighted rates, so a
reader can see whether busier weeks earn more in total and what they cost in
engagement and complaints.

Rates are percentages (0-100). Conversion rate is orders per click, unlike
the per-email conversion on ``SendRecord``.

Example Usage:
--------------
>>> from email_insights.decision import frequency
>>>
>>> buckets = frequency.compute_campaign_send_frequency(records)
>>> for b in buckets:
...     print(f"{b['key']}/week: {b['weeks_count']} weeks, "
...           f"${b['avg_weekly_revenue']:,.0f} per week, unsub {b['unsubscribe_rate']:.2f}%")
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List

from email_insights.aggregation.periods import week_start
from email_insights.core.records import SendRecord, campaigns_only, safe_divide

logger = logging.getLogger(__name__)

BUCKET_KEYS = ('1', '2', '3', '4+')

SUM_FIELDS = {
    'sum_revenue': 'revenue',
    'sum_emails': 'emails_sent',
    'sum_orders': 'total_orders',
    'sum_opens': 'unique_opens',
    'sum_clicks': 'unique_clicks',
    'sum_unsubs': 'unsubscribes_count',
    'sum_spam': 'spam_complaints_count',
    'sum_bounces': 'bounces_count',
}


def frequency_bucket_key(campaign_count: int) -> str:
    """Bucket label for a week that carried ``campaign_count`` campaigns."""
    if campaign_count < 1:
        raise ValueError("campaign_count must be at least 1")
    return '4+' if campaign_count >= 4 else str(campaign_count)


def _summarize_bucket(key: str, weeks: List[List[SendRecord]]) -> Dict[str, Any]:
    campaigns = [c for week in weeks for c in week]
    sums = {name: sum(getattr(c, attr) for c in campaigns) for name, attr in SUM_FIELDS.items()}
    weeks_count = len(weeks)
    total = len(campaigns)
    emails = sums['sum_emails']

    summary: Dict[str, Any] = {'key': key, 'weeks_count': weeks_count, 'total_campaigns': total}
    summary.update(sums)
    summary.update({
        'avg_weekly_revenue': safe_divide(sums['sum_revenue'], weeks_count),
        'avg_weekly_orders': safe_divide(sums['sum_orders'], weeks_count),
        'avg_weekly_emails': safe_divide(emails, weeks_count),
        'avg_campaign_revenue': safe_divide(sums['sum_revenue'], total),
        'avg_campaign_orders': safe_divide(sums['sum_orders'], total),
        'avg_campaign_emails': safe_divide(emails, total),
        'aov': safe_divide(sums['sum_revenue'], sums['sum_orders']),
        'revenue_per_email': safe_divide(sums['sum_revenue'], emails),
        'open_rate': safe_divide(sums['sum_opens'], emails) * 100,
        'click_rate': safe_divide(sums['sum_clicks'], emails) * 100,
        'click_to_open_rate': safe_divide(sums['sum_clicks'], sums['sum_opens']) * 100,
        'conversion_rate': safe_divide(sums['sum_orders'], sums['sum_clicks']) * 100,
        'unsubscribe_rate': safe_divide(sums['sum_unsubs'], emails) * 100,
        'spam_rate': safe_divide(sums['sum_spam'], emails) * 100,
        'bounce_rate': safe_divide(sums['sum_bounces'], emails) * 100,
    })
    return summary


def compute_campaign_send_frequency(records: Iterable[SendRecord]) -> List[Dict[str, Any]]:
    """
    Aggregate campaign weeks by how many campaigns each week carried.

    Parameters
    ----------
    records : iterable of SendRecord
        Any mix of channels; only campaigns are counted

    Returns
    -------
    list of dict
        One entry per non-empty bucket, ordered 1, 2, 3, 4+. Each has:
        - key, weeks_count, total_campaigns
        - sum_revenue, sum_emails, sum_orders, sum_opens, sum_clicks,
          sum_unsubs, sum_spam, sum_bounces
        - avg_weekly_revenue / _orders / _emails
        - avg_campaign_revenue / _orders / _emails
        - aov, revenue_per_email
        - open_rate, click_rate, click_to_open_rate, conversion_rate,
          unsubscribe_rate, spam_rate, bounce_rate (percent)

    Notes
    -----
    Weeks without campaigns belong to no bucket.
    """
    by_week: Dict[Any, List[SendRecord]] = defaultdict(list)
    for campaign in campaigns_only(records):
        by_week[week_start(campaign.sent_date)].append(campaign)

    grouped: Dict[str, List[List[SendRecord]]] = defaultdict(list)
    for start in sorted(by_week):
        grouped[frequency_bucket_key(len(by_week[start]))].append(by_week[start])

    buckets = [_summarize_bucket(key, grouped[key]) for key in BUCKET_KEYS if grouped.get(key)]
    logger.debug("Send frequency: %d weeks across buckets %s", len(by_week), [b['key'] for b in buckets])
    return buckets
