"""
Send Volume Guidance
====================

Correlates per-period send volume with revenue and with the three risk rates
(unsubscribe, spam complaint, bounce) to decide whether a channel should send
more, send less, or keep its current cadence.

Decision rule (scores map |r| >= 0.45 -> 2, >= 0.20 -> 1, else 0, sign kept):

- send-more:  revenue_score >= 1 and risk_score <= 0
- send-less:  risk_score >= 2, or risk_score >= 1 with revenue_score <= 0
- keep-as-is: everything else

Only harmful (positive) risk correlations count toward ``risk_score``.

Example Usage:
--------------
>>> from email_insights.decision import volume
>>>
>>> guidance = volume.compute_send_volume_guidance(
...     records, channel='campaigns', range_start=start, range_end=end
... )
>>> print(guidance['status'], guidance['period_type'], guidance['sample_size'])
>>> print(guidance['message'])
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from email_insights.aggregation.periods import period_series
from email_insights.core.frequentist import pearson_correlation
from email_insights.core.records import SendRecord, campaigns_only, flows_only, safe_divide

logger = logging.getLogger(__name__)

CHANNELS = ('campaigns', 'flows')

MIN_WEEKLY_SAMPLES: int = 6
MIN_MONTHLY_SAMPLES: int = 3
STRONG_CORRELATION: float = 0.45
WEAK_CORRELATION: float = 0.20

STATUS_MESSAGES = {
    'campaigns': {
        'send-more': (
            "When you sent more campaigns during the review period, revenue increased without hurting "
            "deliverability. Try sending more frequently and monitor reputation and engagement."
        ),
        'send-less': (
            "At the current campaign volume, deliverability and engagement have been declining, and sending "
            "more did not drive meaningful revenue. Reduce frequency to protect sender reputation."
        ),
        'keep-as-is': (
            "Your current campaign frequency supports healthy reputation. When you pushed higher, revenue "
            "gains were too small and reputation worsened. Stay on your current schedule."
        ),
    },
    'flows': {
        'send-more': (
            "When overall flow sends increased, revenue went up without damaging reputation. Review which "
            "flows and steps drive these gains, and consider extending high-performing flows."
        ),
        'send-less': (
            "Increasing flow volume hasn't brought meaningful revenue and has strained deliverability. "
            "Identify flows or steps that should be scaled back or removed."
        ),
        'keep-as-is': (
            "Your current flow volume supports good deliverability. Sending more added little revenue and "
            "hurt reputation. Some flows may still be expandable, while weaker steps might need trimming."
        ),
    },
}

INSUFFICIENT_MESSAGES = {
    'campaigns': (
        "There isn't enough consistent campaign data to measure how changes in send volume affect revenue "
        "or reputation. Try a wider date range before changing your sending frequency."
    ),
    'flows': (
        "There isn't enough consistent flow data to measure how send volume impacts performance. "
        "Try a wider date range to uncover stronger patterns."
    ),
}

_CORRELATION_KEYS = ('volume_vs_revenue', 'volume_vs_unsubs', 'volume_vs_complaints', 'volume_vs_bounces')


def correlation_to_score(r: Optional[float]) -> int:
    """Map a correlation coefficient to a discrete score in {-2, -1, 0, 1, 2}."""
    if r is None:
        return 0
    if r >= STRONG_CORRELATION:
        return 2
    if r >= WEAK_CORRELATION:
        return 1
    if r <= -STRONG_CORRELATION:
        return -2
    if r <= -WEAK_CORRELATION:
        return -1
    return 0


def _channel_records(records: Iterable[SendRecord], channel: str) -> List[SendRecord]:
    if channel == 'campaigns':
        return campaigns_only(records)
    return flows_only(records)


def build_series_points(
    records: Iterable[SendRecord],
    range_start: Union[date, datetime],
    range_end: Union[date, datetime],
    granularity: str = 'week',
) -> List[Dict[str, float]]:
    """Per-period (emails, revenue, unsub/spam/bounce rate) points; periods without sends are dropped."""
    points = []
    for row in period_series(records, range_start, range_end, granularity):
        emails = row['emails']
        if emails <= 0:
            continue
        points.append({
            'emails': emails,
            'revenue': row['revenue'],
            'unsub_rate': safe_divide(row['unsubscribes'], emails),
            'spam_rate': safe_divide(row['spam'], emails),
            'bounce_rate': safe_divide(row['bounces'], emails),
        })
    return points


def compute_send_volume_guidance(
    records: Iterable[SendRecord],
    channel: str,
    range_start: Union[date, datetime],
    range_end: Union[date, datetime],
    min_weekly_samples: int = MIN_WEEKLY_SAMPLES,
    min_monthly_samples: int = MIN_MONTHLY_SAMPLES,
) -> Dict[str, Any]:
    """
    Volume-vs-outcome correlations and a send-volume recommendation.

    Parameters
    ----------
    records : iterable of SendRecord
        Sends of any channel; only ``channel`` is used
    channel : {'campaigns', 'flows'}
        Channel to advise on
    range_start, range_end : date or datetime
        Inclusive analysis range
    min_weekly_samples : int, default=6
        Weekly points with sends needed to score weekly
    min_monthly_samples : int, default=3
        Monthly points needed for the monthly fallback

    Returns
    -------
    dict
        Dictionary with keys:
        - channel, status, message
        - sample_size: Number of points scored
        - period_type: 'weekly', 'monthly' or None
        - revenue_score, risk_score: Discrete correlation scores
        - correlations: {'volume_vs_revenue', 'volume_vs_unsubs',
          'volume_vs_complaints', 'volume_vs_bounces'} each {'r', 'n'}
    """
    if channel not in CHANNELS:
        raise ValueError(f"channel must be one of {CHANNELS}, got '{channel}'")

    subset = _channel_records(records, channel)
    series = build_series_points(subset, range_start, range_end, 'week')
    period_type = None
    if len(series) >= min_weekly_samples:
        period_type = 'weekly'
    else:
        monthly = build_series_points(subset, range_start, range_end, 'month')
        if len(monthly) >= min_monthly_samples:
            series = monthly
            period_type = 'monthly'

    if period_type is None:
        logger.debug("Volume guidance for %s insufficient: %d weekly points", channel, len(series))
        return {
            'channel': channel,
            'status': 'insufficient',
            'message': INSUFFICIENT_MESSAGES[channel],
            'sample_size': 0,
            'period_type': None,
            'revenue_score': 0,
            'risk_score': 0,
            'correlations': {key: {'r': None, 'n': 0} for key in _CORRELATION_KEYS},
        }

    emails = [p['emails'] for p in series]
    correlations = {
        'volume_vs_revenue': pearson_correlation(emails, [p['revenue'] for p in series]),
        'volume_vs_unsubs': pearson_correlation(emails, [p['unsub_rate'] for p in series]),
        'volume_vs_complaints': pearson_correlation(emails, [p['spam_rate'] for p in series]),
        'volume_vs_bounces': pearson_correlation(emails, [p['bounce_rate'] for p in series]),
    }

    revenue_score = correlation_to_score(correlations['volume_vs_revenue']['r'])
    risk_score = max(
        max(0, correlation_to_score(correlations[key]['r']))
        for key in ('volume_vs_unsubs', 'volume_vs_complaints', 'volume_vs_bounces')
    )

    if revenue_score >= 1 and risk_score <= 0:
        status = 'send-more'
    elif risk_score >= 2 or (risk_score >= 1 and revenue_score <= 0):
        status = 'send-less'
    else:
        status = 'keep-as-is'

    logger.debug("Volume guidance for %s: %s (revenue %d, risk %d, %s n=%d)",
                 channel, status, revenue_score, risk_score, period_type, len(series))
    return {
        'channel': channel,
        'status': status,
        'message': STATUS_MESSAGES[channel][status],
        'sample_size': len(series),
        'period_type': period_type,
        'revenue_score': revenue_score,
        'risk_score': risk_score,
        'correlations': correlations,
    }
