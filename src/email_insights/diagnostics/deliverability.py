"""
Deliverability Zones
====================

Green / yellow / red scoring of a group of sends from its spam complaint and
bounce rates, plus the sample-size rules that decide whether the group has
enough history for its scores to be trusted.

Zones (rates in percent):

- red:    spam > 0.2 or bounce > 3.0
- yellow: spam >= 0.1 or bounce >= 2.0
- green:  everything else

Points run from 20 (green) through 12 (yellow) to 0 (red). A group carrying a
tiny share of the account's sends (under 0.5%) gets up to half of the missing
points back, scaled by how small the share is.

Example Usage:
--------------
>>> from email_insights.diagnostics import deliverability
>>>
>>> result = deliverability.assess_deliverability(flow_step_records, days_in_range=90,
...                                               account_emails=total_account_emails)
>>> print(result['zone'], result['points'])
>>> if result['message']:
...     print(result['message'])
"""

import logging
import math
from typing import Any, Dict, Iterable, Optional

from email_insights.core.records import SendRecord, safe_divide

logger = logging.getLogger(__name__)

ZONES = ('green', 'yellow', 'red')

SPAM_GREEN_LIMIT: float = 0.1
SPAM_RED_LIMIT: float = 0.2
BOUNCE_GREEN_LIMIT: float = 2.0
BOUNCE_RED_LIMIT: float = 3.0

ZONE_POINTS = {'green': 20.0, 'yellow': 12.0, 'red': 0.0}
MAX_POINTS: float = 20.0
LOW_VOLUME_POINTS_CEILING: float = 15.0
LOW_VOLUME_SHARE: float = 0.005
LOW_VOLUME_MAX_RECOVERY: float = 0.5

MIN_SAMPLE_SIZE: int = 250
MIN_LOOKBACK_DAYS: int = 14
MAX_LOOKBACK_DAYS: int = 365
LOOKBACK_TOLERANCE: float = 0.8


def risk_zone(spam_rate: float, bounce_rate: float) -> str:
    """Zone for percent spam and bounce rates; either metric alone can escalate it."""
    if spam_rate > SPAM_RED_LIMIT or bounce_rate > BOUNCE_RED_LIMIT:
        return 'red'
    if spam_rate >= SPAM_GREEN_LIMIT or bounce_rate >= BOUNCE_GREEN_LIMIT:
        return 'yellow'
    return 'green'


def deliverability_points(
    spam_rate: float,
    bounce_rate: float,
    send_share: float = 0.0,
) -> Dict[str, Any]:
    """
    Score a group of sends from 0 to 20.

    Parameters
    ----------
    spam_rate, bounce_rate : float
        Percent rates (0.05 means 0.05%)
    send_share : float, default=0.0
        The group's share (0-1) of all account sends. Zero disables the
        low-volume adjustment.

    Returns
    -------
    Dict[str, Any]
        - points: Score in [0, 20]
        - zone: 'green', 'yellow' or 'red'
        - low_volume_adjusted: Whether the small-share recovery applied
    """
    zone = risk_zone(spam_rate, bounce_rate)
    base = ZONE_POINTS[zone]
    adjusted = base < LOW_VOLUME_POINTS_CEILING and 0 < send_share < LOW_VOLUME_SHARE
    points = base
    if adjusted:
        volume_factor = 1 - send_share / LOW_VOLUME_SHARE
        points = base + (MAX_POINTS - base) * volume_factor * LOW_VOLUME_MAX_RECOVERY
    return {
        'points': min(MAX_POINTS, max(0.0, points)),
        'zone': zone,
        'low_volume_adjusted': adjusted,
    }


def optimal_lookback_days(total_sends: float, days_in_range: float,
                          min_sample_size: int = MIN_SAMPLE_SIZE) -> int:
    """
    Days of history needed to collect ``min_sample_size`` sends at the current pace.

    Clamped to [14, 365]; no sends or an empty range gives the 365-day cap.
    """
    if days_in_range <= 0:
        return MAX_LOOKBACK_DAYS
    avg_daily = total_sends / days_in_range
    if avg_daily <= 0:
        return MAX_LOOKBACK_DAYS
    return max(MIN_LOOKBACK_DAYS, min(MAX_LOOKBACK_DAYS, math.ceil(min_sample_size / avg_daily)))


def has_statistical_significance(total_sends: float, days_in_range: float, lookback_days: int) -> bool:
    if total_sends < MIN_SAMPLE_SIZE:
        return False
    # 80% of the lookback is close enough
    return days_in_range >= lookback_days * LOOKBACK_TOLERANCE


def risk_message(zone: str, spam_rate: float, bounce_rate: float) -> Optional[str]:
    """Plain-language warning for a yellow or red zone; None when green."""
    if zone not in ZONES:
        raise ValueError(f"zone must be one of {ZONES}, got '{zone}'")
    if zone == 'green':
        return None
    if zone == 'yellow':
        issues = [name for name, hit in (('spam', spam_rate >= SPAM_GREEN_LIMIT),
                                         ('bounce', bounce_rate >= BOUNCE_GREEN_LIMIT)) if hit]
        return (f"Deliverability metrics are approaching warning thresholds ({' and '.join(issues)} rates). "
                "Monitor closely before scaling further.")
    issues = []
    if spam_rate > SPAM_RED_LIMIT:
        issues.append(f"spam at {spam_rate:.2f}%")
    if bounce_rate > BOUNCE_RED_LIMIT:
        issues.append(f"bounce at {bounce_rate:.1f}%")
    return (f"Elevated deliverability risk: {' and '.join(issues)} exceed safe limits. "
            "Pause and review before continuing.")


def insufficient_data_message(total_sends: float, days_in_range: float, lookback_days: int) -> str:
    if total_sends < MIN_SAMPLE_SIZE:
        return (f"Insufficient data for reliable analysis. These sends total {total_sends:,.0f}; "
                f"at least {MIN_SAMPLE_SIZE} are needed for meaningful recommendations.")
    return (f"Insufficient data. The current date range is {days_in_range:,.0f} days, but this send volume "
            f"needs at least {lookback_days} days for reliable insights.")


def assess_deliverability(
    records: Iterable[SendRecord],
    days_in_range: float,
    account_emails: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Zone, points and sample-size verdict for one group of sends.

    Parameters
    ----------
    records : iterable of SendRecord
        The group to score (a channel, a flow, a segment)
    days_in_range : float
        Length of the date range the records were drawn from
    account_emails : float, optional
        Emails sent by the whole account over the same range; enables the
        low-volume adjustment

    Returns
    -------
    Dict[str, Any]
        - emails_sent, spam_rate, bounce_rate (percent)
        - zone, points, low_volume_adjusted
        - lookback_days: Optimal history length for this volume
        - significant: Whether the sample is large and long enough
        - message: Insufficient-data note when not significant, otherwise the
          zone warning (None for green)
    """
    if days_in_range < 0:
        raise ValueError("days_in_range must be non-negative")
    records = list(records)
    emails = sum(r.emails_sent for r in records)
    spam_rate = safe_divide(sum(r.spam_complaints_count for r in records), emails) * 100
    bounce_rate = safe_divide(sum(r.bounces_count for r in records), emails) * 100
    share = safe_divide(emails, account_emails) if account_emails else 0.0

    scored = deliverability_points(spam_rate, bounce_rate, send_share=share)
    lookback = optimal_lookback_days(emails, days_in_range)
    significant = has_statistical_significance(emails, days_in_range, lookback)
    if significant:
        message = risk_message(scored['zone'], spam_rate, bounce_rate)
    else:
        message = insufficient_data_message(emails, days_in_range, lookback)
    logger.debug("Deliverability: %s zone, %.1f points over %d emails (significant=%s)",
                 scored['zone'], scored['points'], emails, significant)

    result = {'emails_sent': emails, 'spam_rate': spam_rate, 'bounce_rate': bounce_rate}
    result.update(scored)
    result.update({'lookback_days': lookback, 'significant': significant, 'message': message})
    return result
