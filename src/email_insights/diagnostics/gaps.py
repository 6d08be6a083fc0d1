"""
Sending Gaps and Lost Revenue
=============================

Classifies complete periods as zero-send (no campaigns and no campaign
revenue) or zero-revenue-despite-sends, measures runs of consecutive zero-send
periods, and imputes the campaign revenue a short gap most likely cost.

Estimation policy (used everywhere in the package, including the reliability
card):

1. Require at least 26 complete periods and at least 8 non-zero campaign
   periods among the latest 26, otherwise the estimate is unavailable.
2. Only runs of 1 to 4 periods are estimated; longer pauses are deliberate and
   are reported as deferred.
3. For each run, take up to 2 (single-period run) or 4 (longer run) nearest
   periods on each side that sent campaigns and earned revenue. Runs with
   fewer than 3 references are skipped.
4. With 5 or more references drop values outside 3 IQR of the quartiles,
   otherwise clamp them to [p10, p90].
5. Expected revenue is the median reference, capped at the 90th percentile of
   non-zero campaign revenue over the latest 26 periods, times the run length.

Example Usage:
--------------
>>> from email_insights.diagnostics import gaps
>>>
>>> result = gaps.compute_campaign_gaps_and_losses(records, range_start, range_end)
>>> if not result['insufficient_history_for_estimator']:
...     print(f"Lost to gaps: ${result['estimated_lost_revenue']:,.0f}")
>>> print(f"Longest gap: {result['longest_zero_send_gap']} weeks")
"""

import logging
from typing import Any, Dict, Iterable, List, Sequence

from email_insights.aggregation.periods import PeriodBucket, as_date, build_period_buckets_in_range
from email_insights.core import robust
from email_insights.core.records import SendRecord, campaigns_only

logger = logging.getLogger(__name__)

MIN_HISTORY_PERIODS: int = 26
MIN_NONZERO_PERIODS: int = 8
MAX_ESTIMATED_RUN: int = 4
SINGLE_RUN_NEIGHBOURS: int = 2
MULTI_RUN_NEIGHBOURS: int = 4
MIN_REFERENCES: int = 3
IQR_FILTER_MIN_REFS: int = 5
IQR_MULTIPLIER: float = 3.0
CAP_PERCENTILE: float = 0.90


def is_zero_send(period: PeriodBucket) -> bool:
    return period.campaign_send_count == 0 and period.campaign_revenue == 0


def is_zero_revenue(period: PeriodBucket) -> bool:
    return period.campaign_send_count > 0 and period.campaign_revenue == 0


def _is_reference(period: PeriodBucket) -> bool:
    return period.campaign_send_count > 0 and period.campaign_revenue > 0


def find_zero_send_runs(periods: Sequence[PeriodBucket]) -> List[Dict[str, Any]]:
    """
    Maximal runs of consecutive zero-send periods among complete periods.

    Returns
    -------
    list of dict
        One dict per run with keys ``start_index`` (position in the list of
        complete periods), ``length`` and ``period_start``.
    """
    complete = [p for p in periods if p.is_complete]
    runs = []
    i = 0
    while i < len(complete):
        if not is_zero_send(complete[i]):
            i += 1
            continue
        j = i
        while j < len(complete) and is_zero_send(complete[j]):
            j += 1
        runs.append({'start_index': i, 'length': j - i, 'period_start': complete[i].period_start})
        i = j
    return runs


def _collect_references(
    complete: Sequence[PeriodBucket],
    start_index: int,
    length: int,
) -> List[float]:
    need = SINGLE_RUN_NEIGHBOURS if length == 1 else MULTI_RUN_NEIGHBOURS
    refs: List[float] = []

    found = 0
    k = start_index - 1
    while k >= 0 and found < need:
        if _is_reference(complete[k]):
            refs.append(complete[k].campaign_revenue)
            found += 1
        k -= 1

    found = 0
    k = start_index + length
    while k < len(complete) and found < need:
        if _is_reference(complete[k]):
            refs.append(complete[k].campaign_revenue)
            found += 1
        k += 1
    return refs


def _trim_references(refs: Sequence[float]) -> List[float]:
    if len(refs) >= IQR_FILTER_MIN_REFS:
        return robust.interquartile_filter(refs, multiplier=IQR_MULTIPLIER)
    return robust.clamp_to_percentiles(refs, 0.10, 0.90)


def estimate_gap_loss(
    periods: Sequence[PeriodBucket],
    min_history: int = MIN_HISTORY_PERIODS,
    min_nonzero: int = MIN_NONZERO_PERIODS,
    max_run: int = MAX_ESTIMATED_RUN,
) -> Dict[str, Any]:
    """
    Estimate campaign revenue lost to short zero-send gaps.

    Parameters
    ----------
    periods : list of PeriodBucket
        Contiguous ladder; only complete periods are considered
    min_history : int, default=26
        Complete periods required before estimating
    min_nonzero : int, default=8
        Non-zero campaign periods required among the latest ``min_history``
    max_run : int, default=4
        Longest run that is still extrapolated

    Returns
    -------
    dict
        Dictionary with keys:
        - estimated_lost_revenue: float, or None when history is insufficient
        - insufficient_history: Whether the gate failed
        - zero_send_periods: Total complete zero-send periods
        - longest_gap: Longest zero-send run
        - deferred_periods: Zero-send periods inside runs longer than ``max_run``
    """
    complete = [p for p in periods if p.is_complete]
    runs = find_zero_send_runs(periods)

    result = {
        'estimated_lost_revenue': None,
        'insufficient_history': True,
        'zero_send_periods': sum(run['length'] for run in runs),
        'longest_gap': max((run['length'] for run in runs), default=0),
        'deferred_periods': sum(run['length'] for run in runs if run['length'] > max_run),
    }

    if len(complete) < min_history:
        return result
    recent_nonzero = [p.campaign_revenue for p in complete[-min_history:] if p.campaign_revenue > 0]
    if len(recent_nonzero) < min_nonzero:
        return result

    cap = robust.percentile(recent_nonzero, CAP_PERCENTILE)
    total_lost = 0.0
    for run in runs:
        if run['length'] > max_run:
            continue
        refs = _collect_references(complete, run['start_index'], run['length'])
        if len(refs) < MIN_REFERENCES:
            logger.debug("Skipping gap at %s: only %d references", run['period_start'], len(refs))
            continue
        refs = _trim_references(refs)
        if not refs:
            continue
        expected = min(robust.median(refs), cap)
        total_lost += expected * run['length']

    result['estimated_lost_revenue'] = total_lost
    result['insufficient_history'] = False
    return result


def compute_campaign_gaps_and_losses(
    records: Iterable[SendRecord],
    range_start,
    range_end,
) -> Dict[str, Any]:
    """
    Weekly consistency and gap-loss report for campaigns in a date range.

    Returns
    -------
    dict
        Dictionary with keys:
        - zero_campaign_send_periods: Complete weeks with no campaign sent
        - longest_zero_send_gap: Longest run of such weeks
        - pct_periods_with_campaigns_sent: 0-100
        - estimated_lost_revenue: float or None
        - low_effectiveness_campaigns: Campaigns in range with zero revenue
        - avg_campaigns_per_period: Campaign sends per complete week
        - all_periods_sent: Every complete week had a campaign
        - insufficient_history_for_estimator: The estimator gate failed
        - deferred_periods_over_4: Zero-send weeks inside gaps longer than 4
        - zero_revenue_periods: Weeks with sends but no campaign revenue
    """
    records = list(records)
    weeks = build_period_buckets_in_range(records, range_start, range_end, granularity='week')
    complete = [w for w in weeks if w.is_complete]

    if not complete:
        return {
            'zero_campaign_send_periods': 0,
            'longest_zero_send_gap': 0,
            'pct_periods_with_campaigns_sent': 0.0,
            'estimated_lost_revenue': None,
            'low_effectiveness_campaigns': 0,
            'avg_campaigns_per_period': 0.0,
            'all_periods_sent': False,
            'insufficient_history_for_estimator': True,
            'deferred_periods_over_4': 0,
            'zero_revenue_periods': 0,
        }

    estimate = estimate_gap_loss(weeks)
    sent_weeks = sum(1 for w in complete if w.campaign_send_count > 0)

    start_day, end_day = as_date(range_start), as_date(range_end)
    low_effectiveness = sum(
        1 for r in campaigns_only(records)
        if start_day <= r.day <= end_day and r.revenue == 0
    )

    return {
        'zero_campaign_send_periods': estimate['zero_send_periods'],
        'longest_zero_send_gap': estimate['longest_gap'],
        'pct_periods_with_campaigns_sent': sent_weeks / len(complete) * 100,
        'estimated_lost_revenue': estimate['estimated_lost_revenue'],
        'low_effectiveness_campaigns': low_effectiveness,
        'avg_campaigns_per_period': sum(w.campaign_send_count for w in complete) / len(complete),
        'all_periods_sent': estimate['zero_send_periods'] == 0,
        'insufficient_history_for_estimator': estimate['insufficient_history'],
        'deferred_periods_over_4': estimate['deferred_periods'],
        'zero_revenue_periods': sum(1 for w in complete if is_zero_revenue(w)),
    }
