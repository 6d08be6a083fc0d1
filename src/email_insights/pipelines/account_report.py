"""
Account Report Pipeline

Runs every insight card for one account over its opportunity window.

Pipeline Steps:
1. Select the analysis window (latest send, >= 5,000 emails, 90-365 days)
2. Filter records to the window and bucket whole weeks from the one
   containing the window start
3. Score revenue reliability (all, campaigns, flows)
4. Measure campaign gaps and estimated lost revenue
5. Analyze subject-line features per metric and narrate the insight
6. Recommend send days and compare weeks by campaign count
7. Advise on send volume and deliverability for campaigns and flows

Each card is computed independently over the same window; none reads
another card's output.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Sequence

from email_insights.aggregation import periods
from email_insights.core.records import campaigns_only, flows_only
from email_insights.data import windows
from email_insights.decision import day_of_week, frequency, narrator, volume
from email_insights.diagnostics import deliverability, gaps, reliability
from email_insights.features import subject_lines

logger = logging.getLogger(__name__)


def report_cache_key(account_id: str, window: windows.DateRange, metric: str = 'all') -> str:
    """
    Explicit cache key for a computed card: account, window bounds and metric.

    Example
    -------
    >>> report_cache_key('acct_42', window, 'open_rate')
    'acct_42:2023-12-05:2024-03-04:open_rate'
    """
    if not account_id:
        raise ValueError("account_id must be non-empty")
    return f"{account_id}:{window.start:%Y-%m-%d}:{window.end:%Y-%m-%d}:{metric}"


def run_account_report(
    records: Iterable,
    now: Optional[datetime] = None,
    random_state=None,
    metrics: Sequence[str] = subject_lines.METRICS,
    verbose: bool = False,
) -> Dict[str, Any]:
    """
    Compute every insight card for one account.

    Parameters
    ----------
    records : iterable of SendRecord
        All campaign and flow sends for the account
    now : datetime, optional
        Fallback window end when there are no records
    random_state : int, optional
        Seed for the revenue-per-email bootstraps
    metrics : sequence of str
        Subject-line metrics to analyze
    verbose : bool, default=False
        Print a short summary of each card

    Returns
    -------
    Dict[str, Any]
        - window: The selected DateRange
        - reliability: {'all', 'campaigns', 'flows'} reliability results
        - gaps: Campaign gaps and estimated lost revenue
        - subject_lines: Per-metric feature analysis
        - subject_line_insight: Narrated insight for the window
        - day_of_week: Weekday aggregates and recommendation
        - send_frequency: Campaign weeks bucketed by campaigns per week
        - send_volume: {'campaigns', 'flows'} volume guidance
        - deliverability: {'campaigns', 'flows'} zone and sample-size verdict
    """
    records = list(records)
    results: Dict[str, Any] = {}

    # ========================================================================
    # STEP 1-2: Window and weekly buckets
    # ========================================================================
    window = windows.compute_opportunity_window(records, now=now)
    in_window = windows.filter_records_in_window(records, window)
    previous_start = window.start - timedelta(days=window.days + 1)
    previous = [r for r in records if previous_start <= r.sent_date < window.start]
    results['window'] = window
    logger.info("Account report over %d days (%d of %d records)", window.days, len(in_window), len(records))

    # Period cards get every record so the week containing window.start is
    # bucketed whole; the ladder itself drops anything before that week.
    buckets = periods.build_period_buckets_in_range(records, window.start, window.end, 'week')

    # ========================================================================
    # STEP 3-4: Reliability card
    # ========================================================================
    results['reliability'] = {
        scope: reliability.compute_reliability(buckets, scope=scope) for scope in reliability.SCOPES
    }
    results['gaps'] = gaps.compute_campaign_gaps_and_losses(records, window.start, window.end)

    # ========================================================================
    # STEP 5: Subject lines
    # ========================================================================
    results['subject_lines'] = {
        metric: subject_lines.compute_subject_analysis(in_window, metric, random_state=random_state)
        for metric in metrics
    }
    results['subject_line_insight'] = narrator.build_subject_line_insight(
        in_window,
        range_label=f"Last {window.days} days",
        previous_records=previous or None,
        random_state=random_state,
    )

    # ========================================================================
    # STEP 6-7: Send days, frequency, volume and deliverability
    # ========================================================================
    results['day_of_week'] = day_of_week.compute_campaign_day_performance(in_window, window.start, window.end)
    results['send_frequency'] = frequency.compute_campaign_send_frequency(in_window)
    results['send_volume'] = {
        channel: volume.compute_send_volume_guidance(records, channel, window.start, window.end)
        for channel in volume.CHANNELS
    }
    window_emails = sum(r.emails_sent for r in in_window)
    results['deliverability'] = {
        'campaigns': deliverability.assess_deliverability(campaigns_only(in_window), window.days, window_emails),
        'flows': deliverability.assess_deliverability(flows_only(in_window), window.days, window_emails),
    }

    if verbose:
        rel = results['reliability']['all']['reliability']
        print("=" * 70)
        print(f"ACCOUNT REPORT: {window.start:%Y-%m-%d} -> {window.end:%Y-%m-%d} ({window.days} days)")
        print("=" * 70)
        print(f"  Records in window: {len(in_window):,} (sends captured {window.sends_captured:,})")
        print(f"  Reliability (all): {'n/a' if rel is None else f'{rel}%'}")
        print(f"  Zero-send weeks: {results['gaps']['zero_campaign_send_periods']}")
        print(f"  Subject-line template: {results['subject_line_insight']['template']}")
        print(f"  Send days: {results['day_of_week']['recommendation']['headline']}")
        for channel, guidance in results['send_volume'].items():
            print(f"  Volume ({channel}): {guidance['status']}")
        for channel, verdict in results['deliverability'].items():
            print(f"  Deliverability ({channel}): {verdict['zone']} ({verdict['points']:.0f}/20)")

    return results
