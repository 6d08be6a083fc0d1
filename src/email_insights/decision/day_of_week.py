"""
Day-of-Week Send Recommendation
===============================

Scores each weekday on revenue, engagement and risk relative to the weighted
baseline of all campaigns in the range and recommends which days to send on.

Scoring:
- revenue_index: revenue per email / baseline, dampened by 30% when one
  campaign carries >= 60% of the day's volume and >= 2.5x the next campaign's
  revenue
- engagement_index: 0.5 * open ratio + 0.3 * click ratio + 0.2 * conversion ratio
- risk_index: 1 - min(0.40, 0.6 * spam excess + 0.4 * unsubscribe excess)
- composite: 0.55 * revenue + 0.25 * engagement + 0.20 * risk

States:
- **not_enough_data**: Fewer than ``min_weeks`` calendar weeks or no eligible day
- **exploratory**: Exactly one eligible day
- **even**: Composite spread among eligible days below 0.06
- **consider**: One send per week with no clear leader
- **normal**: A recommended set of days
- **risk_shift**: Every candidate day breached the spam or unsubscribe limits

Example Usage:
--------------
>>> from datetime import datetime
>>> from email_insights.decision import day_of_week
>>>
>>> result = day_of_week.compute_campaign_day_performance(
...     records, range_start=datetime(2024, 1, 1), range_end=datetime(2024, 3, 31)
... )
>>> rec = result['recommendation']
>>> print(rec['state'], rec['recommended_days'])
>>> print(rec['headline'])
"""

import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from email_insights.aggregation.periods import as_date, week_start
from email_insights.core.records import SendRecord, campaigns_only, safe_divide

DAY_LABELS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')

MIN_WEEKS: int = 4
MIN_CAMPAIGNS_PER_DAY: int = 3
MIN_EMAILS_PER_DAY_FLOOR: int = 1000
MIN_EMAIL_SHARE_PER_DAY: float = 0.02
VOLATILE_CAMPAIGN_SHARE: float = 0.60
VOLATILE_REVENUE_RATIO: float = 2.5
VOLATILE_DAMPEN: float = 0.70
RISK_PENALTY_CAP: float = 0.40
REVENUE_WEIGHT: float = 0.55
ENGAGEMENT_WEIGHT: float = 0.25
RISK_WEIGHT: float = 0.20
EVEN_SPREAD_THRESHOLD: float = 0.06
CLEAR_WINNER_SCORE_RATIO: float = 1.05
CLEAR_WINNER_REVENUE_INDEX: float = 1.05
MAX_RECOMMENDED_DAYS: int = 4
INCLUSION_RATIOS = {1: 1.00, 2: 0.92, 3: 0.90, 4: 0.88}
CLUSTER_SCORE_DELTA: float = 0.04
CLUSTER_MIN_REVENUE_INDEX: float = 0.95
RISK_SPAM_BLOCK: float = 0.005
RISK_UNSUB_MARGIN: float = 0.0015


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def count_weeks_spanned(range_start: Union[date, datetime], range_end: Union[date, datetime]) -> int:
    """
    Number of Monday-aligned calendar weeks the range touches.

    Partial first and last weeks count, so Wednesday to the following
    Tuesday spans two weeks.
    """
    start_monday = week_start(range_start)
    end_monday = week_start(range_end)
    if end_monday < start_monday:
        return 0
    return (end_monday - start_monday).days // 7 + 1


def _empty_day(day: str) -> Dict[str, Any]:
    return {
        'day': day, 'campaigns': 0, 'emails_sent': 0, 'revenue': 0.0, 'opens': 0,
        'clicks': 0, 'orders': 0, 'unsubs': 0, 'spam': 0, '_sends': [],
    }


def _is_volatile(day: Dict[str, Any]) -> bool:
    sends = day['_sends']
    if not sends or day['emails_sent'] <= 0:
        return False
    largest_emails = max(emails for emails, _ in sends)
    revenues = sorted((revenue for _, revenue in sends), reverse=True)
    second = revenues[1] if len(revenues) > 1 else 0.0
    return (largest_emails / max(1, day['emails_sent']) >= VOLATILE_CAMPAIGN_SHARE
            and revenues[0] >= VOLATILE_REVENUE_RATIO * max(1.0, second))


def _format_pct(fraction: float) -> str:
    pct = fraction * 100
    return f"{pct:.1f}%" if pct >= 10 else f"{pct:.2f}%"


def _format_money(value: float) -> str:
    return f"${value:.2f}"


def _join_days(days: List[str]) -> str:
    if len(days) <= 1:
        return ''.join(days)
    return f"{', '.join(days[:-1])} and {days[-1]}"


def _recommendation(state: str, headline: str, body: List[str], sample_line: Optional[str] = None,
                    recommended: Optional[List[str]] = None, excluded: Optional[List[str]] = None,
                    **extra: Any) -> Dict[str, Any]:
    rec = {
        'state': state,
        'headline': headline,
        'body': body,
        'sample_line': sample_line,
        'recommended_days': recommended or [],
        'consider_days': [],
        'excluded_risk_days': excluded or [],
    }
    rec.update(extra)
    return rec


def build_day_aggregates(campaigns: List[SendRecord]) -> List[Dict[str, Any]]:
    """Per-weekday totals, rates (percent) and the three indices plus composite."""
    days = {label: _empty_day(label) for label in DAY_LABELS}
    for c in campaigns:
        d = days[DAY_LABELS[c.sent_date.weekday()]]
        d['campaigns'] += 1
        d['emails_sent'] += c.emails_sent
        d['revenue'] += c.revenue
        d['opens'] += c.unique_opens
        d['clicks'] += c.unique_clicks
        d['orders'] += c.total_orders
        d['unsubs'] += c.unsubscribes_count
        d['spam'] += c.spam_complaints_count
        d['_sends'].append((c.emails_sent, c.revenue))

    total = {k: sum(d[k] for d in days.values())
             for k in ('emails_sent', 'revenue', 'opens', 'clicks', 'orders', 'unsubs', 'spam')}
    emails = total['emails_sent']
    base_rpe = safe_divide(total['revenue'], emails)
    base_open = safe_divide(total['opens'], emails)
    base_click = safe_divide(total['clicks'], emails)
    base_conv = safe_divide(total['orders'], emails)
    base_unsub = safe_divide(total['unsubs'], emails)
    base_spam = safe_divide(total['spam'], emails)
    min_emails = max(MIN_EMAILS_PER_DAY_FLOOR, _round_half_up(MIN_EMAIL_SHARE_PER_DAY * emails))

    aggregates = []
    for label in DAY_LABELS:
        d = days[label]
        n = d['emails_sent']
        rpe = safe_divide(d['revenue'], n)
        open_prop = safe_divide(d['opens'], n)
        click_prop = safe_divide(d['clicks'], n)
        conv_prop = safe_divide(d['orders'], n)
        unsub_prop = safe_divide(d['unsubs'], n)
        spam_prop = safe_divide(d['spam'], n)

        revenue_index = safe_divide(rpe, base_rpe)
        engagement_index = (0.5 * safe_divide(open_prop, base_open)
                            + 0.3 * safe_divide(click_prop, base_click)
                            + 0.2 * safe_divide(conv_prop, base_conv))
        unsub_excess = max(0.0, (unsub_prop - base_unsub) / max(base_unsub, 0.0001))
        spam_excess = max(0.0, (spam_prop - base_spam) / max(base_spam, 0.00005))
        risk_index = 1 - min(RISK_PENALTY_CAP, 0.6 * spam_excess + 0.4 * unsub_excess)

        volatile = _is_volatile(d)
        if volatile:
            revenue_index *= VOLATILE_DAMPEN
        composite = REVENUE_WEIGHT * revenue_index + ENGAGEMENT_WEIGHT * engagement_index + RISK_WEIGHT * risk_index

        aggregates.append({
            'day': label,
            'campaigns': d['campaigns'],
            'emails_sent': n,
            'revenue': d['revenue'],
            'opens': d['opens'],
            'clicks': d['clicks'],
            'orders': d['orders'],
            'unsubs': d['unsubs'],
            'spam': d['spam'],
            'rev_per_email': rpe,
            'open_rate': open_prop * 100,
            'click_rate': click_prop * 100,
            'conversion_rate': conv_prop * 100,
            'unsub_rate': unsub_prop * 100,
            'spam_rate': spam_prop * 100,
            'revenue_index': revenue_index,
            'engagement_index': engagement_index,
            'risk_index': risk_index,
            'composite_score': composite,
            'volatile': volatile,
            'eligible': d['campaigns'] >= MIN_CAMPAIGNS_PER_DAY or n >= min_emails,
            '_min_emails': min_emails,
            '_base_rpe': base_rpe,
            '_base_unsub': base_unsub,
        })
    return aggregates


def _is_risky(day: Dict[str, Any]) -> bool:
    spam_prop = day['spam_rate'] / 100
    unsub_prop = day['unsub_rate'] / 100
    return spam_prop >= RISK_SPAM_BLOCK or unsub_prop > day['_base_unsub'] + RISK_UNSUB_MARGIN


def compute_campaign_day_performance(
    records: Iterable[SendRecord],
    range_start: Union[date, datetime],
    range_end: Union[date, datetime],
    frequency_recommendation: Optional[int] = None,
    min_weeks: int = MIN_WEEKS,
) -> Dict[str, Any]:
    """
    Weekday aggregates and a send-day recommendation.

    Parameters
    ----------
    records : iterable of SendRecord
        Sends; only campaigns dated within the range are scored
    range_start, range_end : date or datetime
        Analysis range, used to count the calendar weeks it spans
    frequency_recommendation : int, optional
        Desired sends per week. Inferred as round(campaigns / weeks) when
        omitted. Capped to 1..4
    min_weeks : int, default=4
        Calendar weeks spanned required before recommending

    Returns
    -------
    dict
        - aggregates: One dict per weekday (Mon..Sun), empty when data is short
        - recommendation: state, headline, body, sample_line,
          recommended_days, consider_days, excluded_risk_days; the normal and
          consider states add top_cluster (days within 0.04 composite of the
          leader with revenue index >= 0.95)
    """
    start_day, end_day = as_date(range_start), as_date(range_end)
    campaigns = [c for c in campaigns_only(records) if start_day <= c.day <= end_day]
    no_data = 'Not enough data for day-of-week guidance.'

    if not campaigns:
        return {'aggregates': [], 'recommendation': _recommendation(
            'not_enough_data', no_data, ['No campaigns were found in this date range.'])}

    weeks = count_weeks_spanned(start_day, end_day)
    if weeks < min_weeks:
        sample = f"Based on {weeks} week{'' if weeks == 1 else 's'} of data." if weeks else None
        return {'aggregates': [], 'recommendation': _recommendation(
            'not_enough_data', no_data,
            [f"At least {min_weeks} weeks of data are required. Only {weeks} observed."], sample)}

    aggregates = build_day_aggregates(campaigns)
    total_emails = sum(a['emails_sent'] for a in aggregates)
    sample_line = f"Based on {weeks} weeks / {len(campaigns)} campaigns ({total_emails:,} emails)."
    base_rpe = aggregates[0]['_base_rpe']
    min_emails = aggregates[0]['_min_emails']
    base_unsub = aggregates[0]['_base_unsub']

    def public(rows):
        return [{k: v for k, v in row.items() if not k.startswith('_')} for row in rows]

    eligible = sorted((a for a in aggregates if a['eligible']), key=lambda a: -a['composite_score'])
    if not eligible:
        return {'aggregates': public(aggregates), 'recommendation': _recommendation(
            'not_enough_data', no_data,
            [f"No day met the sample bar (>= {MIN_CAMPAIGNS_PER_DAY} campaigns or >= {min_emails:,} emails)."],
            sample_line)}

    if len(eligible) == 1:
        only = eligible[0]['day']
        return {'aggregates': public(aggregates), 'recommendation': _recommendation(
            'exploratory', f"Use {only} as an anchor day.",
            [f"Only {only} has enough sends so far. Keep testing other days before locking in a pattern."],
            sample_line, [only])}

    scores = [a['composite_score'] for a in eligible]
    if max(scores) - min(scores) < EVEN_SPREAD_THRESHOLD:
        return {'aggregates': public(aggregates), 'recommendation': _recommendation(
            'even', 'Performance is even across days.',
            ["Revenue and engagement differ by less than 6% between sampled days. Keep the current cadence "
             "and focus testing on creative rather than send days."],
            sample_line)}

    freq = frequency_recommendation
    if not freq or freq < 1:
        freq = _round_half_up(len(campaigns) / weeks) if weeks > 0 else 1
    freq = min(MAX_RECOMMENDED_DAYS, max(1, freq))

    top = eligible[0]
    ratio = INCLUSION_RATIOS[freq]
    # days within 0.04 composite of the leader without giving up revenue
    cluster = [a['day'] for a in eligible
               if top['composite_score'] - a['composite_score'] <= CLUSTER_SCORE_DELTA
               and a['revenue_index'] >= CLUSTER_MIN_REVENUE_INDEX]
    targets = [a for a in eligible if a['composite_score'] >= top['composite_score'] * ratio][:freq]
    for a in eligible:
        if len(targets) >= freq:
            break
        if a not in targets:
            targets.append(a)

    risky = [a['day'] for a in targets if _is_risky(a)]
    safe_pool = [a for a in eligible if not _is_risky(a)]
    recommended = [a for a in targets if a['day'] not in risky]
    for alt in safe_pool:
        if len(recommended) >= len(targets):
            break
        if alt not in recommended:
            recommended.append(alt)
    recommended.sort(key=lambda a: -a['composite_score'])

    if not recommended:
        return {'aggregates': public(aggregates), 'recommendation': _recommendation(
            'risk_shift', f"Shift volume away from {_join_days(risky)}.",
            [f"Every strong day showed spam at or above {_format_pct(RISK_SPAM_BLOCK)} or unsubscribes more than "
             f"0.15 points above the {_format_pct(base_unsub)} average. Tighten targeting before adding sends."],
            sample_line, [], risky)}

    if freq == 1:
        lead = recommended[0]
        others = [a for a in safe_pool if a is not lead] or [a for a in eligible if a is not lead]
        runner = others[0] if others else None
        clear_winner = lead['revenue_index'] >= CLEAR_WINNER_REVENUE_INDEX and (
            runner is None or lead['composite_score'] >= runner['composite_score'] * CLEAR_WINNER_SCORE_RATIO)
        if clear_winner:
            lift = safe_divide(lead['rev_per_email'] - base_rpe, base_rpe) * 100
            lift_text = f"{lift:.0f}% higher" if lift >= 10 else (f"{lift:.1f}% higher" if lift > 0 else 'on-par')
            body = [f"{lead['day']} delivered {lift_text} revenue per email ({_format_money(lead['rev_per_email'])} vs "
                    f"{_format_money(base_rpe)}) with steady engagement (open {_format_pct(lead['open_rate'] / 100)}, "
                    f"click {_format_pct(lead['click_rate'] / 100)}) and low risk (spam {_format_pct(lead['spam_rate'] / 100)}, "
                    f"unsub {_format_pct(lead['unsub_rate'] / 100)})."]
            return {'aggregates': public(aggregates), 'recommendation': _recommendation(
                'normal', f"Prioritize {lead['day']} sends.", body, sample_line, [lead['day']], risky,
                top_cluster=cluster)}

        pair = [lead['day']] + ([runner['day']] if runner is not None else [])
        return {'aggregates': public(aggregates), 'recommendation': _recommendation(
            'consider', f"No clear leader, consider {' or '.join(pair)}.",
            ["Differences between these days are within normal variance. Keep testing and avoid chasing short-term spikes."],
            sample_line, pair, risky, consider_days=pair, top_cluster=cluster)}

    days = [a['day'] for a in recommended]
    avg_rpe = sum(a['rev_per_email'] for a in recommended) / len(recommended)
    lift = safe_divide(avg_rpe - base_rpe, base_rpe) * 100
    lift_text = (f"{lift:.0f}% over baseline" if lift >= 10 else f"{lift:.1f}% over baseline") if lift > 0 \
        else 'in line with baseline'
    body = [f"These days form the top performance cluster (average revenue per email {_format_money(avg_rpe)}, "
            f"{lift_text}) without a meaningful engagement tradeoff."]
    if risky:
        body.append(f"{_join_days(risky)} showed elevated complaints or unsubscribes and were swapped out. "
                    f"Keep copy and segmentation tight there.")
    return {'aggregates': public(aggregates), 'recommendation': _recommendation(
        'normal', f"Focus sends on {_join_days(days)}.", body, sample_line, days, risky,
        inclusion_ratio=ratio, frequency=freq, top_cluster=cluster)}
