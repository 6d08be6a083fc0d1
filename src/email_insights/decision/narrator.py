"""
Subject Line Insight Narrator
=============================

Turns subject-line feature statistics and campaign baselines into one of four
narrative templates for the period under review.

Decision Tree (first match wins):
- **insufficient**: Fewer than 5 campaigns or fewer than 5,000 emails
- **warning**: Deliverability problems first (spam, unsubscribe or bounce rate
  above ``max(baseline * 1.4, floor)`` on >= 10,000 emails), then revenue
  problems (campaigns at <= 70% of baseline revenue per email covering >= 20%
  of volume and >= 10,000 emails)
- **wins**: A reliable subject-line highlight with >= 100% revenue-per-email
  lift, or >= 50% lift carrying >= 15% of revenue
- **general**: Everything else, reporting the best available highlight
  without a strong claim

Example Usage:
--------------
>>> from email_insights.decision import narrator
>>>
>>> insight = narrator.build_subject_line_insight(
...     records, range_label='Last 90 days', previous_records=prior_records, random_state=42
... )
>>> print(insight['template'])
>>> print(insight['note']['headline'])
>>> print(insight['note']['paragraph'])
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from email_insights.core.records import SendRecord, campaigns_only, safe_divide
from email_insights.features.subject_lines import compute_subject_analysis

MIN_CAMPAIGNS_REQUIRED: int = 5
MIN_EMAILS_REQUIRED: int = 5000
MIN_EMAILS_FOR_HIGHLIGHT_SHARE: float = 0.05
MIN_EMAILS_FOR_HIGHLIGHT_ABSOLUTE: int = 10000
MIN_EMAILS_FOR_WARNING: int = 10000
LOW_REVENUE_MULTIPLIER: float = 0.7
LOW_REVENUE_VOLUME_THRESHOLD: float = 0.2
WATCH_VOLUME_THRESHOLD: float = 0.05
WINS_STRICT_LIFT: float = 100.0
WINS_FLEX_LIFT: float = 50.0
WINS_SHARE_THRESHOLD: float = 0.15
LAGGING_LIFT_THRESHOLD: float = -15.0
CLICK_DROP_THRESHOLD: float = -20.0

DELIVERABILITY_MULTIPLIER: float = 1.4
SPAM_FLOOR: float = 0.001
UNSUB_FLOOR: float = 0.01
BOUNCE_FLOOR: float = 0.02
SPAM_CRITICAL: float = 0.003
BOUNCE_CRITICAL: float = 0.05

# Account-level status bands for the deliverability summary
OPEN_RATE_CRITICAL: float = 0.30
OPEN_RATE_LOW: float = 0.40
UNSUB_CRITICAL: float = 0.02


@dataclass
class Highlight:
    """Best (or worst) subject-line feature by revenue-per-email lift."""
    scope: str
    key: str
    label: str
    rpe_lift: float
    rpe_value: float
    total_emails: int
    total_revenue: float
    revenue_share: float
    reliable: bool
    open_rate_value: Optional[float] = None
    open_rate_change: Optional[float] = None
    click_rate_value: Optional[float] = None
    click_rate_change: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class WarningDetail:
    """Evidence behind a warning template."""
    kind: str
    volume_share: float
    affected_emails: int
    affected_revenue: float
    baseline_rpe: float
    severity: str = 'flag'
    affected_rpe: Optional[float] = None
    drop_percent: Optional[float] = None
    metric_label: Optional[str] = None
    metric_rate: Optional[float] = None
    baseline_metric: Optional[float] = None
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_currency(value: float) -> str:
    """'$1,234.50' style; negatives get a leading minus."""
    value = value or 0.0
    sign = '-' if value < 0 else ''
    return f"{sign}${abs(value):,.2f}"


def format_percent(fraction: float) -> str:
    """Fraction to percent with at most one decimal: 0.125 -> '12.5%'."""
    text = f"{fraction * 100:.1f}"
    if text.endswith('.0'):
        text = text[:-2]
    if text == '-0':
        text = '0'
    return f"{text}%"


def approx_percent(fraction: float) -> str:
    return f"{int(round(fraction * 100))}%"


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    word = singular if count == 1 else (plural or f"{singular}s")
    return f"{count:,} {word}"


def join_reasons(reasons: Sequence[str]) -> str:
    if not reasons:
        return ''
    if len(reasons) == 1:
        return reasons[0]
    if len(reasons) == 2:
        return f"{reasons[0]} and {reasons[1]}"
    return f"{', '.join(reasons[:-1])}, and {reasons[-1]}"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


# ---------------------------------------------------------------------------
# Baselines and per-campaign diagnostics
# ---------------------------------------------------------------------------

def collect_baseline(campaigns: Sequence[SendRecord]) -> Dict[str, float]:
    """Pooled totals and rates over a set of campaigns."""
    emails = sum(c.emails_sent for c in campaigns)
    revenue = sum(c.revenue for c in campaigns)
    opens = sum(c.unique_opens for c in campaigns)
    clicks = sum(c.unique_clicks for c in campaigns)
    return {
        'total_revenue': revenue,
        'total_emails': emails,
        'total_opens': opens,
        'total_clicks': clicks,
        'rpe': safe_divide(revenue, emails),
        'open_rate': safe_divide(opens, emails),
        'click_rate': safe_divide(clicks, emails),
        'spam_rate': safe_divide(sum(c.spam_complaints_count for c in campaigns), emails),
        'unsub_rate': safe_divide(sum(c.unsubscribes_count for c in campaigns), emails),
        'bounce_rate': safe_divide(sum(c.bounces_count for c in campaigns), emails),
    }


def deliverability_thresholds(baseline: Dict[str, float]) -> Dict[str, float]:
    """Per-metric flag thresholds: ``max(baseline * 1.4, floor)``."""
    return {
        'spam': max(baseline['spam_rate'] * DELIVERABILITY_MULTIPLIER, SPAM_FLOOR),
        'unsubscribe': max(baseline['unsub_rate'] * DELIVERABILITY_MULTIPLIER, UNSUB_FLOOR),
        'bounce': max(baseline['bounce_rate'] * DELIVERABILITY_MULTIPLIER, BOUNCE_FLOOR),
    }


def _campaign_risk_rates(campaign: SendRecord) -> Dict[str, float]:
    return {
        'spam': campaign.spam_rate,
        'unsubscribe': campaign.unsubscribe_rate,
        'bounce': campaign.bounce_rate,
    }


def _period_context(campaigns: Sequence[SendRecord], total_revenue: float) -> Optional[Dict[str, Any]]:
    if not campaigns:
        return None
    first = min(c.day for c in campaigns)
    last = max(c.day for c in campaigns)
    span_days = max(1, (last - first).days + 1)
    bucket = 'week' if span_days <= 45 else 'month'
    bucket_count = max(1.0, span_days / (7 if bucket == 'week' else 30))
    return {'span_days': span_days, 'bucket_label': bucket, 'per_bucket_revenue': total_revenue / bucket_count}


def detect_deliverability_warning(
    campaigns: Sequence[SendRecord],
    baseline: Dict[str, float],
) -> Dict[str, Any]:
    """
    Flag campaigns whose spam, unsubscribe or bounce rate exceeds its threshold.

    Returns
    -------
    dict
        - warning: WarningDetail when flagged campaigns reach 10,000 emails
        - watch: Watch-list sentences for smaller flagged volume (>= 5% of sends)
    """
    thresholds = deliverability_thresholds(baseline)
    baseline_by_metric = {
        'spam': baseline['spam_rate'],
        'unsubscribe': baseline['unsub_rate'],
        'bounce': baseline['bounce_rate'],
    }

    flagged = []
    reason_weights: Dict[str, int] = {}
    dominant = None
    for c in campaigns:
        rates = _campaign_risk_rates(c)
        breaches = [m for m, rate in rates.items() if rate > thresholds[m]]
        if not breaches:
            continue
        flagged.append(c)
        for metric in breaches:
            reason = f"{metric} rate above {format_percent(thresholds[metric])}"
            reason_weights[reason] = reason_weights.get(reason, 0) + c.emails_sent
            if dominant is None or rates[metric] > dominant[1]:
                dominant = (metric, rates[metric])

    if not flagged:
        return {'warning': None, 'watch': []}

    affected_emails = sum(c.emails_sent for c in flagged)
    volume_share = safe_divide(affected_emails, baseline['total_emails'])
    metric, rate = dominant

    if affected_emails < MIN_EMAILS_FOR_WARNING:
        if volume_share >= WATCH_VOLUME_THRESHOLD:
            sentence = f"{_capitalize(metric)} rate briefly reached {format_percent(rate)} on {approx_percent(volume_share)} of sends"
            return {'warning': None, 'watch': [sentence]}
        return {'warning': None, 'watch': []}

    critical = any(c.spam_rate >= SPAM_CRITICAL or c.bounce_rate >= BOUNCE_CRITICAL for c in flagged)
    reasons = [r for r, _ in sorted(reason_weights.items(), key=lambda item: -item[1])[:2]]
    warning = WarningDetail(
        kind='deliverability',
        volume_share=volume_share,
        affected_emails=affected_emails,
        affected_revenue=sum(c.revenue for c in flagged),
        baseline_rpe=baseline['rpe'],
        severity='critical' if critical else 'flag',
        metric_label=metric,
        metric_rate=rate,
        baseline_metric=baseline_by_metric[metric],
        reasons=reasons,
    )
    return {'warning': warning, 'watch': []}


def detect_revenue_warning(
    campaigns: Sequence[SendRecord],
    baseline: Dict[str, float],
) -> Dict[str, Any]:
    """
    Flag low-efficiency campaigns (RPE <= 70% of baseline).

    Returns
    -------
    dict
        - warning: WarningDetail when they cover >= 20% of volume and 10,000 emails
        - watch: Watch-list sentence when they cover >= 5% of volume
    """
    if baseline['rpe'] <= 0:
        return {'warning': None, 'watch': []}

    low = [c for c in campaigns if c.revenue_per_email <= baseline['rpe'] * LOW_REVENUE_MULTIPLIER]
    affected_emails = sum(c.emails_sent for c in low)
    if not low or affected_emails == 0:
        return {'warning': None, 'watch': []}

    volume_share = safe_divide(affected_emails, baseline['total_emails'])
    affected_revenue = sum(c.revenue for c in low)
    affected_rpe = safe_divide(affected_revenue, affected_emails)
    drop_percent = (affected_rpe - baseline['rpe']) / baseline['rpe'] * 100

    if volume_share >= LOW_REVENUE_VOLUME_THRESHOLD and affected_emails >= MIN_EMAILS_FOR_WARNING:
        reasons = []
        weak_opens = [c for c in low if c.open_rate < baseline['open_rate'] * 0.85]
        if sum(c.emails_sent for c in weak_opens) >= affected_emails / 2:
            reasons.append("open rates trailed the period average")
        weak_clicks = [c for c in low if c.click_rate < baseline['click_rate'] * 0.8]
        if sum(c.emails_sent for c in weak_clicks) >= affected_emails / 2:
            reasons.append("click rates trailed the period average")
        warning = WarningDetail(
            kind='revenue',
            volume_share=volume_share,
            affected_emails=affected_emails,
            affected_revenue=affected_revenue,
            baseline_rpe=baseline['rpe'],
            affected_rpe=affected_rpe,
            drop_percent=drop_percent,
            reasons=reasons,
        )
        return {'warning': warning, 'watch': []}

    if volume_share >= WATCH_VOLUME_THRESHOLD:
        sentence = (f"{approx_percent(volume_share)} of sends trailed baseline revenue per email "
                    f"by {format_percent(abs(drop_percent) / 100)}")
        return {'warning': None, 'watch': [sentence]}
    return {'warning': None, 'watch': []}


# ---------------------------------------------------------------------------
# Highlights
# ---------------------------------------------------------------------------

def _highlight_candidates(
    features: Sequence[Dict[str, Any]],
    scope: str,
    baseline: Dict[str, float],
) -> List[Highlight]:
    min_emails = max(baseline['total_emails'] * MIN_EMAILS_FOR_HIGHLIGHT_SHARE, MIN_EMAILS_FOR_HIGHLIGHT_ABSOLUTE)
    candidates = []
    for f in features:
        if f['total_emails'] < min_emails or f['total_revenue'] <= 0:
            continue
        candidates.append(Highlight(
            scope=scope,
            key=f['key'],
            label=f['label'],
            rpe_lift=f['lift_vs_baseline'],
            rpe_value=f['value'],
            total_emails=f['total_emails'],
            total_revenue=f['total_revenue'],
            revenue_share=safe_divide(f['total_revenue'], baseline['total_revenue']),
            reliable=f['reliable'],
        ))
    return candidates


def _matching_feature(highlight: Highlight, analysis: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if analysis is None:
        return None
    pool = analysis['length_bins'] if highlight.scope == 'length' else analysis['categories']
    return next((f for f in pool if f['key'] == highlight.key), None)


def _attach_engagement(
    highlight: Optional[Highlight],
    open_analysis: Dict[str, Any],
    click_analysis: Optional[Dict[str, Any]] = None,
) -> Optional[Highlight]:
    """Copy the highlight's open and click rates (percent) and their lift vs baseline onto it."""
    if highlight is None:
        return None
    opens = _matching_feature(highlight, open_analysis)
    if opens is not None:
        highlight.open_rate_value = opens['value']
        highlight.open_rate_change = opens['lift_vs_baseline']
    clicks = _matching_feature(highlight, click_analysis)
    if clicks is not None:
        highlight.click_rate_value = clicks['value']
        highlight.click_rate_change = clicks['lift_vs_baseline']
    return highlight


def _is_win(h: Highlight) -> bool:
    if not h.reliable:
        return False
    return h.rpe_lift >= WINS_STRICT_LIFT or (h.rpe_lift >= WINS_FLEX_LIFT and h.revenue_share >= WINS_SHARE_THRESHOLD)


def select_highlights(
    rpe_analysis: Dict[str, Any],
    open_analysis: Dict[str, Any],
    baseline: Dict[str, float],
    click_analysis: Optional[Dict[str, Any]] = None,
):
    """
    Pick the best and worst qualifying subject-line features.

    Returns
    -------
    dict
        - wins: Best reliable highlight meeting the wins bar, or None
        - best: Best highlight by lift (reliable or not), or None
        - lagging: Worst highlight at <= -15% lift, or None

    Each highlight carries its open and click rates from ``open_analysis``
    and ``click_analysis``.
    """
    best_by_scope = []
    worst_by_scope = []
    for scope, features in (('category', rpe_analysis['categories']), ('length', rpe_analysis['length_bins'])):
        candidates = _highlight_candidates(features, scope, baseline)
        if candidates:
            best_by_scope.append(max(candidates, key=lambda h: h.rpe_lift))
            worst_by_scope.append(min(candidates, key=lambda h: h.rpe_lift))

    wins = [h for h in best_by_scope if _is_win(h)]
    win = max(wins, key=lambda h: h.rpe_lift) if wins else None
    best = max(best_by_scope, key=lambda h: h.rpe_lift) if best_by_scope else None
    lagging_pool = [h for h in worst_by_scope if h.rpe_lift <= LAGGING_LIFT_THRESHOLD]
    lagging = min(lagging_pool, key=lambda h: h.rpe_lift) if lagging_pool else None

    return {
        'wins': _attach_engagement(win, open_analysis, click_analysis),
        'best': _attach_engagement(best, open_analysis, click_analysis),
        'lagging': _attach_engagement(lagging, open_analysis, click_analysis),
    }


# ---------------------------------------------------------------------------
# Copy
# ---------------------------------------------------------------------------

def _click_drop_sentence(h: Highlight) -> Optional[str]:
    if h.click_rate_change is None or h.click_rate_change > CLICK_DROP_THRESHOLD:
        return None
    return (f"Clicks trailed baseline by {format_percent(abs(h.click_rate_change) / 100)} on these sends, "
            f"so check that the email body follows through on the subject line.")


def _describe_highlight(h: Highlight, baseline_rpe: float) -> str:
    direction = 'more' if h.rpe_lift >= 0 else 'less'
    text = (f"{h.label} subject lines earned {format_percent(abs(h.rpe_lift) / 100)} {direction} "
            f"revenue per email across {pluralize(h.total_emails, 'send')}")
    engagement = []
    if h.open_rate_value is not None and h.open_rate_change is not None:
        engagement.append(f"opening at {h.open_rate_value:.1f}% "
                          f"({format_percent(h.open_rate_change / 100)} vs baseline)")
    if h.click_rate_value is not None and h.click_rate_change is not None:
        engagement.append(f"clicking at {h.click_rate_value:.1f}% "
                          f"({format_percent(h.click_rate_change / 100)} vs baseline)")
    if engagement:
        text += ", " + join_reasons(engagement)
    text += f". The baseline is {format_currency(baseline_rpe)} per email."
    if not h.reliable:
        text += " Treat this as directional; the difference is not yet statistically reliable."
    click_drop = _click_drop_sentence(h)
    if click_drop:
        text += " " + click_drop
    return text


def _context_sentence(context: Optional[Dict[str, Any]]) -> Optional[str]:
    if context is None:
        return None
    return (f"Campaigns in this window brought in about {format_currency(context['per_bucket_revenue'])} "
            f"per {context['bucket_label']}.")


def _watch_sentence(watch: Sequence[str]) -> Optional[str]:
    if not watch:
        return None
    items = [w if w.endswith('.') else f"{w}." for w in watch]
    return "Watch list: " + " ".join(items)


def _insufficient_note() -> Dict[str, str]:
    return {
        'headline': "Not enough campaign volume yet to judge subject lines this period.",
        'summary': "Too few campaigns in this window to trust subject-line revenue patterns.",
        'paragraph': ("Send a few broader campaigns or subject-line tests, then check back once the "
                      f"period passes {MIN_CAMPAIGNS_REQUIRED} campaigns and {MIN_EMAILS_REQUIRED:,} emails."),
    }


def _deliverability_note(detail: WarningDetail, context, best: Optional[Highlight]) -> Dict[str, str]:
    metric = _capitalize(detail.metric_label or 'deliverability')
    peak = format_percent(detail.metric_rate or 0.0)
    share = approx_percent(detail.volume_share)
    sentences = []
    if detail.baseline_metric is not None:
        sentences.append(f"Across all campaigns this rate usually runs near {format_percent(detail.baseline_metric)}.")
    ctx = _context_sentence(context)
    if ctx:
        sentences.append(ctx)
    if detail.reasons:
        sentences.append(f"Drivers: {join_reasons(detail.reasons)}.")
    if detail.severity == 'critical':
        sentences.append(f"This is at a critical level. Pause or narrow sends to engaged recipients until it recovers; "
                         f"the affected campaigns reached {pluralize(detail.affected_emails, 'inbox', 'inboxes')}.")
    else:
        sentences.append(f"Tighten targeting on the affected campaigns, which reached "
                         f"{pluralize(detail.affected_emails, 'inbox', 'inboxes')}.")
    if best is not None and best.rpe_lift > 0:
        sentences.append(f"When volume resumes, lead with {best.label.lower()} subject lines; they stayed above baseline.")
    return {
        'headline': f"{metric} rate reached {peak} on {share} of sends this period.",
        'summary': f"{metric} issues touched {share} of sends, peaking at {peak}.",
        'paragraph': " ".join(sentences),
    }


def _revenue_note(detail: WarningDetail, context, lagging: Optional[Highlight],
                  best: Optional[Highlight]) -> Dict[str, str]:
    share = approx_percent(detail.volume_share)
    drop = format_percent(abs(detail.drop_percent or 0.0) / 100)
    baseline_text = format_currency(detail.baseline_rpe)
    sentences = [f"Those campaigns averaged {format_currency(detail.affected_rpe or 0.0)} per email across "
                 f"{pluralize(detail.affected_emails, 'recipient')}."]
    ctx = _context_sentence(context)
    if ctx:
        sentences.append(ctx)
    if detail.reasons:
        sentences.append(f"Likely causes: {join_reasons(detail.reasons)}.")
    if lagging is not None:
        sentences.append(f"{lagging.label} subject lines ran {format_percent(abs(lagging.rpe_lift) / 100)} below "
                         f"baseline on {pluralize(lagging.total_emails, 'send')}. Rework that angle before reusing it.")
    if best is not None and best is not lagging and best.rpe_lift > 0:
        sentences.append(f"{best.label} subject lines held {format_percent(best.rpe_lift / 100)} above baseline on "
                         f"{pluralize(best.total_emails, 'send')}. Keep that approach while fixing the weak spots.")
    return {
        'headline': f"{share} of sends ran {drop} below the baseline revenue per email of {baseline_text}.",
        'summary': f"About {share} of campaign volume came in {drop} under the {baseline_text} per email baseline.",
        'paragraph': " ".join(sentences),
    }


def _wins_note(h: Highlight, baseline: Dict[str, float], context, lagging: Optional[Highlight],
               watch: Sequence[str]) -> Dict[str, str]:
    lift = format_percent(h.rpe_lift / 100)
    revenue_share = approx_percent(h.revenue_share)
    sentences = []
    ctx = _context_sentence(context)
    if ctx:
        sentences.append(ctx)
    sentences.append(_describe_highlight(h, baseline['rpe']))
    if lagging is not None:
        sentences.append(f"{lagging.label} trailed by {format_percent(abs(lagging.rpe_lift) / 100)} on "
                         f"{pluralize(lagging.total_emails, 'send')}. Refine it while scaling the winner.")
        lagging_clicks = _click_drop_sentence(lagging)
        if lagging_clicks:
            sentences.append(lagging_clicks)
    if h.rpe_lift >= WINS_STRICT_LIFT:
        sentences.append("Confirm the audience was comparable, then keep the same value proposition on the next broad send.")
    else:
        sentences.append("Carry this angle into the next broad test with similar positioning.")
    watch_text = _watch_sentence(watch)
    if watch_text:
        sentences.append(watch_text)
    return {
        'headline': f"{h.label} subject lines lifted revenue per email {lift} on {pluralize(h.total_emails, 'send')}.",
        'summary': f"{h.label} lifted revenue per email by {lift}, carrying {revenue_share} of period revenue.",
        'paragraph': " ".join(sentences),
    }


def _general_note(baseline: Dict[str, float], context, top_share: Optional[float], top_count: int,
                  best: Optional[Highlight], lagging: Optional[Highlight], watch: Sequence[str]) -> Dict[str, str]:
    baseline_text = format_currency(baseline['rpe'])
    share_text = None
    if top_share is not None:
        share_text = (f"{format_percent(top_share / 100)} of revenue came from your top "
                      f"{'send' if top_count == 1 else f'{top_count} sends'}")
    summary = (f"{_capitalize(share_text)}; baseline revenue per email is {baseline_text}."
               if share_text else f"Campaigns averaged {baseline_text} per email this period.")

    sentences = []
    ctx = _context_sentence(context)
    if ctx:
        sentences.append(ctx)
    if best is not None:
        sentences.append(_describe_highlight(best, baseline['rpe']))
    if lagging is not None:
        sentences.append(f"{lagging.label} subject lines lagged baseline by {format_percent(abs(lagging.rpe_lift) / 100)} "
                         f"on {pluralize(lagging.total_emails, 'send')}. Refresh the offer or framing before running them again.")
        lagging_clicks = _click_drop_sentence(lagging)
        if lagging_clicks:
            sentences.append(lagging_clicks)
    else:
        sentences.append("Pair your strongest themes with fresh tests so more of the list sees high-revenue sends.")
    watch_text = _watch_sentence(watch)
    if watch_text:
        sentences.append(watch_text)

    if best is not None and best.rpe_lift > 0:
        headline = (f"{best.label} subject lines delivered {format_percent(best.rpe_lift / 100)} revenue-per-email "
                    f"lift on {pluralize(best.total_emails, 'send')}.")
    elif share_text:
        headline = f"{_capitalize(share_text)}, with baseline revenue per email at {baseline_text}."
    else:
        headline = f"Campaigns averaged {baseline_text} revenue per email this period."
    return {'headline': headline, 'summary': summary, 'paragraph': " ".join(sentences)}


def performance_headline(current_revenue: float, previous: Optional[Dict[str, float]]) -> str:
    """Revenue change versus the previous period, in thousands."""
    if previous is None:
        return f"Campaigns produced {format_currency(current_revenue)} in revenue this period."
    if previous['total_revenue'] <= 0:
        return f"Campaigns generated {format_currency(current_revenue)} in revenue (no revenue in the prior period)."
    diff = current_revenue - previous['total_revenue']
    if abs(diff) < 1:
        return "Campaign revenue was roughly unchanged from the previous period."
    thousands = abs(diff) / 1000
    amount = f"${thousands:.0f}k" if thousands >= 10 else f"${thousands:.1f}k"
    direction = 'more' if diff > 0 else 'less'
    return f"Campaigns generated {amount} {direction} revenue this period than the previous one."


def deliverability_summary(baseline: Dict[str, float]) -> str:
    """Account-level status line for open, spam, unsubscribe and bounce rates."""
    statuses = []
    open_rate = baseline['open_rate']
    if open_rate < OPEN_RATE_CRITICAL:
        statuses.append(f"Critical open rate ({format_percent(open_rate)})")
    elif open_rate < OPEN_RATE_LOW:
        statuses.append(f"Low open rate ({format_percent(open_rate)})")

    for label, rate, flag, critical in (
        ('spam', baseline['spam_rate'], SPAM_FLOOR, SPAM_CRITICAL),
        ('unsubscribes', baseline['unsub_rate'], UNSUB_FLOOR, UNSUB_CRITICAL),
        ('bounces', baseline['bounce_rate'], BOUNCE_FLOOR, BOUNCE_CRITICAL),
    ):
        if rate >= critical:
            statuses.append(f"Critical {label} ({format_percent(rate)})")
        elif rate >= flag:
            statuses.append(f"Elevated {label} ({format_percent(rate)})")

    if not statuses:
        return "No deliverability concerns."
    if len(statuses) == 1:
        return f"{statuses[0]}."
    return f"{', '.join(statuses[:-1])} and {statuses[-1]}."


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_subject_line_insight(
    records: Iterable[SendRecord],
    range_label: str = '',
    previous_records: Optional[Iterable[SendRecord]] = None,
    max_top_count: int = 3,
    random_state=None,
) -> Dict[str, Any]:
    """
    Classify the period and render its subject-line narrative.

    Parameters
    ----------
    records : iterable of SendRecord
        Sends for the period; flow records are ignored
    range_label : str, optional
        Human label for the period, echoed back in the result
    previous_records : iterable of SendRecord, optional
        Sends for the preceding period of equal length
    max_top_count : int, default=3
        How many top-revenue campaigns the revenue concentration covers
    random_state : int or numpy Generator, optional
        Seed for the revenue-per-email bootstrap

    Returns
    -------
    dict
        Dictionary with keys:
        - template: 'insufficient', 'warning', 'wins' or 'general'
        - total_campaigns, total_emails, total_revenue
        - top_revenue_share (percent), top_revenue_count
        - best_length_range/delta, weak_length_range/delta,
          strong_category/delta, weak_category/delta (None when absent)
        - highlight, lagging_highlight: Featured and trailing highlight dicts
          (revenue-per-email lift plus open and click rates with their change
          vs baseline), or None
        - warning: Warning detail dict or None
        - watchlist: Watch-list sentences
        - note: {'headline', 'summary', 'paragraph'}
        - performance_headline: Revenue vs the previous period
        - deliverability_summary: Account-level deliverability status
    """
    campaigns = campaigns_only(records)
    baseline = collect_baseline(campaigns)
    previous = None
    if previous_records is not None:
        prior_campaigns = campaigns_only(previous_records)
        if prior_campaigns:
            previous = collect_baseline(prior_campaigns)

    insight: Dict[str, Any] = {
        'template': 'insufficient',
        'range_label': range_label,
        'total_campaigns': len(campaigns),
        'total_emails': baseline['total_emails'],
        'total_revenue': baseline['total_revenue'],
        'top_revenue_share': None,
        'top_revenue_count': None,
        'best_length_range': None,
        'best_length_delta': None,
        'weak_length_range': None,
        'weak_length_delta': None,
        'strong_category': None,
        'strong_category_delta': None,
        'weak_category': None,
        'weak_category_delta': None,
        'highlight': None,
        'lagging_highlight': None,
        'warning': None,
        'watchlist': [],
        'performance_headline': performance_headline(baseline['total_revenue'], previous),
        'deliverability_summary': deliverability_summary(baseline),
    }

    if len(campaigns) < MIN_CAMPAIGNS_REQUIRED or baseline['total_emails'] < MIN_EMAILS_REQUIRED:
        insight['note'] = _insufficient_note()
        return insight

    rng = np.random.default_rng(random_state)
    rpe_analysis = compute_subject_analysis(campaigns, 'revenue_per_email', random_state=rng)
    open_analysis = compute_subject_analysis(campaigns, 'open_rate', random_state=rng)
    click_analysis = compute_subject_analysis(campaigns, 'click_rate', random_state=rng)
    highlights = select_highlights(rpe_analysis, open_analysis, baseline, click_analysis)
    best, lagging, win = highlights['best'], highlights['lagging'], highlights['wins']

    context = _period_context(campaigns, baseline['total_revenue'])
    deliverability = detect_deliverability_warning(campaigns, baseline)
    revenue = detect_revenue_warning(campaigns, baseline)
    watch = deliverability['watch'] + revenue['watch']

    top_count = min(max_top_count, len(campaigns))
    top_revenue = sum(sorted((c.revenue for c in campaigns), reverse=True)[:top_count])
    top_share = top_revenue / baseline['total_revenue'] * 100 if baseline['total_revenue'] > 0 else None
    insight.update({'top_revenue_share': top_share, 'top_revenue_count': top_count, 'watchlist': watch})

    if deliverability['warning'] is not None:
        insight['template'] = 'warning'
        insight['warning'] = deliverability['warning'].to_dict()
        insight['note'] = _deliverability_note(deliverability['warning'], context, best)
    elif revenue['warning'] is not None:
        insight['template'] = 'warning'
        insight['warning'] = revenue['warning'].to_dict()
        insight['note'] = _revenue_note(revenue['warning'], context, lagging, best)
    elif win is not None:
        insight['template'] = 'wins'
        insight['note'] = _wins_note(win, baseline, context, lagging, watch)
        _fill_highlight_fields(insight, win, lagging)
    else:
        insight['template'] = 'general'
        insight['note'] = _general_note(baseline, context, top_share, top_count, best, lagging, watch)
        _fill_highlight_fields(insight, best, lagging)
    return insight


def _fill_highlight_fields(insight: Dict[str, Any], strong: Optional[Highlight], weak: Optional[Highlight]) -> None:
    insight['highlight'] = strong.to_dict() if strong is not None else None
    insight['lagging_highlight'] = weak.to_dict() if weak is not None else None
    if strong is not None:
        if strong.scope == 'length':
            insight['best_length_range'], insight['best_length_delta'] = strong.label, strong.rpe_lift
        else:
            insight['strong_category'], insight['strong_category_delta'] = strong.label, strong.rpe_lift
    if weak is not None:
        if weak.scope == 'length':
            insight['weak_length_range'], insight['weak_length_delta'] = weak.label, weak.rpe_lift
        else:
            insight['weak_category'], insight['weak_category_delta'] = weak.label, weak.rpe_lift
