"""
Subject Line Feature Analysis
=============================

Measures how subject-line features (length bins and lexicon categories) move a
campaign metric relative to the baseline of all campaigns, and gates every
feature behind a significance test before it may be called "reliable".

Gating:

- A feature is volume-eligible with at least 5 campaigns and at least 2% of
  total email volume.
- Rate metrics (open, click, click-to-open) use a pooled two-proportion z-test
  of the feature subset against all other campaigns, falling back to Fisher's
  exact test when an expected cell is below 5. All tested p-values (length
  bins and categories together) are Benjamini-Hochberg corrected as one
  family; reliable means adjusted p < 0.05.
- Revenue per email uses a bootstrap CI for the difference of mean
  per-campaign RPE, after winsorizing at the 99th percentile and applying
  log1p; reliable means the 95% CI excludes zero.

Example Usage:
--------------
>>> from email_insights.features import subject_lines
>>>
>>> analysis = subject_lines.compute_subject_analysis(records, metric='open_rate', random_state=42)
>>> print(f"Baseline open rate: {analysis['baseline']['value']:.1f}%")
>>> for feature in analysis['categories']:
...     if feature['reliable']:
...         print(f"{feature['label']}: {feature['lift_vs_baseline']:+.0f}% ({feature['method']})")
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from email_insights.advanced.multiple_testing import fdr_summary
from email_insights.core import frequentist, robust
from email_insights.core.records import SendRecord, campaigns_only
from email_insights.features import lexicon

logger = logging.getLogger(__name__)

METRICS = ('open_rate', 'click_rate', 'click_to_open_rate', 'revenue_per_email')
RATE_METRICS = ('open_rate', 'click_rate', 'click_to_open_rate')

ALL_SEGMENTS = 'ALL_SEGMENTS'

MIN_FEATURE_CAMPAIGNS: int = 5
MIN_FEATURE_VOLUME_SHARE: float = 0.02
SIGNIFICANCE_ALPHA: float = 0.05
BOOTSTRAP_ITERATIONS: int = 1000
WINSORIZE_PCT: float = 0.99
MAX_EXAMPLES: int = 5


def _check_metric(metric: str) -> None:
    if metric not in METRICS:
        raise ValueError(f"metric must be one of {METRICS}, got '{metric}'")


def metric_parts(record: SendRecord, metric: str) -> Tuple[float, float]:
    """(numerator, denominator) contributed by one record."""
    if metric == 'open_rate':
        return record.unique_opens, record.emails_sent
    if metric == 'click_rate':
        return record.unique_clicks, record.emails_sent
    if metric == 'click_to_open_rate':
        return record.unique_clicks, record.unique_opens
    return record.revenue, record.emails_sent


def aggregate(records: Sequence[SendRecord], metric: str) -> Dict[str, Any]:
    """
    Sum counters over records and compute the metric value.

    Rate metrics are reported in percent; revenue per email in currency.
    """
    numerator = denominator = 0.0
    emails = opens = clicks = 0
    revenue = 0.0
    for r in records:
        num, den = metric_parts(r, metric)
        numerator += num
        denominator += den
        emails += r.emails_sent
        opens += r.unique_opens
        clicks += r.unique_clicks
        revenue += r.revenue

    scale = 1.0 if metric == 'revenue_per_email' else 100.0
    value = numerator / denominator * scale if denominator > 0 else 0.0
    return {
        'count_campaigns': len(records),
        'total_emails': emails,
        'total_opens': opens,
        'total_clicks': clicks,
        'total_revenue': revenue,
        'value': value,
        'numerator': numerator,
        'denominator': denominator,
    }


def filter_by_segment(records: Iterable[SendRecord], segment: Optional[str] = None) -> List[SendRecord]:
    """Records tagged with ``segment``; all records for None or 'ALL_SEGMENTS'."""
    records = list(records)
    if not segment or segment == ALL_SEGMENTS:
        return records
    return [r for r in records if segment in r.segment_tags]


def unique_segments(records: Iterable[SendRecord]) -> List[str]:
    """Sorted, de-duplicated non-blank segment tags."""
    segments = {tag for r in records for tag in r.segment_tags if tag and tag.strip()}
    return sorted(segments)


def _examples(subset: Sequence[SendRecord]) -> List[str]:
    ordered = sorted(subset, key=lambda r: r.emails_sent, reverse=True)
    return [r.subject_text for r in ordered if r.subject_text][:MAX_EXAMPLES]


def _feature_stat(
    key: str,
    label: str,
    subset: Sequence[SendRecord],
    baseline: Dict[str, Any],
    metric: str,
) -> Dict[str, Any]:
    agg = aggregate(subset, metric)
    base_value = baseline['value']
    lift = (agg['value'] - base_value) / base_value * 100 if base_value > 0 else 0.0
    eligible = (
        agg['count_campaigns'] >= MIN_FEATURE_CAMPAIGNS
        and agg['total_emails'] >= MIN_FEATURE_VOLUME_SHARE * baseline['total_emails']
        and agg['total_emails'] > 0
    )
    return {
        'key': key,
        'label': label,
        'count_campaigns': agg['count_campaigns'],
        'total_emails': agg['total_emails'],
        'total_opens': agg['total_opens'],
        'total_clicks': agg['total_clicks'],
        'total_revenue': agg['total_revenue'],
        'value': agg['value'],
        'lift_vs_baseline': lift,
        'delta_vs_baseline': agg['value'] - base_value,
        'examples': _examples(subset),
        'volume_eligible': eligible,
        'reliable': False,
        'method': 'none',
        'p_value': None,
        'adjusted_p_value': None,
        'ci_low': None,
        'ci_high': None,
        '_numerator': agg['numerator'],
        '_denominator': agg['denominator'],
    }


def _proportion_test(stat: Dict[str, Any], baseline: Dict[str, Any]) -> None:
    """Fill method and raw p-value for a rate-metric feature."""
    success = stat['_numerator']
    total = stat['_denominator']
    rest_success = max(0.0, baseline['numerator'] - success)
    rest_total = max(0.0, baseline['denominator'] - total)
    if total <= 0 or rest_total <= 0:
        return

    z_result = frequentist.two_proportion_z_test((success, total), (rest_success, rest_total))
    if z_result['valid']:
        stat['method'] = 'z'
        stat['p_value'] = z_result['p_value']
    else:
        stat['method'] = 'fisher'
        stat['p_value'] = frequentist.fishers_exact_two_sided(
            int(round(success)),
            int(round(max(0.0, total - success))),
            int(round(rest_success)),
            int(round(max(0.0, rest_total - rest_success))),
        )


def _rpe_transform(values: np.ndarray) -> np.ndarray:
    return np.log1p(robust.winsorize(values, WINSORIZE_PCT))


def _bootstrap_test(
    stat: Dict[str, Any],
    subset: Sequence[SendRecord],
    rest: Sequence[SendRecord],
    rng: np.random.Generator,
) -> None:
    if not rest:
        return
    ci = frequentist.bootstrap_diff_ci(
        [r.revenue_per_email for r in subset],
        [r.revenue_per_email for r in rest],
        iterations=BOOTSTRAP_ITERATIONS,
        transform=_rpe_transform,
        random_state=rng,
    )
    stat['method'] = 'bootstrap'
    stat['ci_low'] = ci['ci_lower']
    stat['ci_high'] = ci['ci_upper']
    stat['reliable'] = ci['passed']


def _reuse_stats(campaigns: Sequence[SendRecord], metric: str) -> List[Dict[str, Any]]:
    by_subject: Dict[str, List[SendRecord]] = defaultdict(list)
    for r in campaigns:
        by_subject[r.subject_text].append(r)

    reuse = []
    for subject, sends in by_subject.items():
        if not subject or len(sends) < 2:
            continue
        ordered = sorted(sends, key=lambda r: r.sent_date)
        first_value = aggregate([ordered[0]], metric)['value']
        last_value = aggregate([ordered[-1]], metric)['value']
        reuse.append({
            'subject': subject,
            'occurrences': len(ordered),
            'first_value': first_value,
            'last_value': last_value,
            'change': last_value - first_value,
            'total_emails': sum(r.emails_sent for r in ordered),
        })
    reuse.sort(key=lambda item: item['total_emails'], reverse=True)
    return reuse


def compute_subject_analysis(
    records: Iterable[SendRecord],
    metric: str,
    segment: Optional[str] = None,
    random_state=None,
    categories: Sequence[lexicon.Category] = lexicon.CATEGORIES,
) -> Dict[str, Any]:
    """
    Per-feature metric aggregates, lift and reliability verdicts.

    Parameters
    ----------
    records : iterable of SendRecord
        Sends; flow records are ignored
    metric : {'open_rate', 'click_rate', 'click_to_open_rate', 'revenue_per_email'}
        Metric to analyze
    segment : str, optional
        Restrict to campaigns tagged with this segment
    random_state : int or numpy Generator, optional
        Seed for the revenue-per-email bootstrap
    categories : sequence of Category, optional
        Predicates to evaluate, defaults to the full lexicon

    Returns
    -------
    dict
        Dictionary with keys:
        - metric: The analyzed metric
        - baseline: Aggregate over all analyzed campaigns
        - length_bins: Feature stats per non-empty length bin, in bin order
        - categories: Feature stats per matching category, sorted by lift
        - reuse: Exact subject repeats with first/last value and change
    """
    _check_metric(metric)
    campaigns = filter_by_segment(campaigns_only(records), segment)
    baseline = aggregate(campaigns, metric)

    groups: List[Tuple[str, str, str, List[SendRecord]]] = []

    binned: Dict[str, List[SendRecord]] = defaultdict(list)
    for r in campaigns:
        binned[lexicon.length_bin(r.subject_text)['key']].append(r)
    for key, label, _, _ in lexicon.LENGTH_BINS:
        if binned.get(key):
            groups.append(('length', key, label, binned[key]))

    for category in categories:
        subset = [r for r in campaigns if category.matches(r.subject_text)]
        if subset:
            groups.append(('category', category.key, category.label, subset))

    rng = np.random.default_rng(random_state)
    stats_by_scope: Dict[str, List[Dict[str, Any]]] = {'length': [], 'category': []}
    tested: List[Dict[str, Any]] = []

    for scope, key, label, subset in groups:
        stat = _feature_stat(key, label, subset, baseline, metric)
        stats_by_scope[scope].append(stat)
        if not stat['volume_eligible']:
            continue
        if metric in RATE_METRICS:
            _proportion_test(stat, baseline)
            if stat['p_value'] is not None:
                tested.append(stat)
        else:
            members = set(map(id, subset))
            rest = [r for r in campaigns if id(r) not in members]
            _bootstrap_test(stat, subset, rest, rng)

    if tested:
        fdr = fdr_summary([s['p_value'] for s in tested], alpha=SIGNIFICANCE_ALPHA)
        for stat, adj, significant in zip(tested, fdr['adjusted_p_values'], fdr['significant']):
            stat['adjusted_p_value'] = adj
            stat['reliable'] = significant
        logger.debug("Tested %d features for %s; %d reliable", len(tested), metric, fdr['n_significant'])

    for stat in stats_by_scope['length'] + stats_by_scope['category']:
        del stat['_numerator']
        del stat['_denominator']

    stats_by_scope['category'].sort(key=lambda s: (-s['lift_vs_baseline'], -s['total_emails']))

    return {
        'metric': metric,
        'baseline': {k: v for k, v in baseline.items() if k not in ('numerator', 'denominator')},
        'length_bins': stats_by_scope['length'],
        'categories': stats_by_scope['category'],
        'reuse': _reuse_stats(campaigns, metric),
    }
