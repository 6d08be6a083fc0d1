"""
Revenue Reliability Score
=========================

Scores how dependable period-over-period revenue is on a 0-100 scale using a
robust coefficient of variation (MAD / median) over the latest complete
periods, and flags individual periods as anomalies with a modified z-score.

Score:

    reliability = round(100 * exp(-k * MAD / median)),  k = 1.15

Zero dispersion scores 100; the score decays exponentially as dispersion
grows. No positive baseline (median <= 0) scores 0.

In-progress periods never enter the median, MAD or score. They are still
returned in ``points`` (flagged ``is_complete=False``) for display.

Example Usage:
--------------
>>> from email_insights.aggregation import periods
>>> from email_insights.diagnostics import reliability
>>>
>>> buckets = periods.build_period_buckets_in_range(records, start, end)
>>> result = reliability.compute_reliability(buckets, scope='campaigns')
>>> if result['reliability'] is None:
...     print("Not enough complete weeks yet")
... else:
...     print(f"Reliability: {result['reliability']}% (trend {result['trend_delta']})")
...     anomalies = [p['label'] for p in result['points'] if p['is_anomaly']]
"""

import logging
import math
from typing import Any, Callable, Dict, List, Optional, Sequence

from email_insights.aggregation.periods import PeriodBucket
from email_insights.core import robust
from email_insights.diagnostics.gaps import estimate_gap_loss

logger = logging.getLogger(__name__)

SCOPES = ('all', 'campaigns', 'flows')

WINDOW_SIZE: int = 12
MIN_PERIODS: int = 4
CALIBRATION_K: float = 1.15
ANOMALY_THRESHOLD: float = 2.5
CONTEXT_PERIODS: int = 4

TraceCallback = Callable[[str, Dict[str, Any]], None]


def _score(robust_cv: float, k: float) -> float:
    return 100 * math.exp(-k * robust_cv)


def _expand_window(complete_series: List[float], window_size: int) -> List[float]:
    """Latest ``window_size`` values, extended backwards until enough are non-zero."""
    window = complete_series[-window_size:]
    desired_nonzero = min(3, max(1, window_size // 4))
    nonzero = sum(1 for v in window if v > 0)
    if nonzero >= desired_nonzero or len(complete_series) <= len(window):
        return window

    start = len(complete_series) - len(window)
    while start > 0 and nonzero < desired_nonzero:
        start -= 1
        if complete_series[start] > 0:
            nonzero += 1
    return complete_series[start:]


def _prior_score(prior_window: List[float], k: float) -> Optional[float]:
    positive = [v for v in prior_window if v > 0]
    prior_median = robust.median(positive or prior_window)
    if prior_median <= 0:
        return None
    prior_mad = robust.median_absolute_deviation(prior_window, prior_median)
    return _score(prior_mad / prior_median, k)


def _gap_fields(periods: Sequence[PeriodBucket], scope: str) -> Dict[str, Any]:
    if scope == 'flows':
        return {'zero_campaign_periods': None, 'estimated_lost_revenue': None}
    estimate = estimate_gap_loss(periods)
    return {
        'zero_campaign_periods': estimate['zero_send_periods'],
        'estimated_lost_revenue': estimate['estimated_lost_revenue'],
    }


def compute_reliability(
    periods: Sequence[PeriodBucket],
    scope: str = 'all',
    window_size: int = WINDOW_SIZE,
    min_periods: int = MIN_PERIODS,
    calibration_k: float = CALIBRATION_K,
    anomaly_threshold: float = ANOMALY_THRESHOLD,
    trace: Optional[TraceCallback] = None,
) -> Dict[str, Any]:
    """
    Robust reliability score, trend and anomaly points for a period ladder.

    Parameters
    ----------
    periods : list of PeriodBucket
        Contiguous ascending ladder (weekly or monthly)
    scope : {'all', 'campaigns', 'flows'}, default='all'
        Which revenue to score
    window_size : int, default=12
        Number of latest complete periods scored
    min_periods : int, default=4
        Complete periods required for a score
    calibration_k : float, default=1.15
        Decay constant mapping robust CV to the 0-100 score
    anomaly_threshold : float, default=2.5
        |modified z| above which a period is anomalous
    trace : callable, optional
        ``trace(event, payload)`` receiving intermediate values

    Returns
    -------
    dict
        Dictionary with keys:
        - reliability: 0-100, or None with fewer than ``min_periods`` complete periods
        - trend_delta: Score change vs. the window one period earlier, or None
        - window_periods: Length of the scored window
        - median, mad, robust_cv: Dispersion inputs (None when insufficient)
        - points: Per-period dicts (label, period_start, revenue, index,
          is_anomaly, z_score, is_complete)
        - zero_campaign_periods, estimated_lost_revenue: Gap-loss fields
          (None for the 'flows' scope)

    Notes
    -----
    - When the latest window holds fewer than ``min(3, window_size // 4)``
      non-zero periods it is extended backwards until it does, so a single
      real week among zeros still yields a score.
    - The median uses positive values only. The MAD uses the whole window.
    """
    if scope not in SCOPES:
        raise ValueError(f"scope must be one of {SCOPES}, got '{scope}'")
    if window_size < 1:
        raise ValueError("window_size must be at least 1")

    def emit(event: str, payload: Dict[str, Any]) -> None:
        if trace is not None:
            trace(event, payload)

    periods = list(periods)
    complete_series = [p.revenue_for(scope) for p in periods if p.is_complete]
    emit('series', {'scope': scope, 'periods': len(periods), 'complete': complete_series})

    result: Dict[str, Any] = {
        'reliability': None,
        'trend_delta': None,
        'window_periods': len(complete_series),
        'median': None,
        'mad': None,
        'robust_cv': None,
        'points': [],
    }
    result.update(_gap_fields(periods, scope))

    if len(complete_series) < min_periods:
        logger.debug("Reliability unavailable: %d complete periods (< %d)", len(complete_series), min_periods)
        return result

    window = _expand_window(complete_series, window_size)
    result['window_periods'] = len(window)
    emit('window', {'values': window, 'expanded': len(window) > min(window_size, len(complete_series))})

    # the expanded window holds a positive value unless the whole history is zero
    center = robust.median([v for v in window if v > 0])
    emit('median', {'median': center})
    if center <= 0:
        result.update({'reliability': 0, 'median': 0.0, 'mad': 0.0, 'robust_cv': None})
        emit('score', {'reliability': 0})
        return result

    mad = robust.median_absolute_deviation(window, center)
    robust_cv = mad / center
    raw = _score(robust_cv, calibration_k)
    emit('dispersion', {'mad': mad, 'robust_cv': robust_cv})

    trend_delta = None
    if len(complete_series) >= len(window) + 1:
        prior = _prior_score(complete_series[-(len(window) + 1):-1], calibration_k)
        if prior is not None:
            trend_delta = int(round(raw - prior))

    context = min(window_size + CONTEXT_PERIODS, len(periods))
    points = []
    for period in periods[-context:]:
        revenue = period.revenue_for(scope)
        z_score = None
        is_anomaly = False
        if mad > 0:
            z_score = (revenue - center) / (robust.MAD_SCALE * mad)
            is_anomaly = abs(z_score) > anomaly_threshold
        points.append({
            'label': period.label,
            'period_start': period.period_start,
            'revenue': revenue,
            'index': revenue / center,
            'is_anomaly': is_anomaly,
            'z_score': z_score,
            'is_complete': period.is_complete,
        })

    reliability = int(round(raw))
    emit('score', {'reliability': reliability, 'trend_delta': trend_delta})
    result.update({
        'reliability': reliability,
        'trend_delta': trend_delta,
        'median': center,
        'mad': mad,
        'robust_cv': robust_cv,
        'points': points,
    })
    return result
