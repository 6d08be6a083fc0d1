"""
Robust Summaries
================

Outlier-resistant summaries shared by the reliability scorer, the gap-loss
estimator and the subject-line analyzer.

Percentile arguments are fractions in [0, 1] (0.9 is the 90th percentile),
matching ``winsorize(values, upper_pct=0.99)``.

Example Usage:
--------------
>>> from email_insights.core import robust
>>>
>>> weekly_revenue = [4200.0, 3900.0, 4100.0, 15800.0, 4050.0]
>>> capped = robust.winsorize(weekly_revenue, upper_pct=0.75)
>>> center = robust.median(weekly_revenue)
>>> spread = robust.median_absolute_deviation(weekly_revenue, center)
>>> print(f"median={center:.0f}, MAD={spread:.0f}, p90={robust.percentile(weekly_revenue, 0.9):.0f}")
"""

from typing import List, Optional, Sequence

import numpy as np

# Scale factor making MAD a consistent estimator of the normal standard deviation.
MAD_SCALE: float = 1.4826


def winsorize(values: Sequence[float], upper_pct: float = 0.99) -> List[float]:
    """
    Cap values at an upper percentile to bound outlier influence.

    The cap is the sorted element at index ``floor(upper_pct * (n - 1))``, so it
    is always an observed value and capping twice equals capping once.

    Parameters
    ----------
    values : array-like
        Observations
    upper_pct : float, default=0.99
        Upper percentile as a fraction in (0, 1]

    Returns
    -------
    list of float
        Values in their original order with everything above the cap replaced
        by the cap. Empty input returns an empty list.
    """
    if not (0 < upper_pct <= 1):
        raise ValueError(f"upper_pct must be in (0, 1], got {upper_pct}")
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return []
    cap = float(np.percentile(arr, 100 * upper_pct, method='lower'))
    return np.minimum(arr, cap).tolist()


def percentile(values: Sequence[float], p: float) -> float:
    """Linear-interpolated percentile for ``p`` in [0, 1]; 0.0 when empty."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    p = min(1.0, max(0.0, p))
    return float(np.percentile(arr, 100 * p))


def median(values: Sequence[float]) -> float:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.median(arr))


def median_absolute_deviation(
    values: Sequence[float],
    center: Optional[float] = None,
) -> float:
    """
    Median of absolute deviations from ``center`` (the sample median by default).

    Returns the raw MAD; multiply by ``MAD_SCALE`` for a normal-consistent
    standard deviation.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    if center is None:
        center = float(np.median(arr))
    return float(np.median(np.abs(arr - center)))


def interquartile_filter(values: Sequence[float], multiplier: float = 3.0) -> List[float]:
    """
    Drop values outside ``[q1 - multiplier*IQR, q3 + multiplier*IQR]``.

    Quartiles use the same linear interpolation as ``percentile``.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return []
    q1, q3 = np.percentile(arr, [25, 75])
    iqr = q3 - q1
    lower, upper = q1 - multiplier * iqr, q3 + multiplier * iqr
    return arr[(arr >= lower) & (arr <= upper)].tolist()


def clamp_to_percentiles(
    values: Sequence[float],
    lower_pct: float = 0.10,
    upper_pct: float = 0.90,
) -> List[float]:
    """Clamp every value into ``[percentile(lower_pct), percentile(upper_pct)]``."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return []
    lo = percentile(arr, lower_pct)
    hi = percentile(arr, upper_pct)
    return np.clip(arr, lo, hi).tolist()
