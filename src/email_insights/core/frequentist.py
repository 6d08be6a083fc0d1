"""
Frequentist Significance Tests for Send Comparisons
===================================================

Primitive tests used to decide whether a subset of sends (a subject-line
feature, a weekday, a length bin) genuinely differs from the rest: a pooled
two-proportion z-test, Fisher's exact test for sparse 2x2 tables, a percentile
bootstrap for differences of means, and Pearson correlation for paired series.

Every function degrades to a neutral result (p = 1, not passed, r = None) on
empty or degenerate input instead of raising. "Cannot determine significance"
is a first-class outcome for the callers.

Example Usage:
--------------
>>> from email_insights.core import frequentist
>>>
>>> # Opens for subjects with deadline language vs all other subjects
>>> result = frequentist.two_proportion_z_test((420, 2000), (1500, 8000))
>>> print(f"z={result['z_statistic']:.2f}, p={result['p_value']:.4f}")
>>> if not result['valid']:
...     p = frequentist.fishers_exact_two_sided(420, 1580, 1500, 6500)
>>>
>>> # Revenue per email, per campaign
>>> import numpy as np
>>> rng = np.random.default_rng(7)
>>> feature = rng.lognormal(-2.0, 0.6, 60)
>>> rest = rng.lognormal(-2.3, 0.6, 240)
>>> ci = frequentist.bootstrap_diff_ci(feature, rest, iterations=1000, random_state=7)
>>> print(f"95% CI: ({ci['ci_lower']:.4f}, {ci['ci_upper']:.4f}) passed={ci['passed']}")
"""

import math
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats

# Minimum expected count per cell for the normal approximation to hold.
MIN_EXPECTED_CELL: float = 5.0

# Relative tolerance when comparing table probabilities in Fisher's test.
FISHER_RELATIVE_TOLERANCE: float = 1e-7

ProportionInput = Tuple[float, float]
RandomState = Union[None, int, np.random.Generator]


def two_proportion_z_test(
    a: ProportionInput,
    b: ProportionInput,
) -> Dict[str, float]:
    """
    Pooled two-proportion z-test (two-sided).

    Parameters
    ----------
    a : tuple of (success, total)
        Counts for the first group (e.g. opens and emails for a feature)
    b : tuple of (success, total)
        Counts for the comparison group

    Returns
    -------
    dict
        Dictionary with keys:
        - z_statistic: (p_a - p_b) / pooled SE, 0.0 when SE is zero
        - p_value: Two-sided p-value, 1.0 when SE is zero
        - valid: Whether all four expected cells are >= 5

    Notes
    -----
    - Expected cells are total * p_pool and total * (1 - p_pool) per group.
      When any is below 5 the normal approximation is unsafe; callers should
      fall back to ``fishers_exact_two_sided``.
    - Empty groups never raise; they produce p = 1 and valid = False.

    Example
    -------
    >>> two_proportion_z_test((50, 1000), (71, 1000))['p_value'] < 0.06
    True
    """
    success_a, total_a = float(a[0]), float(a[1])
    success_b, total_b = float(b[0]), float(b[1])

    p_a = success_a / total_a if total_a > 0 else 0.0
    p_b = success_b / total_b if total_b > 0 else 0.0
    p_pool = (success_a + success_b) / max(1.0, total_a + total_b)

    expected = (
        total_a * p_pool,
        total_a * (1 - p_pool),
        total_b * p_pool,
        total_b * (1 - p_pool),
    )
    valid = all(cell >= MIN_EXPECTED_CELL for cell in expected)

    se = math.sqrt(
        max(p_pool * (1 - p_pool), 0.0) * (1 / max(1.0, total_a) + 1 / max(1.0, total_b))
    )
    if se == 0:
        return {'z_statistic': 0.0, 'p_value': 1.0, 'valid': valid}

    z_stat = (p_a - p_b) / se
    p_value = float(min(1.0, max(0.0, 2 * stats.norm.sf(abs(z_stat)))))

    return {
        'z_statistic': float(z_stat),
        'p_value': p_value,
        'valid': valid,
    }


def fishers_exact_two_sided(a: int, b: int, c: int, d: int) -> float:
    """
    Fisher's exact test (two-sided) for a 2x2 table.

    Table layout::

        [ a  b ]   a = successes in group A, b = failures in group A
        [ c  d ]   c = successes in group B, d = failures in group B

    Parameters
    ----------
    a, b, c, d : int
        Non-negative cell counts

    Returns
    -------
    float
        Sum of the hypergeometric probabilities (margins fixed) of every table
        at most as likely as the observed one, clipped to [0, 1].

    Notes
    -----
    - Probabilities are evaluated in log space with ``scipy.stats.hypergeom``,
      so large counts neither overflow nor need Stirling's approximation.
    - Swapping the two rows yields the same p-value.
    - An empty table returns 1.0.
    """
    a, b, c, d = (int(round(x)) for x in (a, b, c, d))
    if min(a, b, c, d) < 0:
        raise ValueError("Table counts must be non-negative")

    n1 = a + b          # row 1 total
    n2 = c + d          # row 2 total
    m1 = a + c          # successes across both rows
    total = n1 + n2
    if total == 0 or n1 == 0 or n2 == 0 or m1 == 0 or m1 == total:
        return 1.0

    lo = max(0, n1 + m1 - total)
    hi = min(n1, m1)
    support = np.arange(lo, hi + 1)
    dist = stats.hypergeom(total, m1, n1)
    log_probs = dist.logpmf(support)
    log_observed = dist.logpmf(a)

    threshold = log_observed + math.log1p(FISHER_RELATIVE_TOLERANCE)
    p_value = float(np.exp(log_probs[log_probs <= threshold]).sum())
    return min(1.0, max(0.0, p_value))


def bootstrap_diff_ci(
    a: Sequence[float],
    b: Sequence[float],
    iterations: int = 1000,
    transform: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    alpha: float = 0.05,
    random_state: RandomState = None,
) -> Dict[str, float]:
    """
    Percentile bootstrap confidence interval for mean(a) - mean(b).

    Parameters
    ----------
    a : array-like
        Observations for the group of interest (e.g. feature campaigns)
    b : array-like
        Observations for the comparison group
    iterations : int, default=1000
        Number of bootstrap resamples
    transform : callable, optional
        Applied to each group before resampling (e.g. winsorize + log1p)
    alpha : float, default=0.05
        1 - confidence level
    random_state : int or numpy Generator, optional
        Seed or generator for reproducibility

    Returns
    -------
    dict
        Dictionary with keys:
        - point_estimate: Observed mean difference (after transform)
        - ci_lower: Lower percentile bound
        - ci_upper: Upper percentile bound
        - passed: Whether the interval excludes zero

    Notes
    -----
    - Each iteration draws an independent with-replacement sample from each
      group; the groups are not paired.
    - An empty group yields zeros and passed = False.
    """
    if iterations < 1:
        raise ValueError("iterations must be at least 1")
    if not (0 < alpha < 1):
        raise ValueError(f"alpha must be between 0 and 1, got {alpha}")

    arr_a = np.asarray(a, dtype=float)
    arr_b = np.asarray(b, dtype=float)
    if arr_a.size == 0 or arr_b.size == 0:
        return {'point_estimate': 0.0, 'ci_lower': 0.0, 'ci_upper': 0.0, 'passed': False}

    if transform is not None:
        arr_a = np.asarray(transform(arr_a), dtype=float)
        arr_b = np.asarray(transform(arr_b), dtype=float)

    rng = np.random.default_rng(random_state)
    idx_a = rng.integers(0, arr_a.size, size=(iterations, arr_a.size))
    idx_b = rng.integers(0, arr_b.size, size=(iterations, arr_b.size))
    boot_diffs = arr_a[idx_a].mean(axis=1) - arr_b[idx_b].mean(axis=1)

    ci_lower = float(np.percentile(boot_diffs, 100 * alpha / 2))
    ci_upper = float(np.percentile(boot_diffs, 100 * (1 - alpha / 2)))

    return {
        'point_estimate': float(arr_a.mean() - arr_b.mean()),
        'ci_lower': ci_lower,
        'ci_upper': ci_upper,
        'passed': not (ci_lower <= 0 <= ci_upper),
    }


def pearson_correlation(
    xs: Sequence[float],
    ys: Sequence[float],
    min_pairs: int = 3,
) -> Dict[str, Optional[float]]:
    """
    Pearson correlation over the finite (x, y) pairs of two series.

    Returns
    -------
    dict
        - r: Correlation coefficient, None with fewer than ``min_pairs`` pairs
          or when either series has zero variance
        - n: Number of finite pairs used
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    length = min(x.size, y.size)
    x, y = x[:length], y[:length]
    mask = np.isfinite(x) & np.isfinite(y)
    x, y = x[mask], y[mask]
    n = int(x.size)
    if n < min_pairs:
        return {'r': None, 'n': n}

    dx = x - x.mean()
    dy = y - y.mean()
    sxx = float(np.dot(dx, dx))
    syy = float(np.dot(dy, dy))
    if sxx == 0 or syy == 0:
        return {'r': None, 'n': n}

    r = float(np.dot(dx, dy) / math.sqrt(sxx * syy))
    return {'r': max(-1.0, min(1.0, r)), 'n': n}


if __name__ == "__main__":
    # Demo
    print("=" * 80)
    print("Send Comparison Tests Demo")
    print("=" * 80)

    print("\nTWO-PROPORTION Z-TEST (open rate)")
    print("-" * 80)
    result = two_proportion_z_test((420, 2000), (1500, 8000))
    print(f"Z-statistic: {result['z_statistic']:.4f}")
    print(f"P-value: {result['p_value']:.4f}")
    print(f"Normal approximation valid: {result['valid']}")

    print("\nFISHER'S EXACT (sparse complaints)")
    print("-" * 80)
    print(f"P-value: {fishers_exact_two_sided(3, 997, 1, 2999):.4f}")

    print("\nBOOTSTRAP CI (revenue per email)")
    print("-" * 80)
    rng = np.random.default_rng(42)
    feature = rng.lognormal(-2.0, 0.6, 60)
    rest = rng.lognormal(-2.3, 0.6, 240)
    ci = bootstrap_diff_ci(feature, rest, iterations=1000, transform=np.log1p, random_state=42)
    print(f"Point estimate: {ci['point_estimate']:.4f}")
    print(f"95% CI: ({ci['ci_lower']:.4f}, {ci['ci_upper']:.4f})")
    print(f"Excludes zero: {ci['passed']}")
