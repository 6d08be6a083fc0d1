"""
Multiple Testing Correction
============================

False discovery rate control for the many simultaneous feature tests run by
the subject-line analyzer. Every tested length bin and category contributes
one p-value, and all of them are corrected together in a single family.

Example Usage:
--------------
>>> from email_insights.advanced import multiple_testing
>>>
>>> # One p-value per tested subject-line feature
>>> p_values = [0.001, 0.02, 0.04, 0.30, 0.75]
>>> adjusted = multiple_testing.benjamini_hochberg(p_values)
>>> summary = multiple_testing.fdr_summary(p_values, alpha=0.05)
>>> print(f"Reliable features: {summary['n_significant']}/{len(p_values)}")
"""

from typing import Any, Dict, List, Sequence

import numpy as np
from statsmodels.stats.multitest import multipletests


def benjamini_hochberg(p_values: Sequence[float]) -> List[float]:
    """
    Benjamini-Hochberg step-up adjustment.

    Parameters
    ----------
    p_values : list of float
        Unadjusted p-values in any order

    Returns
    -------
    list of float
        Adjusted p-values in the same order as the input, monotone in the
        sorted p-values and clipped to [0, 1]. Empty input returns [].

    Notes
    -----
    - Permuting the input permutes the output identically.
    - Delegates to ``statsmodels.stats.multitest.multipletests(method='fdr_bh')``.

    Example
    -------
    >>> [round(p, 3) for p in benjamini_hochberg([0.01, 0.04, 0.03])]
    [0.03, 0.04, 0.04]
    """
    if len(p_values) == 0:
        return []

    arr = np.clip(np.asarray(p_values, dtype=float), 0.0, 1.0)
    _, p_adj, _, _ = multipletests(arr, method='fdr_bh')
    return np.clip(p_adj, 0.0, 1.0).tolist()


def fdr_summary(
    p_values: Sequence[float],
    alpha: float = 0.05,
) -> Dict[str, Any]:
    """
    Adjust a family of p-values and report which survive the threshold.

    Returns
    -------
    dict
        Dictionary with keys:
        - adjusted_p_values: BH-adjusted p-values (input order)
        - significant: List of booleans, adjusted p < alpha
        - n_significant: Count of significant results
        - alpha: Threshold used
    """
    if not (0 < alpha < 1):
        raise ValueError(f"alpha must be between 0 and 1, got {alpha}")

    adjusted = benjamini_hochberg(p_values)
    significant = [p < alpha for p in adjusted]
    return {
        'adjusted_p_values': adjusted,
        'significant': significant,
        'n_significant': int(sum(significant)),
        'alpha': alpha,
    }
