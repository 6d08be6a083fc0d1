"""
Tests for multiple testing correction module.
"""

import pytest
import numpy as np
from email_insights.advanced import multiple_testing


class TestBenjaminiHochberg:
    """Tests for Benjamini-Hochberg FDR correction."""

    def test_bh_basic(self):
        """Test known adjusted values."""
        adjusted = multiple_testing.benjamini_hochberg([0.01, 0.04, 0.03])

        np.testing.assert_array_almost_equal(adjusted, [0.03, 0.04, 0.04])

    def test_bh_permutation_invariant(self):
        """Permuting the input permutes the output identically."""
        rng = np.random.default_rng(5)
        p_values = rng.uniform(0, 0.2, 25)
        order = rng.permutation(25)

        original = np.array(multiple_testing.benjamini_hochberg(p_values))
        permuted = np.array(multiple_testing.benjamini_hochberg(p_values[order]))

        restored = np.empty_like(permuted)
        restored[order] = permuted
        np.testing.assert_allclose(restored, original)

    def test_bh_never_below_raw(self):
        p_values = [0.001, 0.2, 0.5, 0.04, 0.9]
        adjusted = multiple_testing.benjamini_hochberg(p_values)

        assert all(adj >= raw for adj, raw in zip(adjusted, p_values))
        assert all(0.0 <= adj <= 1.0 for adj in adjusted)

    def test_bh_empty(self):
        assert multiple_testing.benjamini_hochberg([]) == []


class TestFdrSummary:
    """Tests for the FDR summary wrapper."""

    def test_counts_significant(self):
        result = multiple_testing.fdr_summary([0.001, 0.002, 0.6], alpha=0.05)

        assert result['n_significant'] == 2
        assert result['significant'] == [True, True, False]
        assert result['alpha'] == 0.05

    def test_invalid_alpha(self):
        with pytest.raises(ValueError, match="alpha"):
            multiple_testing.fdr_summary([0.01], alpha=0)
