"""Unit tests for frequentist tests module."""

import pytest
import numpy as np
from scipy import stats
from email_insights.core import frequentist


class TestTwoProportionZTest:
    """Tests for the pooled two-proportion z-test."""

    def test_no_effect(self):
        result = frequentist.two_proportion_z_test((50, 500), (50, 500))

        assert abs(result['z_statistic']) < 1e-10
        assert result['p_value'] == pytest.approx(1.0)
        assert result['valid']

    def test_positive_effect(self):
        """Test z-test with a clearly higher first group."""
        result = frequentist.two_proportion_z_test((300, 1000), (200, 1000))

        assert result['z_statistic'] > 0
        assert result['p_value'] < 0.001

    def test_small_expected_cell_flagged(self):
        """Expected successes of 3 make the approximation invalid."""
        result = frequentist.two_proportion_z_test((3, 100), (3, 100))

        assert not result['valid']

    def test_zero_standard_error(self):
        result = frequentist.two_proportion_z_test((0, 100), (0, 200))

        assert result['p_value'] == 1.0
        assert result['z_statistic'] == 0.0

    def test_empty_groups_do_not_raise(self):
        result = frequentist.two_proportion_z_test((0, 0), (0, 0))

        assert result['p_value'] == 1.0
        assert not result['valid']


class TestFishersExact:
    """Tests for Fisher's exact test."""

    def test_matches_scipy(self):
        """Two-sided p-value agrees with scipy's implementation."""
        for table in [(3, 97, 1, 299), (8, 2, 1, 5), (10, 10, 10, 10), (6, 1594, 6, 4794)]:
            a, b, c, d = table
            expected = stats.fisher_exact([[a, b], [c, d]], alternative='two-sided')[1]
            assert frequentist.fishers_exact_two_sided(a, b, c, d) == pytest.approx(expected, rel=1e-6)

    def test_row_swap_symmetry(self):
        for a, b, c, d in [(3, 97, 1, 299), (0, 40, 7, 33), (12, 5, 2, 30)]:
            assert frequentist.fishers_exact_two_sided(a, b, c, d) == pytest.approx(
                frequentist.fishers_exact_two_sided(c, d, a, b), rel=1e-9
            )

    def test_degenerate_tables(self):
        assert frequentist.fishers_exact_two_sided(0, 0, 0, 0) == 1.0
        assert frequentist.fishers_exact_two_sided(0, 10, 0, 20) == 1.0
        assert frequentist.fishers_exact_two_sided(5, 0, 0, 0) == 1.0

    def test_large_counts_stay_finite(self):
        p = frequentist.fishers_exact_two_sided(1200, 98800, 900, 99100)

        assert 0.0 <= p <= 1.0
        assert p < 1e-6

    def test_negative_counts(self):
        with pytest.raises(ValueError, match="non-negative"):
            frequentist.fishers_exact_two_sided(-1, 2, 3, 4)


class TestBootstrapDiffCI:
    """Tests for the bootstrap difference-of-means CI."""

    def test_identical_arrays_straddle_zero(self):
        """Identical groups should almost never produce a significant interval."""
        values = np.random.default_rng(7).lognormal(-2.0, 0.8, 80)
        passed = [
            frequentist.bootstrap_diff_ci(values, values, iterations=500, random_state=seed)['passed']
            for seed in range(20)
        ]

        assert sum(passed) <= 1

    def test_clear_difference_passes(self):
        rng = np.random.default_rng(42)
        a = rng.normal(1.0, 0.1, 100)
        b = rng.normal(0.5, 0.1, 100)

        result = frequentist.bootstrap_diff_ci(a, b, random_state=42)

        assert result['passed']
        assert result['ci_lower'] > 0
        assert result['ci_lower'] < result['point_estimate'] < result['ci_upper']

    def test_reproducible_with_seed(self):
        a, b = [0.1, 0.3, 0.2, 0.5], [0.2, 0.1, 0.15]

        first = frequentist.bootstrap_diff_ci(a, b, random_state=3)
        second = frequentist.bootstrap_diff_ci(a, b, random_state=3)

        assert first == second

    def test_transform_applied(self):
        result = frequentist.bootstrap_diff_ci([np.e - 1], [0.0], iterations=10, transform=np.log1p,
                                               random_state=0)

        assert result['point_estimate'] == pytest.approx(1.0)

    def test_empty_group(self):
        result = frequentist.bootstrap_diff_ci([], [1.0, 2.0])

        assert result == {'point_estimate': 0.0, 'ci_lower': 0.0, 'ci_upper': 0.0, 'passed': False}

    def test_invalid_arguments(self):
        with pytest.raises(ValueError, match="iterations"):
            frequentist.bootstrap_diff_ci([1.0], [2.0], iterations=0)

        with pytest.raises(ValueError, match="alpha"):
            frequentist.bootstrap_diff_ci([1.0], [2.0], alpha=1.5)


class TestPearsonCorrelation:
    """Tests for Pearson correlation."""

    def test_perfect_positive(self):
        result = frequentist.pearson_correlation([1, 2, 3, 4], [2, 4, 6, 8])

        assert result['r'] == pytest.approx(1.0)
        assert result['n'] == 4

    def test_matches_numpy(self):
        rng = np.random.default_rng(1)
        x = rng.normal(size=30)
        y = 0.5 * x + rng.normal(size=30)

        assert frequentist.pearson_correlation(x, y)['r'] == pytest.approx(np.corrcoef(x, y)[0, 1])

    def test_too_few_pairs(self):
        assert frequentist.pearson_correlation([1, 2], [3, 4]) == {'r': None, 'n': 2}

    def test_non_finite_pairs_dropped(self):
        result = frequentist.pearson_correlation([1, 2, np.nan, 4], [1, 2, 3, np.inf])

        assert result == {'r': None, 'n': 2}

    def test_zero_variance(self):
        assert frequentist.pearson_correlation([5, 5, 5], [1, 2, 3])['r'] is None
