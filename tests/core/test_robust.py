"""Unit tests for robust summary helpers."""

import pytest
import numpy as np
from email_insights.core import robust


class TestWinsorize:
    """Tests for upper-percentile capping."""

    def test_caps_outlier(self):
        values = list(range(1, 101)) + [10_000]
        capped = robust.winsorize(values, 0.99)

        assert max(capped) == 100
        assert capped[:100] == [float(v) for v in range(1, 101)]

    def test_idempotent(self):
        rng = np.random.default_rng(11)
        values = rng.lognormal(0, 2, 250).tolist()

        once = robust.winsorize(values, 0.99)
        twice = robust.winsorize(once, 0.99)

        assert twice == once

    def test_preserves_order(self):
        assert robust.winsorize([5.0, 1.0, 3.0], 1.0) == [5.0, 1.0, 3.0]

    def test_empty(self):
        assert robust.winsorize([], 0.99) == []

    def test_invalid_percentile(self):
        with pytest.raises(ValueError, match="upper_pct"):
            robust.winsorize([1.0], 0.0)


class TestMedianAndMAD:
    """Tests for median, MAD and percentile."""

    def test_mad_default_center(self):
        # median 3, deviations 2,1,0,1,97 -> MAD 1
        assert robust.median_absolute_deviation([1, 2, 3, 4, 100]) == 1.0

    def test_mad_explicit_center(self):
        assert robust.median_absolute_deviation([0, 0, 10], center=10) == 10.0

    def test_empty_inputs(self):
        assert robust.median([]) == 0.0
        assert robust.median_absolute_deviation([]) == 0.0
        assert robust.percentile([], 0.5) == 0.0

    def test_percentile_interpolates(self):
        assert robust.percentile([0, 10], 0.9) == pytest.approx(9.0)


class TestTrimming:
    """Tests for IQR filtering and percentile clamping."""

    def test_interquartile_filter_drops_extreme(self):
        values = [10, 11, 12, 11, 10, 12, 500]

        assert 500 not in robust.interquartile_filter(values, 3.0)

    def test_clamp_to_percentiles(self):
        clamped = robust.clamp_to_percentiles([0, 10, 20, 30, 1000], 0.10, 0.90)

        assert min(clamped) == pytest.approx(4.0)
        assert max(clamped) == pytest.approx(612.0)
        assert len(clamped) == 5
