"""Unit tests for the revenue reliability score."""

import math
from datetime import date, timedelta

import pytest
from email_insights.aggregation.periods import PeriodBucket
from email_insights.diagnostics import reliability


def _weeks(revenues, incomplete_tail=0):
    buckets = []
    start = date(2024, 1, 1)
    for i, revenue in enumerate(revenues):
        period_start = start + timedelta(weeks=i)
        buckets.append(PeriodBucket(
            period_start=period_start,
            period_end=period_start + timedelta(days=7),
            label=f"W{i + 1}",
            total_revenue=revenue,
            campaign_revenue=revenue,
            campaign_send_count=1 if revenue > 0 else 0,
            is_complete=i < len(revenues) - incomplete_tail,
        ))
    return buckets


class TestComputeReliability:
    """Tests for the robust reliability score."""

    def test_zero_dispersion_scores_100(self):
        result = reliability.compute_reliability(_weeks([500.0] * 12))

        assert result['reliability'] == 100
        assert result['mad'] == 0
        assert all(not p['is_anomaly'] and p['z_score'] is None for p in result['points'])

    def test_nonpositive_median_scores_zero(self):
        result = reliability.compute_reliability(_weeks([0.0] * 10))

        assert result['reliability'] == 0
        assert result['points'] == []

    def test_too_few_complete_periods(self):
        result = reliability.compute_reliability(_weeks([100.0, 200.0, 150.0, 90.0], incomplete_tail=1))

        assert result['reliability'] is None
        assert result['trend_delta'] is None

    def test_single_spike_uses_expanded_window(self):
        """One real week among 26 zero weeks still produces a score."""
        revenues = [0.0] * 26
        revenues[5] = 10634.62

        result = reliability.compute_reliability(_weeks(revenues))

        # median of positives = 10634.62, MAD over the 26-week window = 10634.62
        expected = round(100 * math.exp(-reliability.CALIBRATION_K * 1.0))
        assert result['reliability'] == expected == 32
        assert result['window_periods'] == 26
        assert result['median'] == pytest.approx(10634.62)

    def test_window_reaches_back_to_old_revenue(self):
        """Zero recent weeks extend the window back to the last week that earned revenue."""
        revenues = [0.0] * 40
        revenues[0] = 800.0

        result = reliability.compute_reliability(_weeks(revenues))

        assert result['window_periods'] == 40
        assert result['median'] == pytest.approx(800.0)
        assert result['reliability'] == 32

    def test_calibration_point(self):
        """Score follows 100 * exp(-k * MAD / median) for a known series."""
        revenues = [100.0, 120.0, 80.0, 100.0, 110.0, 90.0, 100.0, 100.0]
        result = reliability.compute_reliability(_weeks(revenues))

        # median 100, deviations 0,20,20,0,10,10,0,0 -> MAD 5
        assert result['robust_cv'] == pytest.approx(0.05)
        assert result['reliability'] == round(100 * math.exp(-1.15 * 0.05))

    def test_incomplete_period_excluded(self):
        result = reliability.compute_reliability(_weeks([500.0] * 12 + [5.0], incomplete_tail=1))

        assert result['reliability'] == 100
        assert result['points'][-1]['is_complete'] is False

    def test_trend_delta_needs_prior_window(self):
        assert reliability.compute_reliability(_weeks([500.0] * 12))['trend_delta'] is None
        assert reliability.compute_reliability(_weeks([500.0] * 13))['trend_delta'] == 0

    def test_anomaly_flagged(self):
        revenues = [100, 110, 90, 105, 95, 100, 102, 98, 100, 101, 99, 1000]
        result = reliability.compute_reliability(_weeks([float(v) for v in revenues]))

        assert result['points'][-1]['is_anomaly']
        assert result['points'][0]['is_anomaly'] is False
        assert result['points'][-1]['index'] == pytest.approx(10.0)

    def test_points_include_context(self):
        result = reliability.compute_reliability(_weeks([100.0 + i for i in range(30)]))

        assert len(result['points']) == reliability.WINDOW_SIZE + reliability.CONTEXT_PERIODS

    def test_flows_scope_has_no_gap_fields(self):
        result = reliability.compute_reliability(_weeks([100.0] * 12), scope='flows')

        assert result['zero_campaign_periods'] is None
        assert result['estimated_lost_revenue'] is None

    def test_trace_callback(self):
        events = []
        reliability.compute_reliability(_weeks([100.0, 150.0, 120.0, 130.0, 110.0]),
                                        trace=lambda event, payload: events.append(event))

        assert events == ['series', 'window', 'median', 'dispersion', 'score']

    def test_invalid_scope(self):
        with pytest.raises(ValueError, match="scope"):
            reliability.compute_reliability(_weeks([100.0] * 5), scope='sms')
