"""Unit tests for campaign gap detection and lost-revenue estimation."""

from datetime import date, datetime, timedelta

from email_insights.aggregation.periods import PeriodBucket
from email_insights.core.records import SendRecord
from email_insights.diagnostics import gaps


def _weeks(revenues):
    buckets = []
    for i, revenue in enumerate(revenues):
        start = date(2024, 1, 1) + timedelta(weeks=i)
        buckets.append(PeriodBucket(
            period_start=start,
            period_end=start + timedelta(days=7),
            label=f"W{i + 1}",
            total_revenue=revenue,
            campaign_revenue=revenue,
            campaign_send_count=1 if revenue > 0 else 0,
            is_complete=True,
        ))
    return buckets


class TestZeroSendRuns:
    """Tests for run detection."""

    def test_runs(self):
        runs = gaps.find_zero_send_runs(_weeks([1, 0, 1, 0, 0, 0, 1]))

        assert [(r['start_index'], r['length']) for r in runs] == [(1, 1), (3, 3)]

    def test_zero_revenue_with_sends_is_not_a_gap(self):
        week = _weeks([0])[0]
        week.campaign_send_count = 2

        assert not gaps.is_zero_send(week)
        assert gaps.is_zero_revenue(week)


class TestEstimateGapLoss:
    """Tests for the lost-revenue estimator."""

    def test_short_gaps_estimated(self):
        revenues = [1000.0] * 30
        revenues[10] = 0.0
        revenues[20] = revenues[21] = 0.0

        result = gaps.estimate_gap_loss(_weeks(revenues))

        assert not result['insufficient_history']
        assert result['estimated_lost_revenue'] == 3000.0
        assert result['zero_send_periods'] == 3
        assert result['longest_gap'] == 2
        assert result['deferred_periods'] == 0

    def test_long_gap_deferred(self):
        revenues = [1000.0] * 30
        for i in range(10, 15):
            revenues[i] = 0.0

        result = gaps.estimate_gap_loss(_weeks(revenues))

        assert result['estimated_lost_revenue'] == 0.0
        assert result['deferred_periods'] == 5

    def test_expected_revenue_capped(self):
        """A huge neighbour cannot push the estimate above the p90 cap."""
        revenues = [1000.0] * 30
        revenues[10] = 0.0
        revenues[9] = revenues[11] = 50_000.0
        revenues[8] = revenues[12] = 40_000.0

        result = gaps.estimate_gap_loss(_weeks(revenues))

        # neighbours median 45,000; p90 of the latest 26 non-zero weeks is 40,000
        assert result['estimated_lost_revenue'] == 40_000.0

    def test_insufficient_history(self):
        revenues = [1000.0] * 20
        revenues[5] = 0.0

        result = gaps.estimate_gap_loss(_weeks(revenues))

        assert result['insufficient_history']
        assert result['estimated_lost_revenue'] is None
        assert result['zero_send_periods'] == 1

    def test_too_few_nonzero_periods(self):
        revenues = [0.0] * 30
        for i in range(0, 30, 5):
            revenues[i] = 500.0

        result = gaps.estimate_gap_loss(_weeks(revenues))

        assert result['estimated_lost_revenue'] is None


class TestComputeCampaignGapsAndLosses:
    """Tests for the weekly consistency report."""

    def test_weekly_report(self):
        records = []
        for week in range(8):
            if week == 3:
                continue
            day = datetime(2024, 1, 2) + timedelta(weeks=week)
            records.append(SendRecord(sent_date=day, emails_sent=1000, revenue=0.0 if week == 5 else 400.0))
        records.append(SendRecord(sent_date=datetime(2024, 1, 3), emails_sent=500, revenue=10.0, channel='flow'))

        result = gaps.compute_campaign_gaps_and_losses(records, date(2024, 1, 1), date(2024, 2, 25))

        assert result['zero_campaign_send_periods'] == 1
        assert result['longest_zero_send_gap'] == 1
        assert result['pct_periods_with_campaigns_sent'] == 7 / 8 * 100
        assert result['low_effectiveness_campaigns'] == 1
        assert result['zero_revenue_periods'] == 1
        assert result['avg_campaigns_per_period'] == 7 / 8
        assert not result['all_periods_sent']
        assert result['insufficient_history_for_estimator']
        assert result['estimated_lost_revenue'] is None

    def test_no_complete_weeks(self):
        result = gaps.compute_campaign_gaps_and_losses([], date(2024, 1, 1), date(2024, 1, 3))

        assert result['pct_periods_with_campaigns_sent'] == 0.0
        assert result['estimated_lost_revenue'] is None
