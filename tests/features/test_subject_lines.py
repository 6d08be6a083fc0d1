"""Unit tests for subject-line feature analysis."""

from datetime import datetime, timedelta

import pytest
from email_insights.core.records import SendRecord
from email_insights.features import subject_lines


def _campaign(i, subject, emails=1000, opens=0, clicks=0, revenue=0.0, tags=()):
    return SendRecord(
        sent_date=datetime(2024, 1, 1) + timedelta(days=i),
        emails_sent=emails, unique_opens=opens, unique_clicks=clicks, revenue=revenue,
        subject=subject, segment_tags=tags,
    )


def _feature_by_key(analysis, key):
    return next(f for f in analysis['categories'] if f['key'] == key)


class TestAggregate:
    """Tests for metric aggregation."""

    def test_rates_in_percent(self):
        records = [_campaign(0, "a", opens=250, clicks=50), _campaign(1, "b", opens=150, clicks=30)]

        agg = subject_lines.aggregate(records, 'open_rate')
        assert agg['value'] == pytest.approx(20.0)
        assert subject_lines.aggregate(records, 'click_to_open_rate')['value'] == pytest.approx(20.0)

    def test_revenue_per_email_in_currency(self):
        records = [_campaign(0, "a", revenue=120.0), _campaign(1, "b", revenue=80.0)]

        assert subject_lines.aggregate(records, 'revenue_per_email')['value'] == pytest.approx(0.1)


class TestSegments:
    """Tests for segment filtering."""

    def test_filter_and_list(self):
        records = [_campaign(0, "a", tags=["vip"]), _campaign(1, "b", tags=["vip", " "]), _campaign(2, "c")]

        assert len(subject_lines.filter_by_segment(records, 'vip')) == 2
        assert len(subject_lines.filter_by_segment(records, subject_lines.ALL_SEGMENTS)) == 3
        assert subject_lines.unique_segments(records) == ['vip']


class TestComputeSubjectAnalysis:
    """Tests for feature lift and reliability gating."""

    def test_z_test_reliable_feature(self):
        records = [_campaign(i, "Free gift inside", opens=400) for i in range(20)]
        records += [_campaign(20 + i, "Studio notes", opens=200) for i in range(80)]

        analysis = subject_lines.compute_subject_analysis(records, 'open_rate')
        free = _feature_by_key(analysis, 'free')

        assert analysis['baseline']['value'] == pytest.approx(24.0)
        assert free['method'] == 'z'
        assert free['reliable']
        assert free['adjusted_p_value'] < 0.05
        assert free['lift_vs_baseline'] == pytest.approx((40 - 24) / 24 * 100)

    def test_sparse_cells_fall_back_to_fisher(self):
        """Expected minority cell of 3 must use Fisher's exact test."""
        records = []
        for i in range(40):
            records.append(_campaign(i, "Last chance: ends tonight", emails=40, opens=1 if i < 6 else 0))
        for i in range(160):
            records.append(_campaign(40 + i, "Notes from the studio", emails=30, opens=1 if i < 6 else 0))

        analysis = subject_lines.compute_subject_analysis(records, 'open_rate')
        deadline = _feature_by_key(analysis, 'deadline')

        assert deadline['volume_eligible']
        assert deadline['lift_vs_baseline'] > 0
        assert deadline['method'] == 'fisher'
        assert deadline['p_value'] is not None
        assert deadline['adjusted_p_value'] >= deadline['p_value']

    def test_low_volume_feature_not_tested(self):
        records = [_campaign(i, "Free gift inside", opens=400) for i in range(4)]
        records += [_campaign(4 + i, "Studio notes", opens=200) for i in range(60)]

        free = _feature_by_key(subject_lines.compute_subject_analysis(records, 'open_rate'), 'free')

        assert not free['volume_eligible']
        assert free['method'] == 'none'
        assert not free['reliable']

    def test_revenue_per_email_bootstrap(self):
        records = [_campaign(i, "Free gift inside", revenue=500.0) for i in range(20)]
        records += [_campaign(20 + i, "Studio notes", revenue=100.0) for i in range(80)]

        analysis = subject_lines.compute_subject_analysis(records, 'revenue_per_email', random_state=42)
        free = _feature_by_key(analysis, 'free')

        assert free['method'] == 'bootstrap'
        assert free['reliable']
        assert free['ci_low'] > 0
        assert free['adjusted_p_value'] is None

    def test_length_bins_in_order(self):
        records = [_campaign(i, "x" * 20) for i in range(5)] + [_campaign(5 + i, "y" * 60) for i in range(5)]

        analysis = subject_lines.compute_subject_analysis(records, 'open_rate')

        assert [b['key'] for b in analysis['length_bins']] == ['0-30', '51-70']

    def test_reuse_tracks_first_and_last(self):
        records = [
            _campaign(0, "Weekly picks", opens=300),
            _campaign(7, "Weekly picks", opens=200),
            _campaign(3, "One-off", opens=100),
        ]

        reuse = subject_lines.compute_subject_analysis(records, 'open_rate')['reuse']

        assert len(reuse) == 1
        assert reuse[0]['occurrences'] == 2
        assert reuse[0]['change'] == pytest.approx(-10.0)

    def test_flows_ignored(self):
        records = [_campaign(0, "Studio notes", opens=100)]
        records.append(SendRecord(sent_date=datetime(2024, 1, 2), emails_sent=5000, unique_opens=4000,
                                  subject="Welcome", channel='flow'))

        analysis = subject_lines.compute_subject_analysis(records, 'open_rate')

        assert analysis['baseline']['count_campaigns'] == 1

    def test_unknown_metric(self):
        with pytest.raises(ValueError, match="metric"):
            subject_lines.compute_subject_analysis([], 'bounce_rate')
