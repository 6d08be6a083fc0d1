"""Unit tests for deliverability zones and sample-size rules."""

from datetime import datetime, timedelta

import pytest
from email_insights.core.records import SendRecord
from email_insights.diagnostics import deliverability


def _sends(count, emails=100, spam=0, bounces=0):
    return [SendRecord(sent_date=datetime(2024, 1, 1) + timedelta(days=i), emails_sent=emails,
                       spam_complaints_count=spam, bounces_count=bounces) for i in range(count)]


class TestRiskZone:
    """Tests for zone boundaries."""

    @pytest.mark.parametrize("spam,bounce,expected", [
        (0.05, 1.5, 'green'),
        (0.1, 0.0, 'yellow'),
        (0.0, 2.0, 'yellow'),
        (0.2, 3.0, 'yellow'),
        (0.21, 0.0, 'red'),
        (0.0, 3.1, 'red'),
    ])
    def test_zone_boundaries(self, spam, bounce, expected):
        assert deliverability.risk_zone(spam, bounce) == expected


class TestDeliverabilityPoints:
    """Tests for zone points and the low-volume adjustment."""

    @pytest.mark.parametrize("spam,points", [(0.05, 20.0), (0.15, 12.0), (0.5, 0.0)])
    def test_base_points(self, spam, points):
        result = deliverability.deliverability_points(spam, 0.0)

        assert result['points'] == points
        assert not result['low_volume_adjusted']

    def test_tiny_share_recovers_points(self):
        red = deliverability.deliverability_points(0.5, 0.0, send_share=0.001)
        yellow = deliverability.deliverability_points(0.15, 0.0, send_share=0.0025)

        assert red['low_volume_adjusted']
        assert red['points'] == pytest.approx(8.0)
        assert yellow['points'] == pytest.approx(14.0)

    def test_green_and_large_share_not_adjusted(self):
        assert not deliverability.deliverability_points(0.0, 0.0, send_share=0.001)['low_volume_adjusted']
        assert not deliverability.deliverability_points(0.5, 0.0, send_share=0.005)['low_volume_adjusted']


class TestLookback:
    """Tests for the optimal lookback and significance rules."""

    @pytest.mark.parametrize("sends,days,expected", [
        (100, 100, 250),
        (1000, 30, 14),
        (10, 100, 365),
        (0, 90, 365),
        (500, 0, 365),
    ])
    def test_optimal_lookback_days(self, sends, days, expected):
        assert deliverability.optimal_lookback_days(sends, days) == expected

    @pytest.mark.parametrize("sends,days,expected", [
        (300, 200, True),
        (300, 199, False),
        (249, 365, False),
    ])
    def test_significance(self, sends, days, expected):
        assert deliverability.has_statistical_significance(sends, days, 250) is expected


class TestMessages:
    """Tests for plain-language notes."""

    def test_green_has_no_message(self):
        assert deliverability.risk_message('green', 0.0, 0.0) is None

    def test_yellow_names_metrics(self):
        message = deliverability.risk_message('yellow', 0.12, 2.5)

        assert '(spam and bounce rates)' in message
        assert message.endswith('Monitor closely before scaling further.')

    def test_red_quotes_rates(self):
        message = deliverability.risk_message('red', 0.25, 1.0)

        assert 'spam at 0.25% exceed safe limits' in message
        assert 'bounce' not in message

    def test_unknown_zone(self):
        with pytest.raises(ValueError):
            deliverability.risk_message('orange', 0.0, 0.0)

    def test_insufficient_messages(self):
        assert '120' in deliverability.insufficient_data_message(120, 90, 365)
        assert 'at least 200 days' in deliverability.insufficient_data_message(400, 90, 200)


class TestAssessDeliverability:
    """Tests for the combined assessment."""

    def test_healthy_group(self):
        result = deliverability.assess_deliverability(_sends(30), days_in_range=30)

        assert result['emails_sent'] == 3000
        assert result['zone'] == 'green'
        assert result['lookback_days'] == 14
        assert result['significant']
        assert result['message'] is None

    def test_red_group_warns(self):
        result = deliverability.assess_deliverability(_sends(30, bounces=4), days_in_range=30)

        assert result['bounce_rate'] == pytest.approx(4.0)
        assert result['zone'] == 'red'
        assert result['points'] == 0
        assert 'bounce at 4.0%' in result['message']

    def test_small_group_is_insufficient(self):
        result = deliverability.assess_deliverability(_sends(2, spam=1), days_in_range=30, account_emails=1_000_000)

        assert result['zone'] == 'red'
        assert result['low_volume_adjusted']
        assert not result['significant']
        assert result['message'].startswith('Insufficient data for reliable analysis')

    def test_negative_days_rejected(self):
        with pytest.raises(ValueError):
            deliverability.assess_deliverability([], days_in_range=-1)
