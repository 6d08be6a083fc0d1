"""Unit tests for send volume guidance."""

from datetime import date, datetime, timedelta

import pytest
from email_insights.core.records import SendRecord
from email_insights.decision import volume

START = date(2024, 1, 1)
END = date(2024, 3, 31)


def _weekly_campaigns(weeks, revenue_fn, unsub_fn=lambda emails: 0, channel='campaign'):
    records = []
    for w in range(weeks):
        emails = 1000 * (w + 1)
        records.append(SendRecord(
            sent_date=datetime(2024, 1, 2) + timedelta(weeks=w),
            emails_sent=emails,
            revenue=revenue_fn(emails),
            unsubscribes_count=unsub_fn(emails),
            channel=channel,
        ))
    return records


class TestCorrelationToScore:
    """Tests for the discrete score mapping."""

    @pytest.mark.parametrize("r,expected", [
        (None, 0), (0.45, 2), (0.9, 2), (0.2, 1), (0.19, 0), (-0.2, -1), (-0.44, -1), (-0.5, -2),
    ])
    def test_mapping(self, r, expected):
        assert volume.correlation_to_score(r) == expected


class TestComputeSendVolumeGuidance:
    """Tests for the send-more / send-less rule."""

    def test_send_more(self):
        records = _weekly_campaigns(10, lambda emails: 0.1 * emails)

        result = volume.compute_send_volume_guidance(records, 'campaigns', START, END)

        assert result['status'] == 'send-more'
        assert result['period_type'] == 'weekly'
        assert result['sample_size'] == 10
        assert result['revenue_score'] == 2
        assert result['risk_score'] == 0
        assert result['correlations']['volume_vs_revenue']['r'] == pytest.approx(1.0)
        assert result['correlations']['volume_vs_unsubs']['r'] is None
        assert result['message'] == volume.STATUS_MESSAGES['campaigns']['send-more']

    def test_send_less(self):
        records = _weekly_campaigns(10, lambda emails: 100.0, unsub_fn=lambda emails: emails * emails // 1_000_000)

        result = volume.compute_send_volume_guidance(records, 'campaigns', START, END)

        assert result['risk_score'] == 2
        assert result['revenue_score'] == 0
        assert result['status'] == 'send-less'

    def test_only_harmful_risk_counts(self):
        """Unsubscribe rate falling as volume grows is not a risk."""
        records = _weekly_campaigns(10, lambda emails: 0.1 * emails, unsub_fn=lambda emails: 20)

        result = volume.compute_send_volume_guidance(records, 'campaigns', START, END)

        assert result['correlations']['volume_vs_unsubs']['r'] < 0
        assert result['risk_score'] == 0
        assert result['status'] == 'send-more'

    def test_keep_as_is(self):
        records = _weekly_campaigns(10, lambda emails: 100.0)

        result = volume.compute_send_volume_guidance(records, 'campaigns', START, END)

        assert result['status'] == 'keep-as-is'

    def test_monthly_fallback(self):
        records = [
            SendRecord(sent_date=datetime(2024, month, 10), emails_sent=1000 * month, revenue=50.0 * month)
            for month in (1, 2, 3, 4)
        ]

        result = volume.compute_send_volume_guidance(records, 'campaigns', START, date(2024, 4, 30))

        assert result['period_type'] == 'monthly'
        assert result['sample_size'] == 4

    def test_insufficient(self):
        records = _weekly_campaigns(2, lambda emails: 100.0)

        result = volume.compute_send_volume_guidance(records, 'campaigns', START, END)

        assert result['status'] == 'insufficient'
        assert result['period_type'] is None
        assert result['sample_size'] == 0
        assert result['correlations']['volume_vs_bounces'] == {'r': None, 'n': 0}
        assert result['message'] == volume.INSUFFICIENT_MESSAGES['campaigns']

    def test_channel_isolation(self):
        records = _weekly_campaigns(10, lambda emails: 0.1 * emails)

        result = volume.compute_send_volume_guidance(records, 'flows', START, END)

        assert result['status'] == 'insufficient'
        assert result['channel'] == 'flows'

    def test_flows_channel(self):
        records = _weekly_campaigns(10, lambda emails: 0.1 * emails, channel='flow')

        result = volume.compute_send_volume_guidance(records, 'flows', START, END)

        assert result['status'] == 'send-more'
        assert result['message'] == volume.STATUS_MESSAGES['flows']['send-more']

    def test_unknown_channel(self):
        with pytest.raises(ValueError, match="channel"):
            volume.compute_send_volume_guidance([], 'sms', START, END)
