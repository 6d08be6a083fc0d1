"""Unit tests for the send record model."""

from datetime import date, datetime

import pytest
from email_insights.core.records import (
    Channel,
    SendRecord,
    campaigns_only,
    flows_only,
    safe_divide,
)


class TestSafeDivide:
    """Tests for guarded division."""

    def test_zero_denominator(self):
        assert safe_divide(5, 0) == 0.0

    def test_regular_division(self):
        assert safe_divide(3, 4) == 0.75


class TestSendRecord:
    """Tests for SendRecord validation and derived rates."""

    def test_rates(self):
        rec = SendRecord(
            sent_date=datetime(2024, 3, 4, 9, 30),
            emails_sent=1000, unique_opens=400, unique_clicks=40,
            total_orders=8, revenue=250.0, unsubscribes_count=2,
            spam_complaints_count=1, bounces_count=5,
        )

        assert rec.open_rate == pytest.approx(0.40)
        assert rec.click_rate == pytest.approx(0.04)
        assert rec.click_to_open_rate == pytest.approx(0.10)
        assert rec.conversion_rate == pytest.approx(0.008)
        assert rec.revenue_per_email == pytest.approx(0.25)
        assert rec.unsubscribe_rate == pytest.approx(0.002)
        assert rec.spam_rate == pytest.approx(0.001)
        assert rec.bounce_rate == pytest.approx(0.005)

    def test_zero_emails_rates_are_zero(self):
        rec = SendRecord(sent_date=datetime(2024, 3, 4))

        assert rec.open_rate == 0.0
        assert rec.revenue_per_email == 0.0
        assert rec.click_to_open_rate == 0.0

    def test_date_promoted_to_datetime(self):
        rec = SendRecord(sent_date=date(2024, 3, 4), emails_sent=10)

        assert isinstance(rec.sent_date, datetime)
        assert rec.day == date(2024, 3, 4)

    def test_negative_counter_rejected(self):
        with pytest.raises(ValueError, match="unique_opens must be non-negative"):
            SendRecord(sent_date=datetime(2024, 3, 4), unique_opens=-1)

    def test_negative_revenue_rejected(self):
        with pytest.raises(ValueError, match="revenue must be non-negative"):
            SendRecord(sent_date=datetime(2024, 3, 4), revenue=-0.01)

    def test_bad_date_rejected(self):
        with pytest.raises(ValueError, match="sent_date"):
            SendRecord(sent_date="2024-03-04")

    def test_subject_falls_back_to_name(self):
        rec = SendRecord(sent_date=datetime(2024, 3, 4), name="  Spring Launch ")

        assert rec.subject_text == "Spring Launch"

    def test_channel_coerced_and_split(self):
        camp = SendRecord(sent_date=datetime(2024, 3, 4), segment_tags=["vip"])
        flow = SendRecord(sent_date=datetime(2024, 3, 4), channel="flow")

        assert flow.channel is Channel.FLOW
        assert camp.segment_tags == frozenset({"vip"})
        assert campaigns_only([camp, flow]) == [camp]
        assert flows_only([camp, flow]) == [flow]
