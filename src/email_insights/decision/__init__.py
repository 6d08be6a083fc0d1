"""Narrated insights and send-day / send-frequency / send-volume recommendations."""

from email_insights.decision import narrator, day_of_week, frequency, volume

__all__ = ["narrator", "day_of_week", "frequency", "volume"]
