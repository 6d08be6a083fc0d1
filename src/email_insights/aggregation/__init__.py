"""Period bucketing of send records."""

from email_insights.aggregation import periods

__all__ = ["periods"]
