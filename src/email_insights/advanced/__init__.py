"""Multiple-testing correction for feature families."""

from email_insights.advanced import multiple_testing

__all__ = ["multiple_testing"]
