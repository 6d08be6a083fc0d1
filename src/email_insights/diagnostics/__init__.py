"""Revenue reliability, campaign gap and deliverability diagnostics."""

from email_insights.diagnostics import deliverability, gaps, reliability

__all__ = ["deliverability", "gaps", "reliability"]
