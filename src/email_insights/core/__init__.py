"""Send records and core statistical methods."""

from email_insights.core import records, frequentist, robust

__all__ = ["records", "frequentist", "robust"]
