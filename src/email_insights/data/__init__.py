"""DataFrame loaders and analysis window selection."""

from email_insights.data import loaders, windows

__all__ = ["loaders", "windows"]
