"""Subject-line features and their measured lift."""

from email_insights.features import lexicon, subject_lines

__all__ = ["lexicon", "subject_lines"]
