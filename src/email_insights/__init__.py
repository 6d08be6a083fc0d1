"""
Email Insights - Statistically Gated Email Performance Analytics
================================================================

Turns per-send email records (campaigns and automated flows) into
decision-ready insights: revenue reliability, campaign gaps and lost revenue,
subject-line feature lift, send-day and send-volume recommendations.

Modules:
--------
- core: Send records, primitive statistical tests, robust summaries
- advanced: Multiple-testing correction
- aggregation: Weekly and monthly period buckets
- diagnostics: Revenue reliability and campaign gap analysis
- features: Subject-line lexicon and feature analysis
- decision: Narrated insights, send-day and send-volume guidance
- data: DataFrame loaders and analysis window selection
- pipelines: End-to-end account report

Example Usage:
--------------
>>> from email_insights.data import loaders, windows
>>> from email_insights.pipelines import run_account_report
>>>
>>> records = loaders.load_send_records(campaigns=campaigns_df, flows=flows_df)
>>> window = windows.compute_opportunity_window(records)
>>> report = run_account_report(records, random_state=42)
>>> print(report['reliability']['all']['reliability'])

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Expose key modules at package level for convenience
from email_insights.core import records, frequentist, robust
from email_insights.data import loaders, windows

__all__ = [
    "records",
    "frequentist",
    "robust",
    "loaders",
    "windows",
]
