"""
End-to-end report pipelines.

Available pipelines:
- account_report: Every insight card for one account over its opportunity window
"""

# Lazy imports so importing the package does not pull in every analysis module

__all__ = [
    'run_account_report',
    'report_cache_key',
]


def __getattr__(name: str):
    """
    Lazy import pipeline functions on first access.

    Raises
    ------
    AttributeError
        If the requested attribute doesn't exist
    """
    if name == 'run_account_report':
        from email_insights.pipelines.account_report import run_account_report
        return run_account_report
    elif name == 'report_cache_key':
        from email_insights.pipelines.account_report import report_cache_key
        return report_cache_key
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
