"""Logtree Cloud: multi-tenant log ingestion and analytics.

Organizations send logs into slash-addressed folders.  The service resolves
folder paths, stores and searches logs, meters usage per billing cycle,
evaluates threshold rules, and computes log-volume statistics.
"""

__version__ = "0.3.0"
