"""
Profile directory crawler.

Harvests listing pages and profile detail pages into CSV files, with a
blocking-aware retry layer and a reconciliation step between the
"current" and "stored" listing files.
"""

__version__ = "1.0.0"
