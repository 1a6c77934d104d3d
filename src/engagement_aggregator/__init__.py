"""
Aggregation of per-period engagement samples into comparable, chart-ready time series.
"""

import importlib.metadata

__version__ = importlib.metadata.version("engagement-aggregator")
