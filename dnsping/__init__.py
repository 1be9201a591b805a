"""
dnsping - Tracking DNS performance to top sites.

Measures live resolution latency with cache-busting queries and keeps
per-domain aggregate statistics in a relational database.
"""

__version__ = "1.0.0"

from .models import DomainStats, ProbeSample, StoreConfig
from .query_engine import DNSProber
from .runner import ProbeRunner
from .statistics import StatisticsEngine, StatsAggregator
from .store import Store

__all__ = [
    "__version__",
    "DomainStats",
    "ProbeSample",
    "StoreConfig",
    "DNSProber",
    "ProbeRunner",
    "StatisticsEngine",
    "StatsAggregator",
    "Store",
]
