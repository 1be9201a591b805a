"""
Statistical analysis for dnsping measurements.

Aggregates are always exact over a domain's full sample history:
- Mean latency
- Population standard deviation (divisor = sample count)
- Probe count and first/last sample timestamps
"""

import logging
from typing import Sequence, Union

import numpy as np

from .models import Aggregate, DomainStats, MissingStatsRow, ProbeSample


logger = logging.getLogger(__name__)


class StatisticsEngine:
    """Calculates aggregate statistics from latency histories."""

    @staticmethod
    def calculate_aggregate(
        latencies: Union[Sequence[float], np.ndarray],
    ) -> Aggregate:
        """
        Calculate mean and population standard deviation.

        Args:
            latencies: Every recorded latency for a domain, in milliseconds

        Returns:
            Aggregate (all zero for an empty history)
        """
        values = np.asarray(latencies, dtype=float)
        if values.size == 0:
            return Aggregate(mean=0.0, stddev=0.0, count=0)

        return Aggregate(
            mean=float(np.mean(values)),
            stddev=float(np.std(values)),
            count=int(values.size),
        )

    @staticmethod
    def apply_sample(
        previous: DomainStats,
        aggregate: Aggregate,
        sample: ProbeSample,
    ) -> DomainStats:
        """
        Build the stats row that follows `previous` once `sample` is recorded.

        The first-sample timestamp is set once and then kept; the
        last-sample timestamp always follows the newest sample.
        """
        ts_first = previous.ts_first if previous.has_samples else sample.timestamp

        return DomainStats(
            domain=previous.domain,
            avg_latency=aggregate.mean,
            std_latency=aggregate.stddev,
            probes=aggregate.count,
            ts_first=ts_first,
            ts_last=sample.timestamp,
        )


class StatsAggregator:
    """Records samples and keeps each domain's stats row current."""

    def __init__(self, store):
        """
        Args:
            store: Store holding the time series and stats tables
        """
        self.store = store

    def update(self, sample: ProbeSample) -> DomainStats:
        """
        Append a sample and refresh the domain's stats row.

        The append and the stats update run in a single transaction, and
        the probe count is taken from the stored samples, so the two
        tables cannot drift apart.

        Args:
            sample: Successful probe measurement

        Returns:
            The updated stats row

        Raises:
            MissingStatsRow: If the domain has no stats row (the sample
                is still recorded)
            StoreError: If the store failed; nothing is recorded
        """
        domain = sample.domain
        logger.debug(
            "updating DB timeseries and stats for domain %s with latency %d",
            domain, sample.latency_ms,
        )

        with self.store.transaction():
            self.store.append_sample(sample)

            previous = self.store.read_stats(domain)
            if previous is None:
                updated = None
            else:
                logger.debug(
                    "Previous stats for domain %s: avg_latency=%f std_latency=%f probes=%d",
                    domain, previous.avg_latency, previous.std_latency, previous.probes,
                )
                aggregate = self.store.compute_aggregate(domain)
                updated = StatisticsEngine.apply_sample(previous, aggregate, sample)
                self.store.write_stats(updated)

        if updated is None:
            raise MissingStatsRow(domain)

        logger.debug(
            "Updating stats for domain %s: new avg_latency=%f new std_latency=%f probes=%d",
            domain, updated.avg_latency, updated.std_latency, updated.probes,
        )
        return updated
