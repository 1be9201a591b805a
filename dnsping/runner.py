"""
Probe loop for dnsping.

Probes every domain once per round, strictly in list order, and waits a
fixed interval between rounds. The interval is measured from the end of
one round to the start of the next; time spent probing is not subtracted.
"""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence

from .models import DEFAULT_INTERVAL, MissingStatsRow, ProbeError, StoreError
from .query_engine import DNSProber
from .statistics import StatsAggregator


logger = logging.getLogger(__name__)

STOP_SIGNALS = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGQUIT")
    if hasattr(signal, name)
)

# Type for per-round callback
RoundCallback = Callable[[int], None]


class ProbeRunner:
    """
    Runs probing rounds over a fixed domain list.

    The runner owns its domain list for the whole run and releases it on
    every exit path. Stopping is cooperative: `stop()` sets a flag that is
    checked between probes and wakes the inter-round wait.
    """

    def __init__(
        self,
        domains: Sequence[str],
        prober: DNSProber,
        aggregator: Optional[StatsAggregator] = None,
        interval: int = DEFAULT_INTERVAL,
        count: Optional[int] = None,
    ):
        """
        Initialize the runner.

        Args:
            domains: Domains to probe, in order
            prober: Prober issuing the DNS queries
            aggregator: Where samples are recorded (None keeps nothing)
            interval: Seconds to wait between rounds
            count: Number of rounds (None or negative runs forever)
        """
        self.domains: tuple[str, ...] = tuple(domains)
        self.prober = prober
        self.aggregator = aggregator
        self.interval = interval if interval > 0 else DEFAULT_INTERVAL
        self.count = count if count is not None and count >= 0 else None
        self.rounds_completed = 0
        self._stop = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Request the loop to end after the current probe."""
        self._stop.set()

    def _more_rounds(self) -> bool:
        return self.count is None or self.rounds_completed < self.count

    def probe_domain(self, domain: str) -> bool:
        """
        Probe one domain and record the result.

        Failures are logged and never propagate.

        Returns:
            True if a sample was measured
        """
        try:
            sample = self.prober.probe(domain)
        except ProbeError as e:
            logger.error("%s", e)
            return False

        if self.aggregator is None:
            return True

        try:
            self.aggregator.update(sample)
        except MissingStatsRow as e:
            logger.warning(
                "cannot retrieve stats for domain %s: %s", domain, e
            )
        except StoreError as e:
            logger.error("could not store result for domain %s: %s", domain, e)

        return True

    def run_round(self, number: int) -> int:
        """
        Probe every domain once.

        Returns:
            Number of successful probes in the round
        """
        logger.info("Starting probe %d", number)
        successes = 0

        for domain in self.domains:
            if self.stopped:
                break
            if self.probe_domain(domain):
                successes += 1

        logger.info("Finished probe %d", number)
        return successes

    def run(self, round_callback: Optional[RoundCallback] = None) -> int:
        """
        Run rounds until the count is reached or the runner is stopped.

        Args:
            round_callback: Called with the round number after each round

        Returns:
            Number of completed rounds
        """
        try:
            while self._more_rounds() and not self.stopped:
                self.run_round(self.rounds_completed + 1)
                self.rounds_completed += 1

                if round_callback:
                    round_callback(self.rounds_completed)

                if self._more_rounds():
                    self._stop.wait(self.interval)
        finally:
            self.domains = ()

        return self.rounds_completed


@contextmanager
def handle_stop_signals(runner: ProbeRunner) -> Iterator[None]:
    """Route termination signals to `runner.stop()` while the block runs."""
    def _handler(signum, frame):
        logger.debug("received signal %d", signum)
        runner.stop()

    previous = {}
    for signum in STOP_SIGNALS:
        previous[signum] = signal.signal(signum, _handler)

    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
