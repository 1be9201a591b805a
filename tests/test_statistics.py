from __future__ import annotations

import math
from datetime import datetime

import pytest

from dnsping.models import Aggregate, DomainStats
from dnsping.statistics import StatisticsEngine
from helpers import make_sample


def test_aggregate_uses_population_stddev() -> None:
    aggregate = StatisticsEngine.calculate_aggregate([10, 20, 30])

    assert aggregate.mean == pytest.approx(20.0)
    assert aggregate.stddev == pytest.approx(math.sqrt(200 / 3))
    assert aggregate.stddev == pytest.approx(8.165, abs=1e-3)
    assert aggregate.count == 3


def test_aggregate_of_single_sample_has_zero_stddev() -> None:
    aggregate = StatisticsEngine.calculate_aggregate([42])

    assert aggregate == Aggregate(mean=42.0, stddev=0.0, count=1)


def test_aggregate_of_empty_history_is_zero() -> None:
    assert StatisticsEngine.calculate_aggregate([]) == Aggregate(0.0, 0.0, 0)


def test_apply_sample_sets_first_timestamp_once() -> None:
    fresh = DomainStats(domain="a.com")
    first = make_sample("a.com", 10, second=1)

    row = StatisticsEngine.apply_sample(fresh, Aggregate(10.0, 0.0, 1), first)
    assert row.ts_first == first.timestamp
    assert row.ts_last == first.timestamp

    later = make_sample("a.com", 30, second=9)
    row = StatisticsEngine.apply_sample(row, Aggregate(20.0, 10.0, 2), later)
    assert row.ts_first == first.timestamp
    assert row.ts_last == later.timestamp
    assert row.probes == 2


def test_apply_sample_keeps_first_timestamp_of_earlier_runs() -> None:
    earlier = datetime(2020, 1, 1)
    previous = DomainStats(domain="a.com", probes=4, ts_first=earlier, ts_last=earlier)

    row = StatisticsEngine.apply_sample(previous, Aggregate(1.0, 0.0, 5), make_sample("a.com", 1))

    assert row.ts_first == earlier
