from __future__ import annotations

import dns.query
import dns.resolver
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from dnsping.store import Store
from helpers import FakeNetwork, FakeResolver


@pytest.fixture
def fake_network(monkeypatch) -> FakeNetwork:
    network = FakeNetwork()
    monkeypatch.setattr(dns.resolver, "Resolver", FakeResolver)
    monkeypatch.setattr(dns.query, "udp_with_fallback", network)
    return network


@pytest.fixture
def store() -> Store:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    s = Store(engine)
    s.ensure_schema()
    yield s
    s.close()
