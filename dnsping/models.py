"""
Data models for dnsping.

Defines structured types for probe samples, per-domain statistics,
store configuration, and the error taxonomy shared by both programs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.engine import URL


# Maximum length of a DNS name in presentation format
MAX_DOMAIN_LENGTH = 253

DEFAULT_DOMAINS_FILE = "top-domains.csv"
DEFAULT_DOMAIN_COUNT = 10
DEFAULT_INTERVAL = 60  # seconds


class DNSPingError(Exception):
    """Base class for dnsping errors."""


class DomainListError(DNSPingError):
    """The domain list file is missing or holds no domains."""


class StoreError(DNSPingError):
    """A store operation failed."""


class StoreConnectError(StoreError):
    """The store could not be reached."""


class MissingStatsRow(StoreError):
    """A domain has samples but no stats row to update."""

    def __init__(self, domain: str):
        super().__init__(f"no stats row for domain {domain}")
        self.domain = domain


class ProbeError(DNSPingError):
    """A probe produced no measurement."""

    def __init__(self, domain: str, message: str):
        super().__init__(message)
        self.domain = domain


class ResolverUnavailable(ProbeError):
    """No local recursive resolver could be configured."""


class NoResponse(ProbeError):
    """None of the configured nameservers answered."""


@dataclass(frozen=True)
class ProbeSample:
    """One successful latency measurement."""
    domain: str
    timestamp: datetime
    latency_ms: int

    # Diagnostics, never persisted
    qname: Optional[str] = field(default=None, compare=False)
    answer_exists: bool = field(default=False, compare=False)


@dataclass
class DomainStats:
    """Aggregated statistics row for a domain."""
    domain: str
    avg_latency: float = 0.0
    std_latency: float = 0.0
    probes: int = 0
    ts_first: Optional[datetime] = None
    ts_last: Optional[datetime] = None

    @property
    def has_samples(self) -> bool:
        """Check if the row has been updated from at least one probe."""
        return self.probes > 0 and self.ts_first is not None


@dataclass(frozen=True)
class Aggregate:
    """Exact aggregate over a domain's full sample history."""
    mean: float
    stddev: float
    count: int


@dataclass
class DomainList:
    """Ordered domains read from a ranked list."""
    domains: list[str]
    requested: int

    @property
    def is_partial(self) -> bool:
        """Fewer domains were available than requested."""
        return len(self.domains) < self.requested

    def __len__(self) -> int:
        return len(self.domains)


@dataclass
class StoreConfig:
    """Connection parameters for the relational store."""
    driver: str = "sqlite"
    user: Optional[str] = None
    password: Optional[str] = None
    server: Optional[str] = None
    port: Optional[int] = None
    database: str = "dnsping"

    @property
    def is_sqlite(self) -> bool:
        return self.driver.split("+", 1)[0] == "sqlite"

    def url(self) -> URL:
        """Build the SQLAlchemy URL for this configuration."""
        if self.is_sqlite:
            database = self.database
            if database != ":memory:" and "." not in database.rsplit("/", 1)[-1]:
                database = f"{database}.db"
            return URL.create(self.driver, database=database)

        return URL.create(
            self.driver,
            username=self.user or None,
            password=self.password or None,
            host=self.server or None,
            port=self.port or None,
            database=self.database,
        )

    def describe(self) -> str:
        """Connection target without credentials."""
        return self.url().render_as_string(hide_password=True)
