"""
Relational persistence for probe samples and per-domain statistics.

Schema:
- timeseries: domain | ts | latency
- stats:      domain | avg_latency | std_latency | probes | ts_first | ts_last

All statements are built with SQLAlchemy Core, so domain names are always
bound as parameters.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional

import numpy as np
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    inspect,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from .models import (
    MAX_DOMAIN_LENGTH,
    Aggregate,
    DomainStats,
    ProbeSample,
    StoreConfig,
    StoreConnectError,
    StoreError,
)
from .statistics import StatisticsEngine


logger = logging.getLogger(__name__)

metadata = MetaData()


timeseries = Table(
    "timeseries",
    metadata,
    Column("domain", String(MAX_DOMAIN_LENGTH), nullable=False),
    Column("ts", DateTime, nullable=False),
    Column("latency", Integer, nullable=True),
    Index("idx_timeseries_domain", "domain"),
)


stats = Table(
    "stats",
    metadata,
    Column("domain", String(MAX_DOMAIN_LENGTH), primary_key=True),
    Column("avg_latency", Float, nullable=True),
    Column("std_latency", Float, nullable=True),
    Column("probes", Integer, nullable=True),
    Column("ts_first", DateTime, nullable=True),
    Column("ts_last", DateTime, nullable=True),
)


def _stats_from_row(row) -> DomainStats:
    return DomainStats(
        domain=row.domain,
        avg_latency=float(row.avg_latency or 0.0),
        std_latency=float(row.std_latency or 0.0),
        probes=int(row.probes or 0),
        ts_first=row.ts_first,
        ts_last=row.ts_last,
    )


# MySQL ER_BAD_DB_ERROR
MYSQL_UNKNOWN_DATABASE = 1049


def _sqlite_file_exists(url: URL) -> bool:
    """In-memory databases always count as present."""
    if url.database in (None, "", ":memory:"):
        return True
    return Path(url.database).exists()


def _is_unknown_database(error: SQLAlchemyError) -> bool:
    """Whether a connect error means the server lacks the named database."""
    if not isinstance(error, DBAPIError):
        return False

    args = getattr(error.orig, "args", ())
    if args and args[0] == MYSQL_UNKNOWN_DATABASE:
        return True

    # psycopg2: FATAL:  database "dnsping" does not exist
    message = str(error.orig)
    return "database" in message and "does not exist" in message


class Store:
    """
    Persistence layer backed by any SQLAlchemy-supported database.

    Operations run in their own transaction unless called inside
    `transaction()`, in which case they share its connection and
    commit or roll back together.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._conn: Optional[Connection] = None

    @classmethod
    def from_config(cls, config: StoreConfig, must_exist: bool = False) -> "Store":
        """
        Create a store for the given connection parameters.

        Args:
            config: Connection parameters
            must_exist: Refuse a SQLite file that is not there yet, so
                read-only callers never create one

        Raises:
            StoreConnectError: If the driver is unusable or the file is missing
        """
        url = config.url()
        if must_exist and config.is_sqlite and not _sqlite_file_exists(url):
            raise StoreConnectError(f"database {config.describe()} does not exist")

        try:
            engine = create_engine(url)
        except (SQLAlchemyError, ImportError) as e:
            raise StoreConnectError(
                f"cannot use database {config.describe()}: {e}"
            ) from e
        return cls(engine)

    def connect(self, create_missing: bool = False) -> bool:
        """
        Verify the database is reachable.

        Args:
            create_missing: Create the database on the server when it
                reports that the database is unknown

        Returns:
            True if the database was created by this call

        Raises:
            StoreConnectError: If no connection can be opened
        """
        url = self.engine.url
        created = url.get_backend_name() == "sqlite" and not _sqlite_file_exists(url)

        try:
            with self.engine.connect():
                pass
        except SQLAlchemyError as e:
            if not (create_missing and _is_unknown_database(e)):
                raise StoreConnectError(f"database connection failed: {e}") from e
            logger.debug("database %s is unknown, creating it", url.database)
            self._create_database()
            created = True
            try:
                with self.engine.connect():
                    pass
            except SQLAlchemyError as retry_error:
                raise StoreConnectError(
                    f"database connection failed: {retry_error}"
                ) from retry_error

        logger.debug("connected to %s", url.render_as_string(hide_password=True))
        return created

    def _create_database(self) -> None:
        """Issue CREATE DATABASE through a connection to the server itself."""
        url = self.engine.url
        dialect = self.engine.dialect
        name = dialect.identifier_preparer.quote(url.database)

        if dialect.name == "postgresql":
            # PostgreSQL always connects to some database and has no IF NOT EXISTS
            server_url = url.set(database="postgres")
            statement = f"CREATE DATABASE {name}"
        else:
            # URL.set treats None as unchanged
            server_url = url._replace(database=None)
            statement = f"CREATE DATABASE IF NOT EXISTS {name}"

        try:
            server = create_engine(server_url, isolation_level="AUTOCOMMIT")
            try:
                with server.connect() as conn:
                    conn.execute(text(statement))
            finally:
                server.dispose()
        except (SQLAlchemyError, ImportError) as e:
            raise StoreConnectError(
                f"cannot create database {url.database}: {e}"
            ) from e

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Run the enclosed store operations as one transaction.

        Raises:
            StoreError: If any statement fails; the transaction is rolled back
        """
        if self._conn is not None:
            yield self._conn
            return

        try:
            with self.engine.begin() as conn:
                self._conn = conn
                try:
                    yield conn
                finally:
                    self._conn = None
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    def ensure_schema(self) -> None:
        """Create both tables if they do not exist."""
        with self.transaction() as conn:
            for table in metadata.sorted_tables:
                exists = inspect(conn).has_table(table.name)
                table.create(conn, checkfirst=True)
                logger.debug(
                    "table %s %s", table.name, "existed" if exists else "created"
                )

    def clear_all(self) -> None:
        """Drop and recreate both tables; all history is lost."""
        with self.transaction() as conn:
            metadata.drop_all(conn, checkfirst=True)
            metadata.create_all(conn)

    def init_stats_row(self, domain: str) -> bool:
        """
        Insert a zero-valued stats row for `domain` unless one exists.

        Existing rows keep the data of previous runs.

        Returns:
            True if a row was created, False if one already existed
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(stats).values(
                        domain=domain,
                        avg_latency=0.0,
                        std_latency=0.0,
                        probes=0,
                        ts_first=None,
                        ts_last=None,
                    )
                )
        except IntegrityError:
            logger.debug("stats for domain %s exists in db", domain)
            return False
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

        logger.debug("stats for domain %s initialized", domain)
        return True

    def append_sample(self, sample: ProbeSample) -> None:
        """Record a measurement in the time series."""
        with self.transaction() as conn:
            conn.execute(
                insert(timeseries).values(
                    domain=sample.domain,
                    ts=sample.timestamp,
                    latency=sample.latency_ms,
                )
            )

    def read_stats(self, domain: str) -> Optional[DomainStats]:
        """Return the stats row for `domain`, or None if absent."""
        with self.transaction() as conn:
            row = conn.execute(
                select(stats).where(stats.c.domain == domain)
            ).first()
        return _stats_from_row(row) if row is not None else None

    def latencies(self, domain: str) -> np.ndarray:
        """All recorded latencies for `domain`."""
        with self.transaction() as conn:
            values = conn.execute(
                select(timeseries.c.latency).where(
                    timeseries.c.domain == domain,
                    timeseries.c.latency.is_not(None),
                )
            ).scalars().all()
        return np.array(values, dtype=float)

    def compute_aggregate(self, domain: str) -> Aggregate:
        """Mean and population standard deviation over the full history."""
        return StatisticsEngine.calculate_aggregate(self.latencies(domain))

    def write_stats(self, row: DomainStats) -> None:
        """Replace the stats fields for the row's domain."""
        with self.transaction() as conn:
            conn.execute(
                update(stats)
                .where(stats.c.domain == row.domain)
                .values(
                    avg_latency=row.avg_latency,
                    std_latency=row.std_latency,
                    probes=row.probes,
                    ts_first=row.ts_first,
                    ts_last=row.ts_last,
                )
            )

    def fetch_timeseries(
        self,
        domains: Optional[Iterable[str]] = None,
    ) -> list[ProbeSample]:
        """
        Time-series rows, oldest first.

        A database without the table yields no rows.

        Args:
            domains: Restrict to these domains (all domains if None)
        """
        query = select(timeseries).order_by(timeseries.c.ts, timeseries.c.domain)
        if domains is not None:
            query = query.where(timeseries.c.domain.in_(list(domains)))

        with self.transaction() as conn:
            if not inspect(conn).has_table(timeseries.name):
                return []
            rows = conn.execute(query).all()

        return [
            ProbeSample(domain=r.domain, timestamp=r.ts, latency_ms=r.latency)
            for r in rows
        ]

    def fetch_stats(
        self,
        domains: Optional[Iterable[str]] = None,
    ) -> list[DomainStats]:
        """
        Stats rows ordered by domain.

        A database without the table yields no rows.

        Args:
            domains: Restrict to these domains (all domains if None)
        """
        query = select(stats).order_by(stats.c.domain)
        if domains is not None:
            query = query.where(stats.c.domain.in_(list(domains)))

        with self.transaction() as conn:
            if not inspect(conn).has_table(stats.name):
                return []
            rows = conn.execute(query).all()

        return [_stats_from_row(r) for r in rows]
