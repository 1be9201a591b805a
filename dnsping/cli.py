"""
Command-line interface for dnsping.

Two programs share this module:
- dnsping: probes the top domains periodically and stores the results
- dnsping-query: reports stored time series and per-domain statistics

Both exit with status 1 on usage errors.
"""

import functools
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .models import (
    DEFAULT_DOMAIN_COUNT,
    DEFAULT_DOMAINS_FILE,
    DEFAULT_INTERVAL,
    DomainListError,
    StoreConfig,
    StoreError,
)
from .output import JSONOutput, RichConsoleOutput
from .query_engine import DNSProber
from .runner import ProbeRunner, handle_stop_signals
from .statistics import StatsAggregator
from .store import Store
from .workload import load_top_domains


logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Send package logs to stderr through rich."""
    package_logger = logging.getLogger("dnsping")

    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _print_help(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    click.echo(ctx.get_help())
    ctx.exit(1)


def help_option(f):
    """Help flag that exits with status 1."""
    return click.option(
        "-h", "--help",
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=_print_help,
        help="Show this message and exit.",
    )(f)


def store_options(f):
    """Connection options shared by both programs."""
    options = [
        click.option(
            "--driver",
            envvar="DNSPING_DB_DRIVER",
            default="sqlite",
            show_default=True,
            help="SQLAlchemy dialect+driver, e.g. mysql+pymysql or postgresql+psycopg2",
        ),
        click.option(
            "--user", "-u",
            envvar="DNSPING_DB_USER",
            help="Username for the database",
        ),
        click.option(
            "--password", "-p",
            envvar="DNSPING_DB_PASSWORD",
            help="Password for the database",
        ),
        click.option(
            "--server", "-s",
            envvar="DNSPING_DB_SERVER",
            default="localhost",
            show_default=True,
            help="Database server",
        ),
        click.option(
            "--port", "-P",
            envvar="DNSPING_DB_PORT",
            type=int,
            default=0,
            help="Database server port (default: driver default)",
        ),
        click.option(
            "--database", "-d",
            envvar="DNSPING_DB_NAME",
            default="dnsping",
            show_default=True,
            help="Database name (file name for sqlite)",
        ),
    ]

    for option in reversed(options):
        f = option(f)

    @functools.wraps(f)
    def wrapper(*args, driver, user, password, server, port, database, **kwargs):
        config = StoreConfig(
            driver=driver,
            user=user,
            password=password,
            server=server,
            port=port,
            database=database,
        )
        return f(*args, store_config=config, **kwargs)

    return wrapper


def _fail_with_usage(ctx: click.Context, message: str) -> None:
    click.echo(f"Error: {message}\n", err=True)
    click.echo(ctx.get_usage(), err=True)
    ctx.exit(1)


def _open_store(config: StoreConfig, clear: bool, domains: list[str]) -> Optional[Store]:
    """Connect, prepare tables and stats rows; None if the store is unusable."""
    try:
        store = Store.from_config(config)
        created = store.connect(create_missing=True)
    except StoreError as e:
        logger.warning("%s", e)
        logger.warning("data will not be saved in database")
        return None

    click.echo(f"\nConnected successfully to database {config.describe()}")
    if created:
        click.echo(f"Database {config.database} created and selected")
    else:
        click.echo(f"Database {config.database} selected (existed)")

    try:
        if clear:
            click.echo("Cleaning database tables - previous data will be lost")
            store.clear_all()

        logger.debug("creating DB tables if they don't exist")
        store.ensure_schema()

        logger.debug("Initializing stats table")
        for domain in domains:
            store.init_stats_row(domain)
    except StoreError as e:
        logger.warning("database setup failed: %s", e)
        logger.warning("data will not be saved in database")
        store.close()
        return None

    return store


@click.command(context_settings={"help_option_names": []})
@click.version_option(__version__)
@click.option(
    "--file", "-f", "filename",
    default=DEFAULT_DOMAINS_FILE,
    show_default=True,
    help="File with top domains (rank,name per line)",
)
@click.option(
    "--number", "-n",
    type=int,
    default=DEFAULT_DOMAIN_COUNT,
    show_default=True,
    help="Number of top domains",
)
@click.option(
    "--interval", "-i",
    type=int,
    default=DEFAULT_INTERVAL,
    show_default=True,
    help="Seconds between successive probes of each domain",
)
@click.option(
    "--count", "-c",
    type=int,
    default=-1,
    help="Number of probes for each domain (default: infinite)",
)
@store_options
@click.option(
    "--clear", "-C",
    is_flag=True,
    help="Clear database tables",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Verbose output",
)
@help_option
@click.pass_context
def probe(
    ctx: click.Context,
    filename: str,
    number: int,
    interval: int,
    count: int,
    store_config: StoreConfig,
    clear: bool,
    verbose: bool,
):
    """
    Track DNS resolution latency to top sites.

    Every round queries a random name below each domain through the
    local resolver and records the round-trip time.

    Examples:

    \b
      # Probe the top 10 domains every minute, forever
      dnsping -f top-1m.csv

    \b
      # Three rounds over 50 domains, stored in MySQL
      dnsping -n 50 -c 3 --driver mysql+pymysql -u dnsping -p secret
    """
    configure_logging(verbose)

    if number <= 0:
        number = DEFAULT_DOMAIN_COUNT
    if interval <= 0:
        interval = DEFAULT_INTERVAL

    click.echo(f"Reading top {number} domains from file: {filename}")
    times = "for ever" if count < 0 else f"for {count} times"
    click.echo(f"Probing each domain every {interval} seconds {times}")

    try:
        domain_list = load_top_domains(filename, number)
    except DomainListError as e:
        _fail_with_usage(ctx, str(e))

    store = _open_store(store_config, clear, domain_list.domains)

    runner = ProbeRunner(
        domains=domain_list.domains,
        prober=DNSProber(verbose=verbose),
        aggregator=StatsAggregator(store) if store is not None else None,
        interval=interval,
        count=count,
    )

    try:
        with handle_stop_signals(runner):
            runner.run()
    finally:
        if store is not None:
            store.close()
        click.echo("Exiting")

    ctx.exit(1)


@click.command(context_settings={"help_option_names": []})
@click.version_option(__version__)
@click.option(
    "--file", "-f", "filename",
    help="File with top domains to query",
)
@click.option(
    "--number", "-n",
    type=int,
    default=DEFAULT_DOMAIN_COUNT,
    show_default=True,
    help="Number of top domains to query from file",
)
@click.option(
    "--domain", "-D",
    help="Retrieve results for a specific domain",
)
@store_options
@click.option(
    "--timeseries", "-t",
    is_flag=True,
    help="Print full timeseries also",
)
@click.option(
    "--json", "as_json",
    is_flag=True,
    help="Output results as JSON to stdout",
)
@help_option
@click.pass_context
def query(
    ctx: click.Context,
    filename: Optional[str],
    number: int,
    domain: Optional[str],
    store_config: StoreConfig,
    timeseries: bool,
    as_json: bool,
):
    """
    Query the database for dnsping results.

    Without --file or --domain every domain in the database is reported.

    Examples:

    \b
      # Aggregate stats for one domain
      dnsping-query -D example.com

    \b
      # Stats and full time series for the top 20 domains
      dnsping-query -f top-1m.csv -n 20 -t
    """
    configure_logging()

    domains: Optional[list[str]] = None
    if filename:
        click.echo(f"Reading top {number} domains from file: {filename}", err=as_json)
        try:
            domains = load_top_domains(filename, number).domains
        except DomainListError as e:
            _fail_with_usage(ctx, str(e))
    elif domain:
        click.echo(f"Querying for domain: {domain}", err=as_json)
        domains = [domain]
    else:
        click.echo("Querying for all domains in database", err=as_json)

    try:
        store = Store.from_config(store_config, must_exist=True)
        store.connect()
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    try:
        samples = store.fetch_timeseries(domains) if timeseries else None
        stats = store.fetch_stats(domains)
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    finally:
        store.close()

    if as_json:
        click.echo(JSONOutput.format(stats, samples))
    else:
        RichConsoleOutput.print(stats, samples)


def _run(command: click.Command, prog_name: str, args: Optional[list[str]] = None) -> None:
    try:
        rv = command.main(args=args, prog_name=prog_name, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(1)
    except click.Abort:
        click.echo("Stopped", err=True)
        sys.exit(1)
    sys.exit(rv if isinstance(rv, int) else 0)


def main(args: Optional[list[str]] = None) -> None:
    """Entry point for the dnsping program."""
    _run(probe, "dnsping", args)


def query_main(args: Optional[list[str]] = None) -> None:
    """Entry point for the dnsping-query program."""
    _run(query, "dnsping-query", args)


if __name__ == "__main__":
    main()
