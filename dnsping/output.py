"""
Output formatting for stored dnsping results.

Provides two output formats:
- JSON: Machine-readable rows
- Human-readable: Rich terminal tables
"""

import json
from datetime import datetime
from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from .models import DomainStats, ProbeSample


def _format_ts(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


class JSONOutput:
    """JSON output formatter."""

    @staticmethod
    def format(
        stats: list[DomainStats],
        samples: Optional[list[ProbeSample]] = None,
        indent: int = 2,
    ) -> str:
        """
        Format stored rows as JSON.

        Args:
            stats: Aggregate rows to include
            samples: Time-series rows to include (omitted if None)
            indent: JSON indentation level

        Returns:
            JSON string
        """
        data: dict = {}

        if samples is not None:
            data["timeseries"] = [
                {
                    "domain": s.domain,
                    "ts": s.timestamp.isoformat() if s.timestamp else None,
                    "latency_ms": s.latency_ms,
                }
                for s in samples
            ]

        data["stats"] = [
            {
                "domain": row.domain,
                "avg_latency_ms": round(row.avg_latency, 3),
                "std_latency_ms": round(row.std_latency, 3),
                "probes": row.probes,
                "ts_first": row.ts_first.isoformat() if row.ts_first else None,
                "ts_last": row.ts_last.isoformat() if row.ts_last else None,
            }
            for row in stats
        ]

        return json.dumps(data, indent=indent)


class RichConsoleOutput:
    """Rich library console output with tables."""

    @staticmethod
    def timeseries_table(samples: list[ProbeSample]) -> Table:
        """Build the full time-series table."""
        table = Table(
            title="Full Timeseries",
            box=box.ROUNDED,
            header_style="bold magenta",
        )

        table.add_column("Domain", style="cyan")
        table.add_column("Timestamp")
        table.add_column("Latency (ms)", justify="right", style="green")

        for sample in samples:
            table.add_row(
                sample.domain,
                _format_ts(sample.timestamp),
                "-" if sample.latency_ms is None else str(sample.latency_ms),
            )

        return table

    @staticmethod
    def stats_table(stats: list[DomainStats]) -> Table:
        """Build the per-domain aggregate table."""
        table = Table(
            title="Aggregate stats per-domain",
            box=box.ROUNDED,
            header_style="bold magenta",
        )

        table.add_column("Domain", style="cyan")
        table.add_column("Avg (ms)", justify="right", style="green")
        table.add_column("Std (ms)", justify="right", style="yellow")
        table.add_column("Probes", justify="right")
        table.add_column("First")
        table.add_column("Last")

        for row in stats:
            table.add_row(
                row.domain,
                f"{row.avg_latency:.1f}",
                f"{row.std_latency:.1f}",
                str(row.probes),
                _format_ts(row.ts_first),
                _format_ts(row.ts_last),
            )

        return table

    @staticmethod
    def print(
        stats: list[DomainStats],
        samples: Optional[list[ProbeSample]] = None,
        console: Optional[Console] = None,
    ) -> None:
        """
        Print stored rows as tables.

        The time-series table is only printed when `samples` is given.
        """
        console = console or Console()

        if samples is not None:
            console.print()
            console.print(RichConsoleOutput.timeseries_table(samples))

        console.print()
        console.print(RichConsoleOutput.stats_table(stats))
        console.print()
