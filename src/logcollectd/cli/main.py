# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main CLI entry point for logcollectd.
"""

import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..config import Config, parse_duration
from ..processing.server import CollectorServer, CollectorStartupError, setup_logging

console = Console(stderr=True)
logger = logging.getLogger(__name__)


class DurationType(click.ParamType):
    """Seconds, or a number with an s/m/h/d/w suffix."""

    name = "duration"

    def convert(self, value, param, ctx):
        try:
            return parse_duration(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


DURATION = DurationType()


def print_stats(server: CollectorServer) -> None:
    """Print pipeline counters as a table."""
    table = Table(title="logcollectd summary")
    table.add_column("Counter", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in server.get_stats().items():
        table.add_row(name.replace("_", " "), "-" if value is None else str(value))
    console.print(table)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="logcollectd")
@click.option(
    "-d", "--db-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Database directory (must exist) [default: ./db]"
)
@click.option(
    "-p", "--port",
    type=click.IntRange(0, 65535),
    default=None,
    help="UDP port to listen on [default: 514 as root, else 5140]"
)
@click.option(
    "--host",
    default=None,
    help="Address to bind [default: 0.0.0.0]"
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    default=False,
    help="Enable verbose logging"
)
@click.option(
    "--compress-age",
    type=DURATION,
    default=None,
    help="Compress database files older than this (e.g. 604800, 7d, 12h) [default: 7d]"
)
@click.option(
    "--compress-interval",
    type=DURATION,
    default=None,
    help="Time between compaction sweeps [default: 1h]"
)
@click.option(
    "--compressor",
    type=click.Choice(["lzma", "xz"]),
    default=None,
    help="Compression backend [default: lzma]"
)
@click.option(
    "--config", "config_file",
    envvar="LOGCOLLECTD_CONFIG",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML configuration file"
)
def cli(
    db_dir: Optional[str],
    port: Optional[int],
    host: Optional[str],
    verbose: bool,
    compress_age: Optional[int],
    compress_interval: Optional[int],
    compressor: Optional[str],
    config_file: Optional[str],
):
    """
    Collect UDP log messages into hourly SQLite files.

    Messages are stored in DB_DIR/YYYYMMDDHH.sqlite3 and files older than
    the retention age are compressed to .sqlite3.xz.

    Examples:
        logcollectd -d /var/lib/logcollectd -v
        logcollectd -d ./db -p 5514 --compress-age 3d
    """
    config = Config(config_path=config_file)

    # Command line flags override file and environment
    if db_dir is not None:
        config.db_dir = Path(db_dir)
    if port is not None:
        config.port = port
    if host is not None:
        config.host = host
    if verbose:
        config.verbose = True
    if compress_age is not None:
        config.compress_age = compress_age
    if compress_interval is not None:
        config.compress_interval = compress_interval
    if compressor is not None:
        config.compressor = compressor

    setup_logging("DEBUG" if config.verbose else "INFO")

    errors = config.validate()
    if errors:
        for error in errors:
            console.print(f"[red]Configuration error:[/red] {error}")
        sys.exit(1)

    console.print(f"[bold green]logcollectd[/bold green] version {__version__}")
    if config.verbose:
        for key, value in config.to_dict().items():
            logger.debug(f"{key}: {value}")

    server = CollectorServer(config)

    def signal_handler(sig, frame):
        logger.info("Received shutdown signal")
        server.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        server.start()
    except CollectorStartupError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    try:
        while not server.wait(1.0):
            pass
    finally:
        server.stop()

    print_stats(server)


def main():
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("LOGCOLLECTD_DEBUG"):
            console.print_exception()
        else:
            console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
