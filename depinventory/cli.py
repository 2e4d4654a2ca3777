"""CLI entry point: depinventory.

Usage:
    depinventory -i /path/to/repos                   # writes dependencies.csv
    depinventory -i /path/to/repos -o out/deps.csv -d
    depinventory -i /path/to/repos --concurrency 4 --no-install
"""

from __future__ import annotations

import asyncio
import sys

import click
from dotenv import load_dotenv

from depinventory.config import ScanConfig
from depinventory.core.logging import setup_logging, shutdown_logging
from depinventory.exceptions import InputPathError
from depinventory.scanner.models import ScanSummary
from depinventory.scanner.orchestrator import DependencyInventory
from depinventory.scanner.sink import CsvSink


def _print_summary(summary: ScanSummary) -> None:
    click.echo(f"Files walked: {summary.files_walked}")
    click.echo(f"Projects found: {summary.projects_found}")
    click.echo(f"  with dependencies: {summary.projects_with_dependencies}")
    click.echo(f"  empty: {summary.projects_empty}")
    click.echo(f"  skipped: {summary.projects_skipped}")
    click.echo(f"  failed: {summary.projects_failed}")
    click.echo(f"Dependencies written: {summary.dependencies_written}")
    for ecosystem, count in sorted(summary.by_ecosystem.items()):
        click.echo(f"  {ecosystem}: {count}")
    click.echo(f"Output: {summary.output}")


@click.command()
@click.option(
    "-i", "--input", "input_path", required=True, help="Directory to scan for projects"
)
@click.option(
    "-o", "--output", default="dependencies.csv", show_default=True, help="CSV output path"
)
@click.option("-d", "--debug", is_flag=True, help="Debug logging")
@click.option("--concurrency", type=click.IntRange(min=1), default=None,
              help="Projects extracted in parallel")
@click.option("--command-timeout", type=click.FloatRange(min=0, min_open=True),
              default=None,
              help="Seconds allowed per external command")
@click.option("--project-timeout", type=click.FloatRange(min=0), default=None,
              help="Seconds allowed per project (0 disables)")
@click.option("--no-install", is_flag=True, help="Skip install/build preparation steps")
@click.option("--log-format", type=click.Choice(["console", "json"]), default=None,
              help="Log renderer (stderr)")
def main(
    input_path: str,
    output: str,
    debug: bool,
    concurrency: int | None,
    command_timeout: float | None,
    project_timeout: float | None,
    no_install: bool,
    log_format: str | None,
) -> None:
    """Inventory NPM, Maven, Gradle and Composer dependencies under a directory."""
    load_dotenv()
    setup_logging(level="DEBUG" if debug else None, fmt=log_format)

    config = ScanConfig.from_env().with_overrides(
        concurrency=concurrency,
        command_timeout=command_timeout,
        project_timeout=project_timeout,
        run_install=False if no_install else None,
    )
    inventory = DependencyInventory(CsvSink(output), config)

    try:
        summary = asyncio.run(inventory.run(input_path))
    except InputPathError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        shutdown_logging()

    _print_summary(summary)


if __name__ == "__main__":
    main()
