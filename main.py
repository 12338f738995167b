#!/usr/bin/env python3
"""
Hemeroteca - Feed Archive
=========================

Main application entry point with CLI interface.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py run-pass                  # One pass over the due feeds
    python main.py run                       # Keep polling feeds
    python main.py report --start 2024-01-01 --output report.csv
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from hemeroteca.config.settings import get_settings
from hemeroteca.database.connection import DatabaseConnection
from hemeroteca.database.models import ensure_utc
from hemeroteca.database.schema import DatabaseSchema
from hemeroteca.processing.pipeline import IngestionPipeline
from hemeroteca.scheduler.feed_scheduler import FeedScheduler, read_feed_sources
from hemeroteca.storage.archive_store import ArchiveStore
from hemeroteca.storage.export import export_csv
from hemeroteca.storage.feed_repository import FeedSourceRepository
from hemeroteca.utils.exceptions import HemerotecaError, handle_exception
from hemeroteca.utils.logging import configure_application_logging

console = Console()
logger = logging.getLogger(__name__)

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def _setup(ctx):
    """Load settings and configure logging once per invocation."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get("debug") else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _build_scheduler(settings):
    """Wire database, archive, pipeline and scheduler."""
    DatabaseSchema(settings.database.path).create_tables()
    db = DatabaseConnection(settings.database.path, settings.database.pool_size)
    store = ArchiveStore(db)
    pipeline = IngestionPipeline(store, settings=settings)
    scheduler = FeedScheduler(FeedSourceRepository(db), pipeline, settings)
    return db, pipeline, scheduler


def _print_pass_summary(result) -> None:
    table = Table(title="Pass Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    for key, value in result.summary().items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))

    console.print(table)

    for error in result.errors:
        console.print(f"  [yellow]⚠️  {error}[/yellow]")


@click.group(invoke_without_command=True)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, debug):
    """Hemeroteca - feed archive with similarity-based deduplication."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and the feeds file."""
    console.print("[bold blue]🔧 Checking Hemeroteca Configuration[/bold blue]")

    try:
        settings = get_settings()
    except HemerotecaError as e:
        console.print(f"[bold red]❌ Configuration error: {e.user_message}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    all_passed = True

    table.add_row("Database", "✅ Valid", f"Path: {settings.database.path}")
    table.add_row(
        "Logging", "✅ Valid",
        f"Level: {settings.get_effective_log_level()}, File: {settings.logging.file_path}",
    )
    table.add_row(
        "Deduplication", "✅ Valid",
        f"Algorithm: {settings.dedup.algorithm.value}, threshold: {settings.dedup.duplicate_threshold}",
    )

    try:
        sources = read_feed_sources(
            settings.ingestion.feeds_file, settings.ingestion.default_fetch_interval_minutes
        )
        if sources:
            table.add_row("Feeds", "✅ Valid", f"{len(sources)} sources in {settings.ingestion.feeds_file}")
        else:
            table.add_row("Feeds", "❌ Invalid", f"No feed URLs in {settings.ingestion.feeds_file}")
            all_passed = False
    except HemerotecaError as e:
        table.add_row("Feeds", "❌ Invalid", e.user_message)
        all_passed = False

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing Hemeroteca Database[/bold blue]")

    settings = _setup(ctx)
    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if not schema.verify_schema():
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)

    db = DatabaseConnection(settings.database.path, settings.database.pool_size)
    try:
        info = db.get_database_info()
    finally:
        db.close_all_connections()

    console.print("[bold green]✅ Database initialized successfully![/bold green]")

    info_table = Table(title="Database Information")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Database Path", settings.database.path)
    info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
    for table_name, count in info["table_counts"].items():
        info_table.add_row(table_name, str(count))
    console.print(info_table)


@cli.command()
@click.option("--feeds-file", type=click.Path(dir_okay=False), help="Override the feeds file")
@click.pass_context
def run_pass(ctx, feeds_file):
    """Run one ingestion pass over the feeds that are due."""
    settings = _setup(ctx)
    console.print("[bold blue]📡 Running ingestion pass[/bold blue]")

    async def run():
        db, pipeline, scheduler = _build_scheduler(settings)
        try:
            scheduler.load_sources(feeds_file)
            pipeline.initialize()
            return await scheduler.run_once()
        finally:
            db.close_all_connections()

    try:
        result = asyncio.run(run())
    except HemerotecaError as e:
        console.print(f"[bold red]❌ Pass aborted: {e.user_message}[/bold red]")
        logger.error(f"Pass aborted: {e}", extra=e.to_dict())
        sys.exit(1)

    _print_pass_summary(result)


@cli.command()
@click.option("--feeds-file", type=click.Path(dir_okay=False), help="Override the feeds file")
@click.option("--poll-seconds", default=60.0, show_default=True, help="Seconds between schedule checks")
@click.pass_context
def run(ctx, feeds_file, poll_seconds):
    """Keep running passes as feeds become due."""
    settings = _setup(ctx)
    console.print("[bold blue]🔁 Starting Hemeroteca scheduler (Ctrl+C to stop)[/bold blue]")

    async def run_loop():
        db, pipeline, scheduler = _build_scheduler(settings)
        try:
            scheduler.load_sources(feeds_file)
            pipeline.initialize()
            await scheduler.run_forever(poll_seconds)
        finally:
            db.close_all_connections()

    try:
        asyncio.run(run_loop())
    except HemerotecaError as e:
        console.print(f"[bold red]❌ Scheduler stopped: {e.user_message}[/bold red]")
        logger.error(f"Scheduler stopped: {e}", extra=e.to_dict())
        sys.exit(1)


@cli.command()
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), help="Inclusive start (UTC)")
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), help="Exclusive end (UTC)")
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False), help="CSV file to write")
@click.pass_context
def report(ctx, start, end, output):
    """Export archived articles in a date range as CSV."""
    settings = _setup(ctx)

    DatabaseSchema(settings.database.path).create_tables()
    db = DatabaseConnection(settings.database.path, settings.database.pool_size)
    try:
        articles = ArchiveStore(db).query_by_date_range(ensure_utc(start), ensure_utc(end))
    finally:
        db.close_all_connections()

    count = export_csv(articles, output)
    console.print(f"[bold green]✅ Exported {count} articles to {output}[/bold green]")


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Hemeroteca interrupted by user[/yellow]")
        sys.exit(130)
    except HemerotecaError as e:
        console.print(f"\n[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)
    except Exception as e:
        error = handle_exception(e, logger, "cli")
        console.print(f"\n[bold red]❌ {error.user_message}[/bold red]")
        sys.exit(1)
