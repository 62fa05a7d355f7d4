#!/usr/bin/env python3
"""
Vitals Ingest CLI.

Load Apple Health exports and workout routes into the local database.

Usage:
    vitals init-db                      # Create the database schema
    vitals import alice                 # Import <data-path>/alice/apple-health/
    vitals import alice --skip-workout-routes
    vitals routes alice ./workout-routes
    vitals stats                        # Row counts per table
    vitals history alice                # Recent import phases
"""

import argparse
import logging
import sys
from pathlib import Path

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import get_settings
from .db.database import HealthDatabase
from .importers import import_health_data, import_workout_routes
from .utils.log_sanitizer import install_log_sanitizer

console = Console()


def get_status_color(status: str) -> str:
    """Get rich color for an import status."""
    colors = {
        "success": "green",
        "partial": "yellow",
        "failed": "red",
    }
    return colors.get(status, "white")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    install_log_sanitizer()


def cmd_init_db(args, db: HealthDatabase):
    """Create the schema (idempotent)."""
    console.print()
    console.print(Panel("[bold]Vitals - Database[/bold]"))
    console.print(f"[green]Database ready at {db.db_path}[/green]")
    console.print()


def cmd_import(args, db: HealthDatabase):
    """Import a user's Apple Health folder."""
    settings = get_settings()
    data_path = Path(args.data_path) if args.data_path else settings.data_path

    console.print()
    console.print(Panel(f"[bold]Vitals - Import {args.username}[/bold]"))
    console.print(f"Reading from: {data_path / args.username / 'apple-health'}")
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Importing...", total=None)
        summary = import_health_data(
            args.username,
            data_path=data_path,
            db=db,
            settings=settings,
            skip_apple_health=args.skip_apple_health,
            skip_workout_routes=args.skip_workout_routes,
        )
        progress.update(task, completed=True)

    table = Table(title="Import Results", box=box.ROUNDED)
    table.add_column("Phase", style="cyan")
    table.add_column("Imported", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Status")
    for result in summary.results:
        color = get_status_color(result.status)
        table.add_row(
            result.source_type,
            f"{result.records_imported:,}",
            str(len(result.errors)),
            f"[{color}]{result.status}[/{color}]",
        )
    console.print(table)
    console.print()

    for error in summary.errors[:10]:
        console.print(f"[red]- {error}[/red]")
    if len(summary.errors) > 10:
        console.print(f"[red]... and {len(summary.errors) - 10} more[/red]")

    if summary.success:
        console.print(f"[green]Imported {summary.total_records:,} records.[/green]")
    else:
        console.print(f"[yellow]Finished with {len(summary.errors)} errors.[/yellow]")
        sys.exit(1)
    console.print()


def cmd_routes(args, db: HealthDatabase):
    """Match a directory of GPX files to already-imported workouts."""
    settings = get_settings()
    user = db.get_or_create_user(args.username)

    result = import_workout_routes(db, user.id, Path(args.directory), settings)
    db.record_import(result.to_record(user.id))

    details = result.details
    console.print()
    table = Table(title="Workout Routes", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Processed", str(details.get("routes_processed", 0)))
    table.add_row("Linked", str(details.get("linked_to_workouts", 0)))
    table.add_row("Unlinked", str(details.get("unlinked", 0)))
    table.add_row("Errors", str(len(result.errors)))
    console.print(table)
    console.print()


def cmd_stats(args, db: HealthDatabase):
    """Show row counts per table."""
    stats = db.get_stats()

    console.print()
    table = Table(title="Database Statistics", box=box.ROUNDED)
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, value in stats.items():
        if name == "db_path":
            continue
        table.add_row(name, f"{value:,}")
    console.print(table)
    console.print(f"Database: {stats['db_path']}")
    console.print()


def cmd_history(args, db: HealthDatabase):
    """Show recent import phases for a user."""
    user = db.get_or_create_user(args.username)
    history = db.get_import_history(user.id, limit=args.limit)

    console.print()
    if not history:
        console.print(f"No imports recorded for {args.username}.")
        console.print()
        return

    table = Table(title=f"Import History: {args.username}", box=box.ROUNDED)
    table.add_column("When")
    table.add_column("Source", style="cyan")
    table.add_column("Imported", justify="right")
    table.add_column("Status")
    for record in history:
        color = get_status_color(record.status)
        table.add_row(
            record.imported_at or "",
            record.source_type,
            f"{record.records_imported or 0:,}",
            f"[{color}]{record.status}[/{color}]",
        )
    console.print(table)
    console.print()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Vitals - Apple Health ingestion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vitals init-db
  vitals import alice --data-path ./health-data
  vitals routes alice ./export/apple-health/workout-routes
  vitals stats
  vitals history alice
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", type=str, help="Database path (default: VITALS_DB_PATH)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create the database schema")

    import_p = subparsers.add_parser("import", help="Import a user's Apple Health data")
    import_p.add_argument("username", help="Owner of the imported data")
    import_p.add_argument("--data-path", type=str, help="Root folder holding <username>/apple-health/")
    import_p.add_argument("--skip-apple-health", action="store_true", help="Skip export.xml")
    import_p.add_argument("--skip-workout-routes", action="store_true", help="Skip GPX routes")

    routes_p = subparsers.add_parser("routes", help="Match GPX route files to workouts")
    routes_p.add_argument("username", help="Owner of the workouts")
    routes_p.add_argument("directory", help="Folder of .gpx files")

    subparsers.add_parser("stats", help="Show database statistics")

    history_p = subparsers.add_parser("history", help="Show import history")
    history_p.add_argument("username", help="Owner of the imports")
    history_p.add_argument("--limit", type=int, default=20, help="Rows to show")

    args = parser.parse_args()

    settings = get_settings()
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    if not args.command:
        parser.print_help()
        return

    # Initialize database
    db = HealthDatabase(args.db or settings.db_path)

    # Route to appropriate command
    if args.command == "init-db":
        cmd_init_db(args, db)
    elif args.command == "import":
        cmd_import(args, db)
    elif args.command == "routes":
        cmd_routes(args, db)
    elif args.command == "stats":
        cmd_stats(args, db)
    elif args.command == "history":
        cmd_history(args, db)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
