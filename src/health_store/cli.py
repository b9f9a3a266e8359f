"""CLI tools for importing export files and querying stored metrics."""

import argparse
import asyncio
import csv
import io
import json
import sys
from datetime import UTC, date, datetime, time
from pathlib import Path
from typing import Any

from .config import get_settings
from .dispatcher import IngestDispatcher, IngestEnvelopeError, load_payload
from .logging import setup_logging
from .store import HealthDatabase, MetricStore, QueryService, WorkoutStore
from .types import MetricRow

VALID_FORMATS = {"text", "json", "csv"}


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format."""
    return datetime.strptime(date_str, "%Y-%m-%d").date()


def _day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Expand a date range to the first and last instant in UTC."""
    if start is None or end is None:
        return None, None
    return (
        datetime.combine(start, time.min, tzinfo=UTC),
        datetime.combine(end, time.max, tzinfo=UTC),
    )


async def _import_export(path: Path) -> int:
    """Ingest one export file through the dispatcher; returns the HTTP-style status."""
    settings = get_settings()
    setup_logging(settings.app)

    payload = load_payload(path.read_text(encoding="utf-8"))

    database = HealthDatabase(settings.database)
    await database.connect()
    try:
        dispatcher = IngestDispatcher(
            metric_store=MetricStore(database, default_source=settings.app.default_source),
            workout_store=WorkoutStore(database),
        )
        try:
            response, status_code = await dispatcher.ingest(payload)
        except IngestEnvelopeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 500
    finally:
        await database.close()

    print(json.dumps(response.to_dict(), indent=2))
    return status_code


def import_export() -> None:
    """CLI entry point for importing an export file.

    Usage:
        health-store-import export.json

    Exits 0 when every part was saved, 2 on partial success, 1 otherwise.
    """
    parser = argparse.ArgumentParser(
        description="Ingest a Health Auto Export JSON file into the store"
    )
    parser.add_argument("path", type=Path, help="Export file ({\"data\": {...}})")
    args = parser.parse_args()

    if not args.path.is_file():
        print(f"Error: {args.path} does not exist", file=sys.stderr)
        sys.exit(1)

    try:
        status_code = asyncio.run(_import_export(args.path))
    except ValueError as e:
        print(f"Error: invalid JSON in {args.path}: {e}", file=sys.stderr)
        sys.exit(1)

    if status_code == 200:
        sys.exit(0)
    sys.exit(2 if status_code == 207 else 1)


def _format_value(value: Any) -> str:
    """Format a payload value for display."""
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def _output_text(rows: list[MetricRow], name: str) -> None:
    """Print rows one per line."""
    print(f"Metric: {name} | Records: {len(rows)}")
    print("---")
    if not rows:
        print("No data found.")
        return
    for row in rows:
        fields = " ".join(
            f"{key}={_format_value(value)}"
            for key, value in row["data"].items()
            if value is not None and key not in ("units", "metadata")
        )
        print(f"{row['date'][:16]}: {fields} [{row['source']}]")


def _output_csv(rows: list[MetricRow]) -> None:
    """Print rows as CSV with the payload as a JSON column."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["date", "name", "source", "data"])
    for row in rows:
        writer.writerow([row["date"], row["name"], row["source"], json.dumps(row["data"])])
    print(buf.getvalue(), end="")


async def _query_metrics(args: argparse.Namespace) -> None:
    """Fetch and print stored rows of one metric."""
    settings = get_settings()
    start, end = _day_bounds(args.start, args.end)

    database = HealthDatabase(settings.database)
    await database.connect()
    try:
        rows = await QueryService(database).metrics_in_range(args.name, start, end)
    finally:
        await database.close()

    if args.format == "json":
        print(json.dumps({"records": rows, "count": len(rows)}, indent=2))
    elif args.format == "csv":
        _output_csv(rows)
    else:
        _output_text(rows, args.name)


def query_cli() -> None:
    """CLI entry point for metric queries.

    Usage:
        health-store-query heart_rate --start 2024-01-01 --end 2024-01-07
        health-store-query step_count --format csv
    """
    parser = argparse.ArgumentParser(description="Print stored records of one metric")
    parser.add_argument("name", help="Metric name, e.g. heart_rate")
    parser.add_argument("--start", type=parse_date, default=None, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=parse_date, default=None, help="End date (YYYY-MM-DD)")
    parser.add_argument(
        "--format",
        default="text",
        choices=sorted(VALID_FORMATS),
        help="Output format (default: text)",
    )

    args = parser.parse_args()
    if (args.start is None) != (args.end is None):
        print("Error: --start and --end must be given together", file=sys.stderr)
        sys.exit(1)
    if args.start and args.start > args.end:
        print("Error: start date must be before or equal to end date", file=sys.stderr)
        sys.exit(1)

    asyncio.run(_query_metrics(args))
