"""Command-line interface for the activity analytics engine."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import typer

from .config import AnalyticsSettings
from .db import SQLiteStore, database_connection
from .paths import get_db_path
from .reporting import ReportPrinter, print_json
from .service import AnalyticsService, DataQualityService

app = typer.Typer(help="Data-quality checks and analytics over tracked activities.")
printer = ReportPrinter()

DB_OPTION = typer.Option(
    None, "--db", path_type=Path, help="Location of the activity SQLite database."
)
START_OPTION = typer.Option(None, "--start", help="Start date (YYYY-MM-DD). Defaults to today.")
END_OPTION = typer.Option(
    None, "--end", help="End date (YYYY-MM-DD), inclusive. Defaults to the start date."
)
JSON_OPTION = typer.Option(False, "--json", help="Print the raw result as JSON.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _range(start: Optional[str], end: Optional[str]) -> tuple[str, str]:
    start_day = start or date.today().isoformat()
    return start_day, end or start_day


def _output(result: Any, as_json: bool, render: Callable[[Any], None]) -> None:
    if as_json:
        print_json(result)
    else:
        render(result)


@contextmanager
def _data_quality(
    db_path: Optional[Path], settings: Optional[AnalyticsSettings] = None
) -> Iterator[DataQualityService]:
    with database_connection(db_path or get_db_path()) as conn:
        yield DataQualityService(SQLiteStore(conn), settings)


@contextmanager
def _analytics(db_path: Optional[Path]) -> Iterator[AnalyticsService]:
    with database_connection(db_path or get_db_path()) as conn:
        yield AnalyticsService(SQLiteStore(conn))


@app.command()
def report(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Print the data-quality report for a date range."""
    with _data_quality(db_path) as service:
        result = service.get_data_quality_report(*_range(start, end))
    _output(result, as_json, printer.print_quality_report)


@app.command()
def gaps(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    min_gap_minutes: float = typer.Option(
        5.0, "--min-gap", min=0.0, help="Smallest untracked interval to report, in minutes."
    ),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """List untracked intervals between activities."""
    with _data_quality(db_path) as service:
        result = service.detect_gaps(*_range(start, end), min_gap_minutes)
    _output(result, as_json, printer.print_gaps)


@app.command("gap-stats")
def gap_stats(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    min_gap_minutes: float = typer.Option(5.0, "--min-gap", min=0.0),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Summarize untracked time."""
    with _data_quality(db_path) as service:
        result = service.get_gap_statistics(*_range(start, end), min_gap_minutes)
    _output(result, as_json, printer.print_gap_statistics)


@app.command()
def duplicates(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    threshold: int = typer.Option(
        80, "--threshold", min=0, max=100, help="Minimum similarity (0-100) to report."
    ),
    timeout_seconds: Optional[float] = typer.Option(
        None, "--timeout", min=0.1, help="Stop duplicate detection after this many seconds."
    ),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Group activities that probably record the same work."""
    settings = AnalyticsSettings.from_options(
        similarity_threshold=threshold, duplicate_timeout_seconds=timeout_seconds
    )
    with _data_quality(db_path, settings) as service:
        result = service.detect_duplicates(*_range(start, end))
    _output(result, as_json, printer.print_duplicates)


@app.command()
def mergeable(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    max_gap_seconds: float = typer.Option(
        300.0, "--max-gap", min=0.0, help="Largest gap in seconds inside a merge group."
    ),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """List runs of same-kind activities that could be merged."""
    with _data_quality(db_path) as service:
        result = service.find_mergeable_groups(*_range(start, end), max_gap_seconds)
    _output(result, as_json, printer.print_mergeable)


@app.command()
def orphans(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """List activities whose category no longer exists."""
    with _data_quality(db_path) as service:
        result = service.find_orphaned_activities(*_range(start, end))
    if as_json:
        print_json(result)
    else:
        printer.print_activities(result, "No orphaned activities found.")


@app.command()
def validate(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Validate every activity in the range."""
    with _data_quality(db_path) as service:
        result = service.validate_activities_batch(*_range(start, end))
    _output(result, as_json, printer.print_validation)


@app.command()
def recalculate(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Rewrite stored durations that disagree with the timestamps."""
    with _data_quality(db_path) as service:
        result = service.recalculate_durations(*_range(start, end))
    _output(result, as_json, printer.print_recalculation)
    if not result.success:
        raise typer.Exit(code=1)


@app.command("zero-duration")
def zero_duration(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    remove: bool = typer.Option(False, "--remove", help="Delete the activities that are found."),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """List, and optionally delete, activities shorter than one second."""
    with _data_quality(db_path) as service:
        result = service.find_zero_duration_activities(*_range(start, end), remove)
    _output(result, as_json, printer.print_zero_duration)


@app.command()
def daily(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Per-day totals with category breakdown."""
    with _analytics(db_path) as service:
        result = service.get_daily_stats(*_range(start, end))
    _output(result, as_json, printer.print_daily_stats)


@app.command()
def hourly(
    days: int = typer.Option(30, "--days", min=1, help="Number of days to look back."),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Average tracked minutes per hour of day."""
    with _analytics(db_path) as service:
        result = service.get_hourly_patterns(days)
    _output(result, as_json, printer.print_hourly)


@app.command()
def heatmap(
    year: Optional[int] = typer.Option(None, "--year", help="Calendar year. Defaults to this year."),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Per-day intensity for a calendar year."""
    with _analytics(db_path) as service:
        result = service.get_heatmap(year)
    _output(result, as_json, printer.print_heatmap)


@app.command()
def weekly(
    week_offset: int = typer.Option(
        0, "--offset", max=0, help="Weeks back from the current week (0 = this week)."
    ),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Summary of one Sunday-to-Saturday week."""
    with _analytics(db_path) as service:
        result = service.get_weekly_summary(week_offset)
    _output(result, as_json, printer.print_weekly)


@app.command()
def trends(
    start: Optional[str] = START_OPTION,
    end: Optional[str] = END_OPTION,
    group_by: str = typer.Option("day", "--group-by", help="day, week or month."),
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Tracked minutes grouped by period."""
    if group_by not in ("day", "week", "month"):
        raise typer.BadParameter("must be day, week or month", param_hint="--group-by")
    with _analytics(db_path) as service:
        result = service.get_trends(*_range(start, end), group_by)
    _output(result, as_json, printer.print_trends)


@app.command()
def insights(
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Behavioral findings from the last 30 days."""
    with _analytics(db_path) as service:
        result = service.get_insights()
    _output(result, as_json, printer.print_insights)


@app.command()
def summary(
    db_path: Optional[Path] = DB_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Productivity score and headline numbers."""
    with _analytics(db_path) as service:
        result = service.get_summary()
        streak = service.get_goal_streak()
    if as_json:
        print_json({"summary": result, "goal_streak": streak})
    else:
        printer.print_summary(result, streak)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(8765, "--port", min=1, max=65535, help="TCP port for the API."),
    db_path: Optional[Path] = DB_OPTION,
    min_gap_minutes: float = typer.Option(5.0, "--min-gap", min=0.0),
    max_gap_seconds: float = typer.Option(300.0, "--max-gap", min=0.0),
    threshold: int = typer.Option(80, "--threshold", min=0, max=100),
    timeout_seconds: Optional[float] = typer.Option(None, "--duplicate-timeout", min=0.1),
) -> None:
    """Serve the HTTP API."""
    from .server_runner import run_server

    settings = AnalyticsSettings.from_options(
        min_gap_minutes=min_gap_minutes,
        merge_max_gap_seconds=max_gap_seconds,
        similarity_threshold=threshold,
        duplicate_timeout_seconds=timeout_seconds,
    )
    run_server(host=host, port=port, db_path=db_path or get_db_path(), settings=settings)
