"""SQLite database layer for time entries, app usage and pomodoro sessions."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence

from .models import (
    SOURCE_TYPES,
    ActivityKey,
    ActivityRecord,
    Category,
    Goal,
    GoalProgress,
)

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"
DATE_FMT = "%Y-%m-%d"

_TABLES: dict[str, str] = {
    "manual": "time_entries",
    "automatic": "app_usage",
    "pomodoro": "pomodoro_sessions",
}

# Activity field -> column, per source. Anything else is read-only for that source.
_EDITABLE_COLUMNS: dict[str, dict[str, str]] = {
    "manual": {
        "title": "task",
        "start_time": "start_time",
        "end_time": "end_time",
        "duration": "duration",
        "category_id": "category_id",
    },
    "automatic": {"duration": "duration", "category_id": "category_id"},
    "pomodoro": {"title": "task", "duration": "duration"},
}


def open_database(path: Path | str, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path | str, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements atomically; nested use joins the outer transaction."""
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    # category_id carries no foreign key: dangling references are reported as orphans.
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            color TEXT NOT NULL DEFAULT '#3B82F6'
        );

        CREATE TABLE IF NOT EXISTS time_entries (
            id INTEGER PRIMARY KEY,
            task TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT,
            duration INTEGER,
            category_id INTEGER
        );

        CREATE TABLE IF NOT EXISTS app_usage (
            id INTEGER PRIMARY KEY,
            app_name TEXT,
            window_title TEXT,
            domain TEXT,
            url TEXT,
            start_time TEXT NOT NULL,
            end_time TEXT,
            duration INTEGER,
            category_id INTEGER,
            is_browser INTEGER NOT NULL DEFAULT 0,
            is_idle INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS pomodoro_sessions (
            id INTEGER PRIMARY KEY,
            task TEXT,
            session_type TEXT,
            start_time TEXT NOT NULL,
            end_time TEXT,
            duration INTEGER,
            completed INTEGER,
            interrupted INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS productivity_goals (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            target_minutes INTEGER NOT NULL,
            period TEXT NOT NULL DEFAULT 'daily',
            active INTEGER NOT NULL DEFAULT 1
        );

        CREATE TABLE IF NOT EXISTS goal_progress (
            id INTEGER PRIMARY KEY,
            goal_id INTEGER NOT NULL REFERENCES productivity_goals(id) ON DELETE CASCADE,
            date TEXT NOT NULL,
            minutes INTEGER NOT NULL DEFAULT 0,
            achieved INTEGER NOT NULL DEFAULT 0
        );

        CREATE INDEX IF NOT EXISTS idx_time_entries_start_time
            ON time_entries(start_time);
        CREATE INDEX IF NOT EXISTS idx_app_usage_start_time
            ON app_usage(start_time);
        CREATE INDEX IF NOT EXISTS idx_pomodoro_start_time
            ON pomodoro_sessions(start_time);
        CREATE INDEX IF NOT EXISTS idx_goal_progress_date
            ON goal_progress(date);
        """
    )


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(DATETIME_FMT) if value is not None else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp; unparseable values come back as None."""
    if not value:
        return None
    try:
        return datetime.strptime(value, DATETIME_FMT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring malformed timestamp %r", value)
        return None


def insert_category(conn: sqlite3.Connection, name: str, color: str = "#3B82F6") -> int:
    cur = conn.execute("INSERT INTO categories (name, color) VALUES (?, ?)", (name, color))
    return int(cur.lastrowid)


def insert_time_entry(
    conn: sqlite3.Connection,
    task: str,
    start_time: datetime,
    end_time: Optional[datetime] = None,
    *,
    duration: Optional[int] = None,
    category_id: Optional[int] = None,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO time_entries (task, start_time, end_time, duration, category_id)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            task,
            format_timestamp(start_time),
            format_timestamp(end_time),
            duration,
            category_id,
        ),
    )
    return int(cur.lastrowid)


def insert_app_usage(
    conn: sqlite3.Connection,
    app_name: str,
    start_time: datetime,
    end_time: Optional[datetime] = None,
    *,
    duration: Optional[int] = None,
    window_title: Optional[str] = None,
    domain: Optional[str] = None,
    url: Optional[str] = None,
    category_id: Optional[int] = None,
    is_browser: bool = False,
    is_idle: bool = False,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO app_usage (
            app_name,
            window_title,
            domain,
            url,
            start_time,
            end_time,
            duration,
            category_id,
            is_browser,
            is_idle
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            app_name,
            window_title,
            domain,
            url,
            format_timestamp(start_time),
            format_timestamp(end_time),
            duration,
            category_id,
            1 if is_browser else 0,
            1 if is_idle else 0,
        ),
    )
    return int(cur.lastrowid)


def insert_pomodoro_session(
    conn: sqlite3.Connection,
    session_type: Optional[str],
    start_time: datetime,
    end_time: Optional[datetime] = None,
    *,
    task: Optional[str] = None,
    duration: Optional[int] = None,
    completed: Optional[bool] = True,
    interrupted: bool = False,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO pomodoro_sessions (
            task,
            session_type,
            start_time,
            end_time,
            duration,
            completed,
            interrupted
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            task,
            session_type,
            format_timestamp(start_time),
            format_timestamp(end_time),
            duration,
            None if completed is None else (1 if completed else 0),
            1 if interrupted else 0,
        ),
    )
    return int(cur.lastrowid)


def insert_goal(
    conn: sqlite3.Connection,
    name: str,
    target_minutes: int,
    *,
    period: str = "daily",
    active: bool = True,
) -> int:
    cur = conn.execute(
        "INSERT INTO productivity_goals (name, target_minutes, period, active) VALUES (?, ?, ?, ?)",
        (name, target_minutes, period, 1 if active else 0),
    )
    return int(cur.lastrowid)


def insert_goal_progress(
    conn: sqlite3.Connection, goal_id: int, day: date, minutes: int, achieved: bool
) -> int:
    cur = conn.execute(
        "INSERT INTO goal_progress (goal_id, date, minutes, achieved) VALUES (?, ?, ?, ?)",
        (goal_id, day.strftime(DATE_FMT), minutes, 1 if achieved else 0),
    )
    return int(cur.lastrowid)


def _optional_bool(value: Any) -> Optional[bool]:
    return None if value is None else bool(value)


def _time_entry_record(row: sqlite3.Row) -> ActivityRecord:
    return ActivityRecord(
        id=row["id"],
        source_type="manual",
        activity_type="time_entry",
        title=row["task"],
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
        duration=row["duration"],
        category_id=row["category_id"],
        category_name=row["category_name"],
    )


def _app_usage_record(row: sqlite3.Row) -> ActivityRecord:
    is_browser = bool(row["is_browser"])
    title = (row["domain"] or row["app_name"]) if is_browser else row["app_name"]
    return ActivityRecord(
        id=row["id"],
        source_type="automatic",
        activity_type="browser" if is_browser else "app",
        title=title or "",
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
        duration=row["duration"],
        category_id=row["category_id"],
        category_name=row["category_name"],
        app_name=row["app_name"],
        window_title=row["window_title"],
        domain=row["domain"],
        url=row["url"],
        is_idle=bool(row["is_idle"]),
        is_browser=is_browser,
    )


def _pomodoro_record(row: sqlite3.Row) -> ActivityRecord:
    is_focus = row["session_type"] == "focus"
    if is_focus:
        title = row["task"] or "Focus Session"
    else:
        title = f"{row['session_type'] or 'Unknown'} Break"
    return ActivityRecord(
        id=row["id"],
        source_type="pomodoro",
        activity_type="pomodoro_focus" if is_focus else "pomodoro_break",
        title=title,
        start_time=parse_timestamp(row["start_time"]),
        end_time=parse_timestamp(row["end_time"]),
        duration=row["duration"],
        session_type=row["session_type"],
        completed=_optional_bool(row["completed"]),
        interrupted=bool(row["interrupted"]),
    )


def fetch_time_entries(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ActivityRecord]:
    rows = conn.execute(
        """
        SELECT te.*, c.name AS category_name
        FROM time_entries te
        LEFT JOIN categories c ON te.category_id = c.id
        WHERE te.start_time >= ? AND te.start_time < ?
        ORDER BY te.start_time;
        """,
        (format_timestamp(start), format_timestamp(end)),
    )
    return [_time_entry_record(row) for row in rows]


def fetch_app_usage(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ActivityRecord]:
    rows = conn.execute(
        """
        SELECT au.*, c.name AS category_name
        FROM app_usage au
        LEFT JOIN categories c ON au.category_id = c.id
        WHERE au.start_time >= ? AND au.start_time < ?
        ORDER BY au.start_time;
        """,
        (format_timestamp(start), format_timestamp(end)),
    )
    return [_app_usage_record(row) for row in rows]


def fetch_pomodoro_sessions(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ActivityRecord]:
    rows = conn.execute(
        """
        SELECT *
        FROM pomodoro_sessions
        WHERE start_time >= ? AND start_time < ?
        ORDER BY start_time;
        """,
        (format_timestamp(start), format_timestamp(end)),
    )
    return [_pomodoro_record(row) for row in rows]


def update_activity(
    conn: sqlite3.Connection,
    activity_id: int,
    source_type: str,
    fields: dict[str, Any],
) -> bool:
    """Update editable fields of one activity; False when no row matched."""
    columns = _EDITABLE_COLUMNS.get(source_type)
    if columns is None:
        raise ValueError(f"Unknown source type: {source_type}")
    blocked = sorted(name for name in fields if name not in columns)
    if blocked:
        raise ValueError(
            f"Cannot edit non-editable fields for {source_type} activity: {', '.join(blocked)}"
        )
    if not fields:
        return False

    assignments: list[str] = []
    params: list[object] = []
    for name, value in fields.items():
        assignments.append(f"{columns[name]} = ?")
        params.append(format_timestamp(value) if isinstance(value, datetime) else value)
    params.append(activity_id)
    cur = conn.execute(
        f"UPDATE {_TABLES[source_type]} SET {', '.join(assignments)} WHERE id = ?",
        params,
    )
    return cur.rowcount > 0


def delete_activity(conn: sqlite3.Connection, activity_id: int, source_type: str) -> bool:
    table = _TABLES.get(source_type)
    if table is None:
        raise ValueError(f"Unknown source type: {source_type}")
    cur = conn.execute(f"DELETE FROM {table} WHERE id = ?", (activity_id,))
    return cur.rowcount > 0


class SQLiteStore:
    """Store backed by one SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get_unified_activities(
        self,
        start: datetime,
        end: datetime,
        source_types: Optional[Sequence[str]] = None,
    ) -> list[ActivityRecord]:
        wanted = set(source_types or SOURCE_TYPES)
        activities: list[ActivityRecord] = []
        if "manual" in wanted:
            activities.extend(fetch_time_entries(self._conn, start, end))
        if "automatic" in wanted:
            activities.extend(fetch_app_usage(self._conn, start, end))
        if "pomodoro" in wanted:
            activities.extend(fetch_pomodoro_sessions(self._conn, start, end))
        activities.sort(key=lambda record: record.start_time or datetime.min)
        return activities

    def update_activity(self, activity_id: int, source_type: str, fields: dict[str, Any]) -> bool:
        return update_activity(self._conn, activity_id, source_type, fields)

    def bulk_delete(self, keys: Iterable[ActivityKey]) -> dict[str, int]:
        deleted = 0
        failed = 0
        with self.transaction():
            for activity_id, source_type in keys:
                try:
                    removed = delete_activity(self._conn, activity_id, source_type)
                except ValueError:
                    logger.warning(
                        "Failed to delete activity %s (%s)", activity_id, source_type
                    )
                    removed = False
                if removed:
                    deleted += 1
                else:
                    failed += 1
        return {"deleted": deleted, "failed": failed}

    def get_categories(self) -> list[Category]:
        rows = self._conn.execute("SELECT id, name, color FROM categories ORDER BY id")
        return [Category(id=row["id"], name=row["name"], color=row["color"]) for row in rows]

    def get_active_goals(self) -> list[Goal]:
        rows = self._conn.execute(
            """
            SELECT id, name, target_minutes, period, active
            FROM productivity_goals
            WHERE active = 1
            ORDER BY id
            """
        )
        return [
            Goal(
                id=row["id"],
                name=row["name"],
                target_minutes=row["target_minutes"],
                period=row["period"],
                active=bool(row["active"]),
            )
            for row in rows
        ]

    def get_goal_progress(self, start: date, end: date) -> list[GoalProgress]:
        rows = self._conn.execute(
            """
            SELECT goal_id, date, minutes, achieved
            FROM goal_progress
            WHERE date >= ? AND date <= ?
            ORDER BY date
            """,
            (start.strftime(DATE_FMT), end.strftime(DATE_FMT)),
        )
        return [
            GoalProgress(
                goal_id=row["goal_id"],
                date=datetime.strptime(row["date"], DATE_FMT).date(),
                minutes=row["minutes"],
                achieved=bool(row["achieved"]),
            )
            for row in rows
        ]

    def transaction(self):
        return transaction(self._conn)
