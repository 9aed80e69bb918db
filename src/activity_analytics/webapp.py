"""FastAPI application that exposes the data-quality and analytics operations."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import AnalyticsSettings
from .db import SQLiteStore, database_connection
from .paths import get_db_path
from .reporting import to_jsonable
from .service import AnalyticsService, DataQualityService

logger = logging.getLogger(__name__)


class ActivityRef(BaseModel):
    id: int
    source_type: Literal["manual", "automatic", "pomodoro"]

    model_config = ConfigDict(extra="forbid")


class MergePayload(BaseModel):
    start: str
    end: str
    activities: list[ActivityRef] = Field(min_length=2)
    strategy: Literal["longest", "earliest", "latest"] = "longest"

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[AnalyticsSettings] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or AnalyticsSettings()

    app = FastAPI(title="Activity Analytics", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.settings = resolved_settings
    app.state.clock = clock

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Serving analytics for %s", resolved_db_path)

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "database_path": str(request.app.state.db_path),
            "min_gap_minutes": resolved_settings.min_gap.total_seconds() / 60.0,
            "merge_max_gap_seconds": resolved_settings.merge_max_gap.total_seconds(),
            "similarity_threshold": resolved_settings.similarity_threshold,
        }

    # Data quality -------------------------------------------------------

    @app.get("/api/data-quality/gaps")
    def gaps(
        request: Request,
        start: Optional[str] = Query(default=None, description="Start date (YYYY-MM-DD)."),
        end: Optional[str] = Query(default=None, description="End date (YYYY-MM-DD), inclusive."),
        min_gap_minutes: Optional[float] = Query(default=None, ge=0),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            found = service.detect_gaps(start_day, end_day, min_gap_minutes)
        return {"gaps": to_jsonable(found)}

    @app.get("/api/data-quality/gap-statistics")
    def gap_statistics(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
        min_gap_minutes: Optional[float] = Query(default=None, ge=0),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            stats = service.get_gap_statistics(start_day, end_day, min_gap_minutes)
        return to_jsonable(stats)

    @app.get("/api/data-quality/duplicates")
    def duplicates(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
        similarity_threshold: Optional[int] = Query(default=None, ge=0, le=100),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            groups = service.detect_duplicates(start_day, end_day, similarity_threshold)
        return {"groups": to_jsonable(groups)}

    @app.get("/api/data-quality/mergeable")
    def mergeable(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
        max_gap_seconds: Optional[float] = Query(default=None, ge=0),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            groups = service.find_mergeable_groups(start_day, end_day, max_gap_seconds)
        return {"groups": to_jsonable(groups)}

    @app.get("/api/data-quality/overlaps")
    def overlaps(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            conflicts = service.find_overlaps(start_day, end_day)
        return {"conflicts": to_jsonable(conflicts)}

    @app.get("/api/data-quality/orphans")
    def orphans(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            activities = service.find_orphaned_activities(start_day, end_day)
        return {"activities": to_jsonable(activities)}

    @app.get("/api/data-quality/validation")
    def validation(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            batch = service.validate_activities_batch(start_day, end_day)
        return to_jsonable(batch)

    @app.post("/api/data-quality/recalculate")
    def recalculate(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            result = service.recalculate_durations(start_day, end_day)
        return to_jsonable(result)

    @app.get("/api/data-quality/zero-duration")
    def zero_duration(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            result = service.find_zero_duration_activities(start_day, end_day)
        return to_jsonable(result)

    @app.post("/api/data-quality/zero-duration/remove")
    def remove_zero_duration(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
        confirm: bool = Query(default=False, description="Actually delete the activities."),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            result = service.find_zero_duration_activities(start_day, end_day, confirm)
        return to_jsonable(result)

    @app.get("/api/data-quality/report")
    def report(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _data_quality(request) as service:
            quality = service.get_data_quality_report(start_day, end_day)
        return to_jsonable(quality)

    @app.post("/api/activities/merge-suggestion")
    def merge_suggestion(payload: MergePayload, request: Request) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, payload.start, payload.end)
        keys = [(ref.id, ref.source_type) for ref in payload.activities]
        with _data_quality(request) as service:
            suggestion = service.suggest_merge(start_day, end_day, keys)
        return to_jsonable(suggestion)

    @app.post("/api/activities/merge")
    def merge(payload: MergePayload, request: Request) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, payload.start, payload.end)
        keys = [(ref.id, ref.source_type) for ref in payload.activities]
        with _data_quality(request) as service:
            merged = service.merge_activities(start_day, end_day, keys, payload.strategy)
        if merged is None:
            raise HTTPException(status_code=409, detail="Activities could not be merged")
        return {"activity": to_jsonable(merged)}

    # Analytics ----------------------------------------------------------

    @app.get("/api/analytics/daily")
    def daily(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _analytics(request) as service:
            stats = service.get_daily_stats(start_day, end_day)
        return {"days": to_jsonable(stats)}

    @app.get("/api/analytics/hourly")
    def hourly(
        request: Request,
        days: int = Query(default=30, ge=1, le=366),
    ) -> Dict[str, Any]:
        with _analytics(request) as service:
            patterns = service.get_hourly_patterns(days)
        return {"hours": to_jsonable(patterns)}

    @app.get("/api/analytics/heatmap")
    def heatmap(
        request: Request,
        year: Optional[int] = Query(default=None, ge=1970, le=9999),
    ) -> Dict[str, Any]:
        with _analytics(request) as service:
            days = service.get_heatmap(year)
        return {"days": to_jsonable(days)}

    @app.get("/api/analytics/weekly")
    def weekly(
        request: Request,
        week_offset: int = Query(default=0, le=0),
    ) -> Dict[str, Any]:
        with _analytics(request) as service:
            summary = service.get_weekly_summary(week_offset)
        return to_jsonable(summary)

    @app.get("/api/analytics/trends")
    def trends(
        request: Request,
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
        group_by: Literal["day", "week", "month"] = Query(default="day"),
    ) -> Dict[str, Any]:
        start_day, end_day = _date_range(request, start, end)
        with _analytics(request) as service:
            points = service.get_trends(start_day, end_day, group_by)
        return {"points": to_jsonable(points)}

    @app.get("/api/analytics/insights")
    def insights(request: Request) -> Dict[str, Any]:
        with _analytics(request) as service:
            found = service.get_insights()
        return {"insights": to_jsonable(found)}

    @app.get("/api/analytics/summary")
    def summary(request: Request) -> Dict[str, Any]:
        with _analytics(request) as service:
            result = service.get_summary()
            streak = service.get_goal_streak()
        payload = to_jsonable(result)
        payload["goal_streak"] = to_jsonable(streak)
        return payload

    @app.get("/api/analytics/overview")
    def overview(
        request: Request,
        year: Optional[int] = Query(default=None, ge=1970, le=9999),
    ) -> Dict[str, Any]:
        with _analytics(request) as service:
            result = service.get_overview(year)
        if result is None:
            raise HTTPException(status_code=500, detail="Failed to build overview.")
        return to_jsonable(result)

    return app


@contextmanager
def _data_quality(request: Request) -> Iterator[DataQualityService]:
    with database_connection(request.app.state.db_path) as conn:
        yield DataQualityService(
            SQLiteStore(conn), request.app.state.settings, request.app.state.clock
        )


@contextmanager
def _analytics(request: Request) -> Iterator[AnalyticsService]:
    with database_connection(request.app.state.db_path) as conn:
        yield AnalyticsService(
            SQLiteStore(conn), request.app.state.settings, request.app.state.clock
        )


def _parse_date(value: Optional[str], default: date) -> date:
    if not value:
        return default
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _date_range(
    request: Request, start: Optional[str], end: Optional[str]
) -> tuple[date, date]:
    start_day = _parse_date(start, request.app.state.clock().date())
    end_day = _parse_date(end, start_day)
    if end_day < start_day:
        raise HTTPException(status_code=400, detail="end date must be on or after start date")
    return start_day, end_day
