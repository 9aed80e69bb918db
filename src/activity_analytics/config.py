"""Configuration models and helpers for the analytics engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional


@dataclass(slots=True)
class AnalyticsSettings:
    """Thresholds and windows used by the data-quality and analytics operations."""

    min_gap: timedelta = timedelta(minutes=5)
    merge_max_gap: timedelta = timedelta(seconds=300)
    similarity_threshold: int = 80
    report_min_gap: timedelta = timedelta(seconds=300)
    report_similarity_threshold: int = 80
    hourly_window: timedelta = timedelta(days=30)
    insight_window: timedelta = timedelta(days=30)
    streak_window: timedelta = timedelta(days=60)
    duplicate_timeout: Optional[timedelta] = None

    @classmethod
    def from_options(
        cls,
        min_gap_minutes: float = 5.0,
        merge_max_gap_seconds: float = 300.0,
        similarity_threshold: int = 80,
        duplicate_timeout_seconds: float | None = None,
    ) -> "AnalyticsSettings":
        if not 0 <= similarity_threshold <= 100:
            raise ValueError("similarity_threshold must be between 0 and 100")
        timeout = (
            timedelta(seconds=duplicate_timeout_seconds)
            if duplicate_timeout_seconds is not None
            else None
        )
        return cls(
            min_gap=timedelta(minutes=min_gap_minutes),
            merge_max_gap=timedelta(seconds=merge_max_gap_seconds),
            similarity_threshold=similarity_threshold,
            duplicate_timeout=timeout,
        )
