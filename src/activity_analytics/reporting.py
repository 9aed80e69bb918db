"""Simple reporting utilities for CLI output."""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Iterable, Optional

from .models import (
    ActivityRecord,
    AnalyticsSummary,
    BatchValidation,
    BehavioralInsight,
    DailyStats,
    DuplicateGroup,
    Gap,
    GapStatistics,
    HeatmapDay,
    HourlyPattern,
    MergeableGroup,
    QualityReport,
    RecalculationResult,
    Streak,
    TrendPoint,
    WeeklySummary,
    ZeroDurationResult,
)


def to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def print_json(value: Any) -> None:
    print(json.dumps(to_jsonable(value), indent=2, default=str))


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_minutes(minutes: float) -> str:
    return format_duration(minutes * 60)


def describe_activity(activity: Optional[ActivityRecord]) -> str:
    if activity is None:
        return "-"
    start = activity.start_time.strftime("%Y-%m-%d %H:%M") if activity.start_time else "?"
    return f"[{activity.source_type}#{activity.id}] {start} {activity.title[:40]}"


class ReportPrinter:
    """Render human-readable reports in the console."""

    def print_gaps(self, gaps: list[Gap]) -> None:
        if not gaps:
            print("No gaps found.")
            return
        print(f"{'Start':<17} {'End':<17} {'Length':>9}")
        print("-" * 45)
        for gap in gaps:
            print(
                f"{gap.start_time:%Y-%m-%d %H:%M} {gap.end_time:%Y-%m-%d %H:%M} "
                f"{format_duration(gap.duration):>9}"
            )

    def print_gap_statistics(self, stats: GapStatistics) -> None:
        print(f"Gaps:            {stats.total_gaps}")
        print(f"Untracked time:  {format_duration(stats.total_untracked_seconds)}")
        print(f"Average gap:     {format_duration(stats.average_gap_seconds)}")
        print(f"Longest gap:     {format_duration(stats.longest_gap_seconds)}")

    def print_duplicates(self, groups: list[DuplicateGroup]) -> None:
        if not groups:
            print("No duplicates found.")
            return
        for index, group in enumerate(groups, start=1):
            print(f"Group {index} ({group.similarity:.0f}% similar)")
            self._print_activities(group.activities)

    def print_mergeable(self, groups: list[MergeableGroup]) -> None:
        if not groups:
            print("No mergeable activities found.")
            return
        for index, group in enumerate(groups, start=1):
            print(
                f"Group {index}: {len(group.activities)} activities, "
                f"{format_duration(group.total_gap_seconds)} of gaps"
            )
            self._print_activities(group.activities)

    def print_activities(self, activities: list[ActivityRecord], empty: str) -> None:
        if not activities:
            print(empty)
            return
        self._print_activities(activities)

    def _print_activities(self, activities: Iterable[ActivityRecord]) -> None:
        for activity in activities:
            print(f"  {describe_activity(activity):<70} {format_duration(activity.seconds)}")

    def print_validation(self, batch: BatchValidation) -> None:
        print(f"Invalid activities: {len(batch.invalid)}")
        for entry in batch.invalid:
            print(f"  {describe_activity(entry.activity)}")
            for error in entry.errors:
                print(f"    error:   {error}")
            for warning in entry.warnings:
                print(f"    warning: {warning}")
        print(f"Activities with warnings: {len(batch.valid)}")
        for entry in batch.valid:
            print(f"  {describe_activity(entry.activity)}")
            for warning in entry.warnings:
                print(f"    warning: {warning}")

    def print_recalculation(self, result: RecalculationResult) -> None:
        status = "ok" if result.success else "failed"
        print(f"Recalculation {status}: {result.recalculated} activities updated.")
        for error in result.errors:
            print(f"  {error}")

    def print_zero_duration(self, result: ZeroDurationResult) -> None:
        self.print_activities(result.activities, "No zero-duration activities found.")
        if result.removed:
            print(f"Removed {result.removed} activities.")

    def print_quality_report(self, report: QualityReport) -> None:
        print(f"Quality score: {report.quality_score}/100")
        print("-" * 40)
        print(f"Total activities:   {report.total_activities}")
        print(f"Valid:              {report.valid_activities}")
        print(f"Invalid:            {report.invalid_activities}")
        print(f"Warnings:           {report.warnings_count}")
        print(f"Orphaned:           {report.orphaned_count}")
        print(f"Zero duration:      {report.zero_duration_count}")
        print(f"Gaps:               {report.gaps_count}")
        print(f"Duplicate groups:   {report.duplicate_groups_count}")

    def print_daily_stats(self, stats: list[DailyStats]) -> None:
        if not stats:
            print("No activity recorded for the selected range.")
            return
        print(f"{'Date':<10} {'Total':>9} {'Focus':>9} {'Break':>9} {'Idle':>9} {'Tasks':>5}")
        for day in stats:
            print(
                f"{day.date:%Y-%m-%d} {format_minutes(day.total_minutes):>9} "
                f"{format_minutes(day.focus_minutes):>9} {format_minutes(day.break_minutes):>9} "
                f"{format_minutes(day.idle_minutes):>9} {day.completed_tasks:>5}"
            )
            for category in day.categories[:3]:
                print(f"    {category.category_name:<28} {category.percentage:>3}%")

    def print_hourly(self, patterns: list[HourlyPattern]) -> None:
        if not patterns:
            print("No activity recorded in the window.")
            return
        for pattern in patterns:
            bar = "#" * min(pattern.avg_minutes // 2, 30)
            print(f"  {pattern.hour:02d}:00 {pattern.avg_minutes:>4} min {bar}")

    def print_heatmap(self, days: list[HeatmapDay]) -> None:
        if not days:
            print("No activity recorded for the selected year.")
            return
        for day in days:
            print(f"  {day.date:%Y-%m-%d} {'#' * day.intensity:<4} {format_minutes(day.total_minutes)}")

    def print_weekly(self, summary: WeeklySummary) -> None:
        print(f"Week {summary.week_start:%Y-%m-%d} .. {summary.week_end:%Y-%m-%d}")
        print("-" * 40)
        print(f"Total time:      {format_minutes(summary.total_minutes)}")
        print(f"Daily average:   {format_minutes(summary.avg_daily_minutes)}")
        print(f"vs. last week:   {summary.comparison_to_previous:+d}%")
        print(f"Goals achieved:  {summary.goals_achieved}/{summary.total_goals}")
        if summary.top_categories:
            print()
            print("Top categories:")
            for category in summary.top_categories:
                print(
                    f"  {category.category_name:<30} {format_minutes(category.minutes)} "
                    f"{category.percentage:>3}%"
                )
        if summary.insights:
            print()
            for insight in summary.insights:
                print(f"* {insight}")

    def print_trends(self, points: list[TrendPoint]) -> None:
        if not points:
            print("No activity recorded for the selected range.")
            return
        for point in points:
            print(f"  {point.period:<10} {format_minutes(point.value)}")

    def print_insights(self, insights: list[BehavioralInsight]) -> None:
        if not insights:
            print("Not enough data for insights yet.")
            return
        for insight in insights:
            print(f"{insight.title} ({insight.value})")
            print(f"  {insight.description}")

    def print_summary(self, summary: AnalyticsSummary, goal_streak: Streak) -> None:
        print(f"Productivity score:     {summary.productivity_score}/100")
        print(f"Productive time:        {format_minutes(summary.total_productive_minutes)}")
        print(f"Daily focus:            {summary.avg_daily_focus_hours:.1f} h")
        print(f"Peak hour:              {summary.peak_hour:02d}:00")
        print(f"Most productive day:    {summary.most_productive_day}")
        print(f"Activity streak:        {summary.weekly_streak} days")
        print(f"Goal streak:            {goal_streak.current} days (best {goal_streak.longest})")
