from __future__ import annotations

from datetime import datetime, timedelta

from activity_analytics.models import Category, Snapshot
from activity_analytics.quality import (
    build_quality_report,
    find_orphaned,
    find_zero_duration,
    quality_score,
    recalculate_durations,
    remove_zero_duration,
)

from conftest import FakeStore

NOW = datetime(2024, 3, 14, 12, 0)
START = datetime(2024, 3, 13, 9, 0)


def test_quality_score_bounds():
    assert quality_score(0, 0, 0, 0) == 100
    assert quality_score(10, 1, 1, 0) == 80
    assert quality_score(2, 2, 2, 2) == 0


def test_quality_score_never_rises_with_more_issues():
    scores = [quality_score(20, issues, 0, 0) for issues in range(21)]

    assert scores == sorted(scores, reverse=True)


def test_find_orphaned(make_activity):
    known = make_activity(START, 30, category_id=1)
    dangling = make_activity(START, 30, category_id=2)
    uncategorized = make_activity(START, 30)

    orphaned = find_orphaned([known, dangling, uncategorized], [Category(1, "Work")])

    assert orphaned == [dangling]


def test_find_zero_duration_uses_effective_seconds(make_activity):
    stored_zero = make_activity(START, 30, duration=0)
    instant = make_activity(START, 0, duration=None)
    normal = make_activity(START, 30)

    assert find_zero_duration([stored_zero, instant, normal]) == [stored_zero, instant]


def test_zero_duration_removal_needs_confirmation(make_activity):
    zero = make_activity(START, 0)
    normal = make_activity(START + timedelta(hours=1), 30)
    store = FakeStore([zero, normal])

    listed = remove_zero_duration(store, store.activities)
    assert listed.activities == [zero]
    assert listed.removed == 0
    assert len(store.activities) == 2

    removed = remove_zero_duration(store, list(store.activities), confirmed=True)
    assert removed.removed == 1
    assert store.activities == [normal]


def test_recalculation_reports_partial_success(make_activity):
    drifted = make_activity(START, 30, duration=100)
    locked = make_activity(START + timedelta(hours=1), 30, duration=100)
    correct = make_activity(START + timedelta(hours=2), 30)
    running = make_activity(START + timedelta(hours=3), None)
    store = FakeStore([drifted, locked, correct, running])
    store.fail_ids.add(locked.id)

    result = recalculate_durations(store, list(store.activities))

    assert result.success
    assert result.recalculated == 1
    assert result.errors == [f"Error processing activity {locked.id}: database is locked"]
    assert drifted.duration == 1800
    assert locked.duration == 100


def test_report_on_empty_snapshot():
    report = build_quality_report(Snapshot(activities=[]), now=NOW)

    assert report.total_activities == 0
    assert report.quality_score == 100


def test_report_counts_findings(make_activity):
    activities = [
        make_activity(START, 30, category_id=1),
        make_activity(START, 30, category_id=1),
        make_activity(START + timedelta(hours=2), 30, category_id=9),
        make_activity(START + timedelta(hours=3), 30, duration=-1, category_id=1),
    ]
    snapshot = Snapshot(activities=activities, categories=[Category(1, "Work")])

    report = build_quality_report(snapshot, now=NOW)

    assert report.total_activities == 4
    assert report.invalid_activities == 1
    assert report.valid_activities == 3
    assert report.orphaned_count == 1
    assert report.zero_duration_count == 1
    assert report.gaps_count == 2
    assert report.duplicate_groups_count == 1
    assert report.quality_score == 25


def test_running_timer_is_not_zero_duration(make_activity):
    running = make_activity(START, None)
    store = FakeStore([running])

    assert find_zero_duration([running]) == []
    assert remove_zero_duration(store, store.activities, confirmed=True).removed == 0
    assert store.activities == [running]

    report = build_quality_report(Snapshot([running]), now=NOW)
    assert report.zero_duration_count == 0
    assert report.quality_score == 100
