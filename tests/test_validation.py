from __future__ import annotations

from datetime import datetime, timedelta

from activity_analytics.validation import (
    split_batch,
    validate_activity,
    validate_batch,
    validate_time_range,
)

NOW = datetime(2024, 3, 14, 12, 0)
START = datetime(2024, 3, 13, 9, 0)


def test_clean_activity_has_no_findings(make_activity):
    result = validate_activity(make_activity(START, 30), NOW)

    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []


def test_end_before_start_is_an_error():
    result = validate_time_range(START, START - timedelta(minutes=5), NOW)

    assert not result.is_valid
    assert "End time must not be before start time" in result.errors


def test_equal_timestamps_only_warn(make_activity):
    result = validate_activity(make_activity(START, 0), NOW)

    assert result.is_valid
    assert "Activity duration is less than 1 second" in result.warnings
    assert "Activity has zero duration" in result.warnings


def test_running_and_future_activities_warn():
    running = validate_time_range(START, None, NOW)
    future = validate_time_range(NOW + timedelta(hours=1), NOW + timedelta(hours=2), NOW)

    assert running.is_valid
    assert running.warnings == ["Activity has no end time"]
    assert future.is_valid
    assert "Activity has a future start time" in future.warnings
    assert "Activity has a future end time" in future.warnings


def test_very_long_activity_warns():
    result = validate_time_range(START - timedelta(hours=25), START, NOW)

    assert result.warnings == ["Activity duration is very long: 25.0 hours"]


def test_field_errors(make_activity):
    negative = validate_activity(make_activity(START, None, duration=-5), NOW)
    bad_category = validate_activity(make_activity(START, 30, category_id=0), NOW)
    untitled = validate_activity(make_activity(START, 30, title="  "), NOW)
    no_session = validate_activity(
        make_activity(START, 25, source_type="pomodoro", session_type=None), NOW
    )

    assert "Duration cannot be negative" in negative.errors
    assert "Category ID must be a positive number" in bad_category.errors
    assert "Activity title is required" in untitled.errors
    assert "Pomodoro activity must have session type" in no_session.errors
    assert not any(r.is_valid for r in (negative, bad_category, untitled, no_session))


def test_duration_mismatch_warns(make_activity):
    result = validate_activity(make_activity(START, 30, duration=1000), NOW)

    assert result.is_valid
    assert result.warnings == [
        "Duration mismatch: stored 1000s, calculated 1800s (diff: 800s)"
    ]


def test_one_second_difference_is_tolerated(make_activity):
    result = validate_activity(make_activity(START, 30, duration=1801), NOW)

    assert result.warnings == []


def test_source_specific_warnings(make_activity):
    anonymous_app = validate_activity(
        make_activity(START, 10, source_type="automatic", app_name=None), NOW
    )
    unknown_completion = validate_activity(
        make_activity(START, 25, source_type="pomodoro", completed=None), NOW
    )

    assert anonymous_app.warnings == ["Automatic activity should have app name or domain"]
    assert unknown_completion.warnings == ["Pomodoro activity missing completed status"]


def test_batch_keys_by_id_and_source(make_activity):
    manual = make_activity(START, 30, id=7)
    automatic = make_activity(START, 30, id=7, source_type="automatic")

    results = validate_batch([manual, automatic], NOW)

    assert set(results) == {(7, "manual"), (7, "automatic")}


def test_split_batch_lists_invalid_and_warned(make_activity):
    clean = make_activity(START, 30)
    warned = make_activity(START, None)
    broken = make_activity(START, 30, duration=-1)
    activities = [clean, warned, broken]

    batch = split_batch(activities, validate_batch(activities, NOW))

    assert [entry.activity for entry in batch.invalid] == [broken]
    assert [entry.activity for entry in batch.valid] == [warned]
    assert batch.valid[0].warnings == ["Activity has no end time"]
