from __future__ import annotations

from datetime import datetime

import pytest

from activity_analytics.timeline import (
    apply_auto_merge,
    detect_gaps,
    find_mergeable_groups,
    find_overlaps,
    gap_statistics,
    merge_activities,
    split_activity,
    suggest_merge,
)
from activity_analytics.models import Gap

NOW = datetime(2024, 3, 14)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 13, hour, minute)


def test_gap_threshold_is_inclusive(make_activity):
    activities = [make_activity(at(9), 30), make_activity(at(9, 40), 20)]

    gaps = detect_gaps(activities, min_gap_seconds=300)
    assert len(gaps) == 1
    assert gaps[0].duration == 600
    assert gaps[0].start_time == at(9, 30)
    assert gaps[0].end_time == at(9, 40)
    assert gaps[0].before is activities[0]

    assert detect_gaps(activities, min_gap_seconds=600)
    assert detect_gaps(activities, min_gap_seconds=900) == []


def test_gaps_ignore_input_order_and_overlaps(make_activity):
    first = make_activity(at(9), 60)
    overlapping = make_activity(at(9, 30), 60)
    later = make_activity(at(11), 10)

    gaps = detect_gaps([later, overlapping, first])

    assert [gap.duration for gap in gaps] == [1800]


def test_open_ended_activity_uses_stored_duration(make_activity):
    running = make_activity(at(9), None, duration=600)
    after = make_activity(at(9, 20), 10)

    gaps = detect_gaps([running, after])

    assert gaps[0].start_time == at(9, 10)
    assert gaps[0].duration == 600


def test_running_timer_leaves_no_gap(make_activity):
    running = make_activity(at(9), None)
    after = make_activity(at(9, 20), 10, source_type="automatic")

    assert detect_gaps([running, after], min_gap_seconds=300) == []


def test_gap_statistics():
    gaps = [Gap(at(9), at(9, 10), 600), Gap(at(10), at(10, 5), 300)]

    stats = gap_statistics(gaps)

    assert stats.total_gaps == 2
    assert stats.total_untracked_seconds == 900
    assert stats.average_gap_seconds == 450
    assert stats.longest_gap_seconds == 600
    assert gap_statistics([]).total_gaps == 0


def test_mergeable_group_of_consecutive_entries(make_activity):
    activities = [
        make_activity(at(9), 30),
        make_activity(at(9, 31), 29),
        make_activity(at(10, 1), 20),
    ]

    groups = find_mergeable_groups(activities, max_gap_seconds=300)

    assert len(groups) == 1
    assert groups[0].activities == activities
    assert groups[0].total_gap_seconds == 120


def test_mergeable_groups_respect_source_and_type(make_activity):
    activities = [
        make_activity(at(9), 30),
        make_activity(at(9, 31), 8, source_type="automatic"),
        make_activity(at(9, 40), 20),
    ]

    assert find_mergeable_groups(activities) == []


def test_mergeable_groups_split_on_large_gap(make_activity):
    activities = [make_activity(at(9), 30), make_activity(at(9, 40), 30)]

    assert find_mergeable_groups(activities, max_gap_seconds=300) == []
    assert len(find_mergeable_groups(activities, max_gap_seconds=600)) == 1


def test_overlaps_only_within_one_source(make_activity):
    first = make_activity(at(9), 60)
    second = make_activity(at(9, 30), 60)
    other_source = make_activity(at(9, 15), 10, source_type="automatic")

    conflicts = find_overlaps([first, second, other_source])

    assert len(conflicts) == 1
    assert conflicts[0].activities == [first, second]
    assert conflicts[0].overlap_seconds == 1800


def test_merge_spans_all_activities(make_activity):
    short = make_activity(at(9), 30, title="Planning")
    long = make_activity(at(9, 35), 40, title="Coding")

    merged = merge_activities([long, short], "longest", NOW)

    assert merged.id == long.id
    assert merged.title == "Coding"
    assert merged.start_time == at(9)
    assert merged.end_time == at(10, 15)
    assert merged.duration == 4500

    assert merge_activities([short, long], "earliest", NOW).id == short.id
    assert merge_activities([short, long], "latest", NOW).id == long.id


def test_merge_rejects_bad_input(make_activity):
    with pytest.raises(ValueError):
        merge_activities([])
    with pytest.raises(ValueError):
        merge_activities([make_activity(at(9))], "shortest")


def test_suggest_merge_for_close_identical_titles(make_activity):
    activities = [make_activity(at(9), 30), make_activity(at(9, 31), 30)]

    suggestion = suggest_merge(activities, NOW)

    assert suggestion.can_merge
    assert suggestion.confidence == 100
    assert suggestion.reason == "Small gaps (max 60s) between activities and identical titles"
    assert suggestion.merged is not None


def test_suggest_merge_refuses(make_activity):
    mixed = [make_activity(at(9), 30), make_activity(at(9, 30), 30, source_type="automatic")]
    far_apart = [make_activity(at(9), 30), make_activity(at(10, 0), 30)]

    assert not suggest_merge(mixed, NOW).can_merge
    assert not suggest_merge([make_activity(at(9))], NOW).can_merge

    suggestion = suggest_merge(far_apart, NOW)
    assert not suggestion.can_merge
    assert suggestion.confidence == 30
    assert suggestion.merged is None


def test_running_timer_is_never_merged(make_activity):
    activities = [
        make_activity(at(9), 30),
        make_activity(at(9, 30), None),
        make_activity(at(9, 31), 20),
    ]

    assert find_mergeable_groups(activities, max_gap_seconds=300) == []
    with pytest.raises(ValueError):
        merge_activities(activities[:2], "longest", NOW)
    suggestion = suggest_merge(activities[:2], NOW)
    assert not suggestion.can_merge
    assert suggestion.reason == "Cannot merge an activity that is still running"


def test_split_activity_at_inner_points(make_activity):
    activity = make_activity(at(9), 60)

    pieces = split_activity(activity, [at(9, 40), at(9, 20), at(11)])

    assert [(piece.start_time, piece.end_time) for piece in pieces] == [
        (at(9), at(9, 20)),
        (at(9, 20), at(9, 40)),
        (at(9, 40), at(10)),
    ]
    assert [piece.duration for piece in pieces] == [1200, 1200, 1200]
    assert [piece.id for piece in pieces] == [activity.id, 0, 0]
    assert pieces[1].title == "Write report (Part 2)"


def test_split_activity_without_usable_points(make_activity):
    activity = make_activity(at(9), 60)

    assert split_activity(activity, [at(9), at(10)]) == [activity]
    with pytest.raises(ValueError):
        split_activity(make_activity(at(9), None), [at(9, 30)])


def test_auto_merge_collapses_close_activities(make_activity):
    first = make_activity(at(9), 30)
    second = make_activity(at(9, 30), 30)
    later = make_activity(at(11), 10)

    result = apply_auto_merge([later, first, second], threshold_seconds=60, now=NOW)

    assert len(result) == 2
    assert result[0].id == first.id
    assert (result[0].start_time, result[0].end_time) == (at(9), at(10))
    assert result[0].duration == 3600
    assert result[1] is later
