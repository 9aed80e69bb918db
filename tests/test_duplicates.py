from __future__ import annotations

import threading
from datetime import datetime

from activity_analytics.duplicates import (
    calculate_similarity,
    detect_duplicates,
    find_duplicate_groups,
    time_overlap_percentage,
)
from activity_analytics.normalization import levenshtein, normalize_title, title_similarity

START = datetime(2024, 3, 13, 9, 0)
HALF_PAST = datetime(2024, 3, 13, 9, 30)


def test_time_overlap_percentage(make_activity):
    first = make_activity(START, 60)

    assert time_overlap_percentage(first, make_activity(START, 60)) == 100
    assert time_overlap_percentage(first, make_activity(HALF_PAST, 60)) == 50
    assert time_overlap_percentage(first, make_activity(datetime(2024, 3, 13, 11), 60)) == 0


def test_identical_activities_score_full_marks(make_activity):
    first = make_activity(START, 30, category_id=3)
    second = make_activity(START, 30, category_id=3)

    assert calculate_similarity(first, second) == 100


def test_similarity_weights(make_activity):
    manual = make_activity(START, 30)
    automatic = make_activity(START, 30, source_type="automatic")

    # Time and title only.
    assert calculate_similarity(manual, automatic) == 70
    matches, _ = detect_duplicates(manual, [automatic], threshold=80)
    assert matches == []
    matches, similarity = detect_duplicates(manual, [automatic], threshold=70)
    assert matches == [automatic]
    assert similarity == 70


def test_detector_skips_the_anchor_itself(make_activity):
    anchor = make_activity(START, 30)

    assert detect_duplicates(anchor, [anchor]) == ([], 0.0)


def test_each_activity_joins_at_most_one_group(make_activity):
    copies = [make_activity(START, 30, category_id=3) for _ in range(3)]
    unrelated = make_activity(datetime(2024, 3, 13, 15), 30, title="Lunch")

    groups = find_duplicate_groups([*copies, unrelated])

    assert len(groups) == 1
    assert groups[0].activities == copies
    assert groups[0].similarity == 100
    members = [activity.key for group in groups for activity in group.activities]
    assert len(members) == len(set(members))


def test_stop_event_ends_detection_early(make_activity):
    copies = [make_activity(START, 30) for _ in range(2)]
    stop_event = threading.Event()
    stop_event.set()

    assert find_duplicate_groups(copies, stop_event=stop_event) == []


def test_normalize_title_strips_browser_noise():
    assert normalize_title("chrome.exe", "Inbox - Google Chrome") == "inbox"
    assert normalize_title(None, "Docs and 3 more pages") == "docs"
    assert normalize_title("code.exe", "  Main   File  ") == "main file"
    assert normalize_title(None, None) == ""


def test_title_similarity():
    assert levenshtein("kitten", "sitting") == 3
    assert title_similarity("abc", "abc") == 100
    assert title_similarity("abcd", "abce") == 75
    assert title_similarity("", "abc") == 0
