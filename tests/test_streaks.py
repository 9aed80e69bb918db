from __future__ import annotations

from datetime import date, datetime, timedelta

from activity_analytics.models import GoalProgress
from activity_analytics.streaks import activity_dates, calculate_streak, goal_dates

TODAY = date(2024, 3, 13)


def days_ago(*offsets: int) -> list[date]:
    return [TODAY - timedelta(days=offset) for offset in offsets]


def test_current_streak_stops_at_first_hole():
    streak = calculate_streak(days_ago(0, 1, 2, 4))

    assert streak.current == 3
    assert streak.longest == 3


def test_longest_run_can_be_in_the_past():
    streak = calculate_streak(days_ago(0, 7, 8, 9, 10))

    assert streak.current == 1
    assert streak.longest == 4


def test_current_counts_back_from_latest_date():
    assert calculate_streak(days_ago(3, 4)).current == 2


def test_empty_and_repeated_dates():
    assert calculate_streak([]).current == 0
    assert calculate_streak([]).longest == 0
    assert calculate_streak(days_ago(0, 0, 1)).current == 2


def test_activity_dates_skip_idle_and_pomodoro(make_activity):
    morning = datetime(2024, 3, 13, 9)
    activities = [
        make_activity(morning, 30),
        make_activity(morning - timedelta(days=1), 30, source_type="automatic", is_idle=True),
        make_activity(morning - timedelta(days=2), 25, source_type="pomodoro"),
        make_activity(morning - timedelta(days=3), 10, source_type="automatic"),
        make_activity(morning - timedelta(days=90), 10),
    ]

    assert activity_dates(activities, TODAY - timedelta(days=60)) == set(days_ago(0, 3))


def test_goal_dates_need_an_achieved_goal():
    progress = [
        GoalProgress(1, TODAY, 90, True),
        GoalProgress(2, TODAY, 10, False),
        GoalProgress(1, TODAY - timedelta(days=1), 20, False),
    ]

    assert goal_dates(progress, TODAY - timedelta(days=60)) == {TODAY}
