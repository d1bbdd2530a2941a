from datetime import date, timedelta

from stakk import services
from stakk.risk import check_habit


def test_record_completion_updates_counters(make_habit, now):
    habit = make_habit("Meditate")
    completion = services.record_completion(habit, timestamp=now, duration=300, mood="calm", energy=4)

    assert habit.completions == [completion]
    assert completion.duration_seconds == 300
    assert completion.mood == "calm"
    assert habit.total_completions == 1
    assert habit.current_streak == 1
    assert habit.longest_streak == 1
    assert habit.last_completed_at == now


def test_record_miss_only_resets_current_streak(make_habit, now):
    habit = make_habit("Stretch")
    for i in range(3):
        services.record_completion(habit, timestamp=now - timedelta(days=2 - i))

    services.record_miss(habit)

    assert habit.current_streak == 0
    assert habit.longest_streak == 3
    assert habit.total_completions == 3
    assert len(habit.completions) == 3


def test_current_streak_never_exceeds_longest(make_habit, now):
    habit = make_habit("Read")
    pattern = "ccmcccmmccccm"
    for i, step in enumerate(pattern):
        if step == "c":
            services.record_completion(habit, timestamp=now + timedelta(days=i))
        else:
            services.record_miss(habit)
        assert habit.current_streak <= habit.longest_streak

    assert habit.longest_streak == 4
    assert habit.current_streak == 0


def test_weekly_rate_without_completions_is_zero(make_habit, now):
    assert services.weekly_completion_rate(make_habit(), now) == 0


def test_weekly_rate_full_week(make_habit, now):
    habit = make_habit(completed=[now - timedelta(days=i) for i in range(7)])
    assert services.weekly_completion_rate(habit, now) == 1.0


def test_weekly_rate_counts_days_not_events(make_habit, now):
    habit = make_habit(completed=[
        now,
        now - timedelta(hours=3),
        now - timedelta(days=2),
        now - timedelta(days=7),  # outside the window
    ])
    assert services.weekly_completion_rate(habit, now) == 2 / 7


def test_stack_completion_rate(make_habit, make_stack, now):
    done = make_habit("Water", completed=[now])
    pending = make_habit("Journal", completed=[now - timedelta(days=1)])
    stack = make_stack("Morning", [done, pending])

    assert services.stack_completion_rate(stack, now) == 0.5
    assert services.stack_completion_rate(make_stack("Empty"), now) == 0.0


def test_calc_streak_walks_back_from_today():
    today = date(2026, 3, 10)
    days = [today, today - timedelta(days=1), today - timedelta(days=2), today - timedelta(days=4)]
    assert services.calc_streak(days, today=today) == 3


def test_calc_streak_starts_yesterday_when_today_is_empty():
    today = date(2026, 3, 10)
    days = [today - timedelta(days=1), today - timedelta(days=2)]
    assert services.calc_streak(days, today=today) == 2


def test_calc_streak_without_completions():
    assert services.calc_streak([], today=date(2026, 3, 10)) == 0


def test_aggregate_streak_merges_habits(make_habit, now):
    a = make_habit("A", completed=[now, now - timedelta(days=2)])
    b = make_habit("B", completed=[now - timedelta(days=1)])
    assert services.aggregate_streak([a, b], today=now.date()) == 3


def test_daily_completion_counts(make_habit, now):
    habit = make_habit(completed=[now, now - timedelta(hours=1), now - timedelta(days=3)])
    points = services.daily_completion_counts([habit], days=7, as_of=now)

    assert len(points) == 7
    assert points[-1] == (now.date(), "Tue", 2)
    assert points[0][0] == now.date() - timedelta(days=6)
    assert [p[2] for p in points] == [0, 0, 0, 1, 0, 0, 2]


def test_compute_stats(make_habit, make_stack, now):
    a = make_habit("A")
    b = make_habit("B")
    stack = make_stack("Morning", [a, b])
    for i in range(3):
        services.record_completion(a, timestamp=now - timedelta(days=i))
    services.record_completion(b, timestamp=now - timedelta(days=5))

    stats = services.compute_stats([stack], as_of=now)

    assert stats["total_stacks"] == 1
    assert stats["total_habits"] == 2
    assert stats["completed_today"] == 1
    assert stats["total_completions"] == 4
    assert stats["current_streak"] == 3
    assert stats["longest_streak"] == 3
    assert stats["average_completion_rate"] == round((3 / 7 + 1 / 7) / 2, 4)


def test_compute_stats_without_habits():
    stats = services.compute_stats([])
    assert stats["total_habits"] == 0
    assert stats["current_streak"] == 0


def test_backfilled_completion_keeps_latest_timestamp(make_habit, now):
    habit = make_habit("Run", current_streak=9, longest_streak=9)
    services.record_completion(habit, timestamp=now - timedelta(hours=1))
    services.record_completion(habit, timestamp=now - timedelta(days=2))

    assert habit.last_completed_at == now - timedelta(hours=1)
    assert habit.current_streak == 11
    assert check_habit(habit, now) is None


def test_today_overview_hides_stacks_not_scheduled_today(make_habit, make_stack, now):
    weekdays = make_stack("Weekdays", [make_habit("Plan")], scheduled_days=[1, 2, 3, 4, 5])
    weekend = make_stack("Weekend", [make_habit("Hike")], scheduled_days=[6, 7])

    overview = services.today_overview([weekdays, weekend], now)

    assert overview["day"] == now.date()
    assert [s.name for s in overview["stacks"]] == ["Weekdays"]
    assert [s["time_block"] for s in overview["sections"]] == ["morning", "midday", "evening", "night"]


def test_section_complete_needs_every_habit_of_every_stack(make_habit, make_stack, now):
    done = make_stack("Wake", [make_habit("Water", completed=[now]), make_habit("Stretch", completed=[now])])
    partial = make_stack("Focus", [make_habit("Desk", completed=[now]), make_habit("Phone away")],
                         time_block="midday")
    stale = make_stack("Shutdown", [make_habit("Review", completed=[now - timedelta(days=1)])],
                       time_block="evening")

    sections = {s["time_block"]: s for s in services.today_overview([done, partial, stale], now)["sections"]}

    assert sections["morning"]["complete"] is True
    assert sections["midday"]["complete"] is False
    assert sections["evening"]["complete"] is False
    # nothing to do is not the same as done
    assert sections["night"]["complete"] is False
    assert sections["night"]["stacks"] == []


def test_empty_stack_never_completes_a_section(make_stack, now):
    assert services.is_section_complete([make_stack("Empty")], now) is False
    assert services.is_section_complete([], now) is False
