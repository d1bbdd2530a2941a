import logging
from datetime import date, datetime, timedelta

from . import models

logger = logging.getLogger(__name__)

WEEK_DAYS = 7


def record_completion(habit: models.Habit, timestamp: datetime | None = None, duration: int | None = None,
                      mood: str | None = None, energy: int | None = None) -> models.Completion:
    timestamp = timestamp or datetime.now()
    completion = models.Completion(
        completed_at=timestamp, duration_seconds=duration, mood=mood, energy=energy
    )
    habit.completions.append(completion)

    habit.total_completions += 1
    habit.current_streak += 1
    if habit.current_streak > habit.longest_streak:
        habit.longest_streak = habit.current_streak
    # backfilled events never move the last completion backwards
    if habit.last_completed_at is None or timestamp > habit.last_completed_at:
        habit.last_completed_at = timestamp

    logger.debug("habit %s completed, streak=%s", habit.name, habit.current_streak)
    return completion


def record_miss(habit: models.Habit) -> None:
    # a miss is the absence of an event, nothing gets appended
    habit.current_streak = 0


def completion_days(habit: models.Habit) -> set[date]:
    return {c.completed_at.date() for c in habit.completions if c.completed_at is not None}


def weekly_completion_rate(habit: models.Habit, as_of: datetime | None = None) -> float:
    """Share of the trailing 7 calendar days (today included) with at least one completion."""
    today = (as_of or datetime.now()).date()
    start = today - timedelta(days=WEEK_DAYS - 1)
    active = [d for d in completion_days(habit) if start <= d <= today]
    return len(active) / WEEK_DAYS


def stack_completion_rate(stack: models.HabitStack, as_of: datetime | None = None) -> float:
    """Share of a stack's habits completed at least once on the day of ``as_of``."""
    if not stack.habits:
        return 0.0
    today = (as_of or datetime.now()).date()
    done = sum(1 for h in stack.habits if today in completion_days(h))
    return done / len(stack.habits)


def calc_streak(days, today: date | None = None) -> int:
    s = set(days)
    if not s:
        return 0
    d = today or date.today()
    if d not in s:
        d = d - timedelta(days=1)
    streak = 0
    while d in s:
        streak += 1
        d = d - timedelta(days=1)
    return streak


def aggregate_streak(habits, today: date | None = None) -> int:
    days: set[date] = set()
    for h in habits:
        days |= completion_days(h)
    return calc_streak(days, today=today)


def daily_completion_counts(habits, days: int = WEEK_DAYS, as_of: datetime | None = None) -> list[tuple[date, str, int]]:
    today = (as_of or datetime.now()).date()
    counts: dict[date, int] = {}
    for h in habits:
        for c in h.completions:
            if c.completed_at is None:
                continue
            d = c.completed_at.date()
            counts[d] = counts.get(d, 0) + 1

    out = []
    for offset in reversed(range(days)):
        d = today - timedelta(days=offset)
        out.append((d, d.strftime("%a"), counts.get(d, 0)))
    return out


def compute_stats(stacks, as_of: datetime | None = None):
    as_of = as_of or datetime.now()
    habits = [h for s in stacks for h in s.habits]

    if not habits:
        return dict(
            total_stacks=len(stacks),
            total_habits=0,
            completed_today=0,
            total_completions=0,
            current_streak=0,
            longest_streak=0,
            average_completion_rate=0.0,
        )

    today = as_of.date()
    completed_today = sum(1 for h in habits if today in completion_days(h))
    average = sum(weekly_completion_rate(h, as_of) for h in habits) / len(habits)

    return dict(
        total_stacks=len(stacks),
        total_habits=len(habits),
        completed_today=completed_today,
        total_completions=sum(h.total_completions for h in habits),
        current_streak=aggregate_streak(habits, today=today),
        longest_streak=max(h.longest_streak for h in habits),
        average_completion_rate=round(average, 4),
    )


def is_section_complete(stacks, as_of: datetime | None = None) -> bool:
    """A time block is done when it has stacks today and every habit in them is done."""
    if not stacks:
        return False
    today = (as_of or datetime.now()).date()
    return all(
        s.habits and all(today in completion_days(h) for h in s.habits)
        for s in stacks
    )


def today_overview(stacks, as_of: datetime | None = None):
    as_of = as_of or datetime.now()
    today = as_of.date()
    showing = [s for s in stacks if s.should_show_on(today)]

    sections = []
    for block in models.TIME_BLOCKS:
        in_block = [s for s in showing if s.time_block == block]
        sections.append(dict(
            time_block=block,
            complete=is_section_complete(in_block, as_of),
            stacks=in_block,
        ))
    return dict(day=today, stacks=showing, sections=sections)
