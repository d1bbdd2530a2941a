"""Suggestion generation.

One ``analyze`` pass rebuilds everything the presentation layer shows:
at-risk habits, productivity windows and a capped, priority-sorted list of
suggestions. State that has to survive between passes (the dismissed
identifiers) lives on an ``AnalyticsContext`` owned by the host.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from . import models
from .risk import AtRiskHabit, RiskLevel, detect_at_risk
from .services import stack_completion_rate, weekly_completion_rate

logger = logging.getLogger(__name__)

SUGGESTION_NAMESPACE = uuid.UUID("5b8f3c1e-2a47-4d0e-9c61-7e0d2f4a9b13")

REORDER_MIN_RATE = 0.8
LOW_DAILY_RATE = 0.3
PEAK_HOUR_MIN_COMPLETIONS = 5
PEAK_WINDOW_HOURS = 2
PEAK_EXPIRY_DAYS = 7


class SuggestionType(str, Enum):
    HABIT_STREAK_RISK = "habit_streak_risk"
    HABIT_OPTIMIZATION = "habit_optimization"
    NEW_HABIT_SUGGESTION = "new_habit_suggestion"
    SCHEDULE_OPTIMIZATION = "schedule_optimization"
    COMPLETION_PATTERN = "completion_pattern"


class SuggestionPriority(int, Enum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2


@dataclass(frozen=True)
class Suggestion:
    type: SuggestionType
    priority: SuggestionPriority
    title: str
    message: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    habit_id: Optional[int] = None
    stack_id: Optional[int] = None
    dismissable: bool = True

    @property
    def id(self) -> str:
        # same condition, same text -> same identifier across passes
        key = f"{self.type.value}|{self.habit_id}|{self.stack_id}|{self.message}"
        return str(uuid.uuid5(SUGGESTION_NAMESPACE, key))


def format_hour(hour: int) -> str:
    hour = hour % 24
    period = "PM" if hour >= 12 else "AM"
    display = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{display}{period}"


@dataclass(frozen=True)
class ProductivityWindow:
    start_hour: int
    end_hour: int
    confidence: float
    evidence: str
    day_of_week: Optional[int] = None  # None = every day

    @property
    def time_description(self) -> str:
        return f"{format_hour(self.start_hour)} - {format_hour(self.end_hour)}"


@dataclass
class AnalyticsContext:
    max_suggestions: int = 10
    suggestions: list[Suggestion] = field(default_factory=list)
    at_risk: list[AtRiskHabit] = field(default_factory=list)
    productivity_windows: list[ProductivityWindow] = field(default_factory=list)
    dismissed_ids: set[str] = field(default_factory=set)


def end_of_day(now: datetime) -> datetime:
    return now.replace(hour=23, minute=59, second=59, microsecond=0)


def streak_risk_suggestions(at_risk: list[AtRiskHabit], now: datetime) -> list[Suggestion]:
    out = []
    for item in at_risk:
        if item.risk_level != RiskLevel.HIGH:
            continue
        habit = item.habit
        out.append(Suggestion(
            type=SuggestionType.HABIT_STREAK_RISK,
            priority=SuggestionPriority.HIGH,
            title=f"{habit.current_streak}-day streak at risk",
            message=f"You haven't completed '{habit.name}' today. Your streak will reset at midnight.",
            created_at=now,
            expires_at=end_of_day(now),
            habit_id=habit.id,
        ))
    return out


def reorder_suggestion(stack: models.HabitStack, now: datetime) -> Suggestion | None:
    current_order = stack.sorted_habits
    if not current_order:
        return None
    # sorted() is stable, so equal rates keep authored order
    by_rate = sorted(current_order, key=lambda h: weekly_completion_rate(h, now), reverse=True)
    best = by_rate[0]
    if best is current_order[0] or weekly_completion_rate(best, now) <= REORDER_MIN_RATE:
        return None
    return Suggestion(
        type=SuggestionType.HABIT_OPTIMIZATION,
        priority=SuggestionPriority.LOW,
        title="Stack order tip",
        message=(
            f"Consider moving '{best.name}' to the start of your stack. "
            "It has your highest completion rate."
        ),
        created_at=now,
        habit_id=best.id,
        stack_id=stack.id,
    )


def schedule_suggestion(stack: models.HabitStack, now: datetime) -> Suggestion | None:
    if not stack.habits or stack_completion_rate(stack, now) >= LOW_DAILY_RATE:
        return None
    return Suggestion(
        type=SuggestionType.SCHEDULE_OPTIMIZATION,
        priority=SuggestionPriority.MEDIUM,
        title="Schedule review",
        message=(
            f"'{stack.name}' has a low completion rate. "
            "Consider adjusting the scheduled days or reminder time."
        ),
        created_at=now,
        stack_id=stack.id,
    )


def peak_hour(habits) -> tuple[int, int] | None:
    """Busiest completion hour and its count; earliest hour wins ties."""
    counts = [0] * 24
    for habit in habits:
        for c in habit.completions:
            if c.completed_at is None:
                continue
            counts[c.completed_at.hour] += 1
    best = max(range(24), key=lambda h: (counts[h], -h))
    if counts[best] == 0:
        return None
    return best, counts[best]


def completion_pattern_insight(habits, now: datetime) -> tuple[ProductivityWindow, Suggestion] | None:
    found = peak_hour(habits)
    if found is None or found[1] <= PEAK_HOUR_MIN_COMPLETIONS:
        return None
    hour, _ = found
    window = ProductivityWindow(
        start_hour=hour,
        end_hour=hour + PEAK_WINDOW_HOURS,
        confidence=0.7,
        evidence="You complete most habits around this time",
    )
    suggestion = Suggestion(
        type=SuggestionType.COMPLETION_PATTERN,
        priority=SuggestionPriority.LOW,
        title="Peak productivity time",
        message=f"You're most productive {window.time_description}. Schedule important habits then.",
        created_at=now,
        expires_at=now + timedelta(days=PEAK_EXPIRY_DAYS),
    )
    return window, suggestion


def _admit(ctx: AnalyticsContext, pending: list[Suggestion], suggestion: Suggestion | None, now: datetime) -> None:
    if suggestion is None:
        return
    if suggestion.id in ctx.dismissed_ids:
        return
    if suggestion.expires_at is not None and suggestion.expires_at < now:
        return
    if any(s.id == suggestion.id for s in pending):
        return
    pending.append(suggestion)


def analyze(ctx: AnalyticsContext, stacks, now: datetime | None = None) -> list[Suggestion]:
    now = now or datetime.now()
    habits = [h for s in stacks for h in s.habits]

    at_risk = detect_at_risk(habits, now)
    windows: list[ProductivityWindow] = []
    pending: list[Suggestion] = []

    for suggestion in streak_risk_suggestions(at_risk, now):
        _admit(ctx, pending, suggestion, now)

    for stack in stacks:
        _admit(ctx, pending, reorder_suggestion(stack, now), now)
        _admit(ctx, pending, schedule_suggestion(stack, now), now)

    insight = completion_pattern_insight(habits, now)
    if insight is not None:
        window, suggestion = insight
        windows.append(window)
        _admit(ctx, pending, suggestion, now)

    pending.sort(key=lambda s: s.priority, reverse=True)

    ctx.at_risk = at_risk
    ctx.productivity_windows = windows
    ctx.suggestions = pending[:ctx.max_suggestions]

    logger.info(
        "analysis pass: %d habits, %d at risk, %d suggestions",
        len(habits), len(at_risk), len(ctx.suggestions),
    )
    return ctx.suggestions


def dismiss(ctx: AnalyticsContext, suggestion_id: str) -> bool:
    """Drop a suggestion and keep it suppressed for the rest of the session."""
    ctx.dismissed_ids.add(suggestion_id)
    before = len(ctx.suggestions)
    ctx.suggestions = [s for s in ctx.suggestions if s.id != suggestion_id]
    return len(ctx.suggestions) != before


def clear_suggestions(ctx: AnalyticsContext) -> None:
    ctx.suggestions = []


def active_suggestions(ctx: AnalyticsContext, limit: int = 5) -> list[Suggestion]:
    return ctx.suggestions[:limit]


def high_priority_suggestions(ctx: AnalyticsContext) -> list[Suggestion]:
    return [s for s in ctx.suggestions if s.priority == SuggestionPriority.HIGH]
