"""At-risk habit detection.

Every habit gets at most one classification. Rules are checked in a fixed
order and the first one that matches wins, so a long streak under pressure
hides a low weekly rate for the same habit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from . import models
from .services import weekly_completion_rate

logger = logging.getLogger(__name__)

LONG_STREAK_DAYS = 7
HIGH_RISK_STREAK_DAYS = 14
MIN_PROTECTED_STREAK = 3
HOURS_BEFORE_RISK = 20
MISSED_AFTER_DAYS = 2
DECLINING_RATE = 0.5
MIN_COMPLETIONS_FOR_RATE = 7


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AtRiskReason(str, Enum):
    DECLINING_RATE = "declining_rate"
    MISSED_RECENTLY = "missed_recently"
    NEVER_ON_THIS_DAY = "never_on_this_day"
    LONG_STREAK = "long_streak"

    @property
    def description(self) -> str:
        return {
            AtRiskReason.DECLINING_RATE: "Completion rate is dropping",
            AtRiskReason.MISSED_RECENTLY: "Missed recently",
            AtRiskReason.NEVER_ON_THIS_DAY: "You rarely complete this on this day",
            AtRiskReason.LONG_STREAK: "Long streak at risk",
        }[self]


@dataclass(frozen=True)
class Never:
    pass


@dataclass(frozen=True)
class At:
    timestamp: datetime


LastCompletion = Never | At


def last_completion(habit: models.Habit) -> LastCompletion:
    if habit.last_completed_at is None:
        return Never()
    return At(habit.last_completed_at)


@dataclass(frozen=True)
class AtRiskHabit:
    habit: models.Habit
    risk_level: RiskLevel
    reason: AtRiskReason
    suggested_action: str


def is_streak_at_risk(habit: models.Habit, now: datetime) -> bool:
    if habit.current_streak < MIN_PROTECTED_STREAK:
        return False
    match last_completion(habit):
        case Never():
            return True
        case At(timestamp=ts):
            return (now - ts).total_seconds() / 3600 >= HOURS_BEFORE_RISK


def days_since_completion(habit: models.Habit, now: datetime) -> int | None:
    match last_completion(habit):
        case Never():
            return None
        case At(timestamp=ts):
            return (now.date() - ts.date()).days


def check_habit(habit: models.Habit, now: datetime | None = None) -> AtRiskHabit | None:
    now = now or datetime.now()

    if habit.current_streak >= LONG_STREAK_DAYS and is_streak_at_risk(habit, now):
        return AtRiskHabit(
            habit=habit,
            risk_level=RiskLevel.HIGH if habit.current_streak >= HIGH_RISK_STREAK_DAYS else RiskLevel.MEDIUM,
            reason=AtRiskReason.LONG_STREAK,
            suggested_action=f"Complete this habit today to maintain your {habit.current_streak}-day streak",
        )

    days = days_since_completion(habit, now)
    if days is not None and days >= MISSED_AFTER_DAYS and habit.current_streak == 0:
        return AtRiskHabit(
            habit=habit,
            risk_level=RiskLevel.LOW,
            reason=AtRiskReason.MISSED_RECENTLY,
            suggested_action=f"Get back on track with '{habit.name}'",
        )

    if weekly_completion_rate(habit, now) < DECLINING_RATE and habit.total_completions > MIN_COMPLETIONS_FOR_RATE:
        return AtRiskHabit(
            habit=habit,
            risk_level=RiskLevel.MEDIUM,
            reason=AtRiskReason.DECLINING_RATE,
            suggested_action=(
                f"Your completion rate for '{habit.name}' has dropped. "
                "Consider adjusting the time or frequency."
            ),
        )

    return None


def detect_at_risk(habits: Iterable[models.Habit], now: datetime | None = None) -> list[AtRiskHabit]:
    now = now or datetime.now()
    out = []
    for habit in habits:
        try:
            result = check_habit(habit, now)
        except (TypeError, ValueError, AttributeError):
            logger.warning("skipping habit %r: completion data could not be evaluated", getattr(habit, "id", None))
            continue
        if result is not None:
            out.append(result)
    return out
