from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship, validates
from datetime import date, datetime
from .db import Base

# ISO weekdays: 1 = Monday ... 7 = Sunday
ALL_DAYS = frozenset(range(1, 8))
TIME_BLOCKS = ("morning", "midday", "evening", "night")


def parse_days(raw: str | None) -> set[int]:
    if not raw:
        return set(ALL_DAYS)
    days = set()
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit() and int(part) in ALL_DAYS:
            days.add(int(part))
    return days or set(ALL_DAYS)


def format_days(days) -> str:
    # empty means "every day"; normalized here so nothing downstream has to care
    days = {int(d) for d in days if int(d) in ALL_DAYS} or set(ALL_DAYS)
    return ",".join(str(d) for d in sorted(days))


class HabitStack(Base):
    __tablename__ = "habit_stacks"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    time_block = Column(String(16), default="morning", nullable=False)
    color_name = Column(String(32), default="nebulaGold", nullable=False)
    reminder_hour = Column(Integer, default=8, nullable=False)
    reminder_minute = Column(Integer, default=0, nullable=False)
    scheduled_days_raw = Column(String(32), default="1,2,3,4,5,6,7", nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    habits = relationship(
        "Habit", back_populates="stack", cascade="all, delete-orphan", order_by="Habit.position"
    )

    def __init__(self, scheduled_days=None, **kwargs):
        kwargs.setdefault("time_block", "morning")
        kwargs.setdefault("color_name", "nebulaGold")
        kwargs.setdefault("reminder_hour", 8)
        kwargs.setdefault("reminder_minute", 0)
        kwargs.setdefault("created_at", datetime.now())
        if scheduled_days is not None:
            kwargs["scheduled_days_raw"] = format_days(scheduled_days)
        kwargs.setdefault("scheduled_days_raw", format_days(ALL_DAYS))
        super().__init__(**kwargs)

    @validates("scheduled_days_raw")
    def _normalize_days(self, key, value):
        return format_days(parse_days(value))

    @property
    def scheduled_days(self) -> set[int]:
        return parse_days(self.scheduled_days_raw)

    @scheduled_days.setter
    def scheduled_days(self, days) -> None:
        self.scheduled_days_raw = format_days(days)

    @property
    def is_every_day(self) -> bool:
        return self.scheduled_days == set(ALL_DAYS)

    def should_show_on(self, day: date) -> bool:
        return day.isoweekday() in self.scheduled_days

    @property
    def sorted_habits(self) -> list["Habit"]:
        return sorted(self.habits, key=lambda h: h.position)

    @property
    def anchor_habit(self) -> str:
        ordered = self.sorted_habits
        return ordered[0].name if ordered else ""


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True)
    stack_id = Column(Integer, ForeignKey("habit_stacks.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(120), nullable=False)
    icon = Column(String(64), default="circle.fill", nullable=False)
    position = Column(Integer, default=0, nullable=False)
    current_streak = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    total_completions = Column(Integer, default=0, nullable=False)
    last_completed_at = Column(DateTime, nullable=True)

    stack = relationship("HabitStack", back_populates="habits")
    completions = relationship(
        "Completion", back_populates="habit", cascade="all, delete-orphan", order_by="Completion.completed_at"
    )

    __table_args__ = (
        Index("ix_habits_stack_position", "stack_id", "position"),
    )

    def __init__(self, **kwargs):
        # counters must be usable before the first flush
        kwargs.setdefault("icon", "circle.fill")
        kwargs.setdefault("position", 0)
        kwargs.setdefault("current_streak", 0)
        kwargs.setdefault("longest_streak", 0)
        kwargs.setdefault("total_completions", 0)
        super().__init__(**kwargs)


class Completion(Base):
    __tablename__ = "completions"

    id = Column(Integer, primary_key=True)
    habit_id = Column(Integer, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False)
    completed_at = Column(DateTime, default=datetime.now, nullable=False)
    duration_seconds = Column(Integer, nullable=True)
    mood = Column(String(32), nullable=True)
    energy = Column(Integer, nullable=True)

    habit = relationship("Habit", back_populates="completions")

    __table_args__ = (
        Index("ix_completions_habit_time", "habit_id", "completed_at"),
    )
