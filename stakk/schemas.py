from pydantic import BaseModel, Field, field_validator
from typing import Annotated, List, Literal, Optional
from datetime import date, datetime

TimeBlock = Literal["morning", "midday", "evening", "night"]
Weekday = Annotated[int, Field(ge=1, le=7)]  # ISO, 1 = Monday


class HabitIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    icon: str = Field(default="circle.fill", max_length=64)


class HabitOut(BaseModel):
    id: int
    name: str
    icon: str
    position: int
    current_streak: int
    longest_streak: int
    total_completions: int
    last_completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StackCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    time_block: TimeBlock = "morning"
    color_name: str = Field(default="nebulaGold", max_length=32)
    reminder_hour: int = Field(ge=0, le=23)
    reminder_minute: int = Field(default=0, ge=0, le=59)
    scheduled_days: List[Weekday] = Field(default_factory=list)
    habits: List[HabitIn] = Field(min_length=1)


class StackUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    time_block: Optional[TimeBlock] = None
    color_name: Optional[str] = Field(default=None, max_length=32)
    reminder_hour: Optional[int] = Field(default=None, ge=0, le=23)
    reminder_minute: Optional[int] = Field(default=None, ge=0, le=59)
    scheduled_days: Optional[List[Weekday]] = None
    habit_order: Optional[List[int]] = None  # habit ids, anchor first


class StackOut(BaseModel):
    id: int
    name: str
    time_block: str
    color_name: str
    reminder_hour: int
    reminder_minute: int
    scheduled_days: List[int]
    is_every_day: bool
    anchor_habit: str
    habits: List[HabitOut]
    created_at: datetime

    @field_validator("scheduled_days", mode="before")
    @classmethod
    def _sorted_days(cls, v):
        return sorted(v)

    class Config:
        from_attributes = True


class CompletionCreate(BaseModel):
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    mood: Optional[str] = Field(default=None, max_length=32)
    energy: Optional[int] = Field(default=None, ge=1, le=5)

    @field_validator("completed_at")
    @classmethod
    def _local_naive(cls, v):
        # the ledger works in naive local time
        if v is not None and v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v


class CompletionOut(BaseModel):
    id: int
    habit_id: int
    completed_at: datetime
    duration_seconds: Optional[int] = None
    mood: Optional[str] = None
    energy: Optional[int] = None

    class Config:
        from_attributes = True


class SuggestionOut(BaseModel):
    id: str
    type: str
    priority: str
    title: str
    message: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    habit_id: Optional[int] = None
    stack_id: Optional[int] = None
    dismissable: bool


class AtRiskOut(BaseModel):
    habit_id: int
    habit_name: str
    risk_level: str
    reason: str
    description: str
    suggested_action: str


class StatsOut(BaseModel):
    total_stacks: int
    total_habits: int
    completed_today: int
    total_completions: int
    current_streak: int
    longest_streak: int
    average_completion_rate: float


class AuthorizationIn(BaseModel):
    authorized: bool


class NotificationOut(BaseModel):
    identifier: str
    title: str
    body: str
    hour: int
    minute: int
    badge: int
    repeats: bool


class PresetOut(BaseModel):
    name: str
    icon: str
    time_block: str
    category: str
    anchor_habit: str
    habits: List[str]
    default_reminder_hour: int


class PresetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    reminder_hour: Optional[int] = Field(default=None, ge=0, le=23)
    reminder_minute: int = Field(default=0, ge=0, le=59)
    scheduled_days: List[Weekday] = Field(default_factory=list)


class TodaySectionOut(BaseModel):
    time_block: str
    complete: bool
    stacks: List[StackOut]


class TodayOut(BaseModel):
    day: date
    sections: List[TodaySectionOut]
