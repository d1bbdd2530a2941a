"""Ready-made stacks a user can start from.

Presets closest to the current part of the day come first: the block the
hour falls in, then its neighbour, then everything else, each group ordered
by category name.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from . import models

DEFAULT_REMINDER_HOURS = {"morning": 7, "midday": 12, "evening": 18, "night": 21}

TIME_BLOCK_ICONS = {
    "morning": "sunrise.fill",
    "midday": "sun.max.fill",
    "evening": "sunset.fill",
    "night": "moon.stars.fill",
}


class PresetCategory(str, Enum):
    WELLNESS = "wellness"
    FITNESS = "fitness"
    PRODUCTIVITY = "productivity"
    MINDFULNESS = "mindfulness"
    SELF_CARE = "self_care"
    HEALTH = "health"
    LEARNING = "learning"
    SOCIAL = "social"
    CREATIVE = "creative"
    FINANCE = "finance"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class SuggestedStack:
    name: str
    icon: str
    time_block: str
    anchor_habit: str
    habits: tuple[str, ...]
    category: PresetCategory


CATALOGUE: tuple[SuggestedStack, ...] = (
    SuggestedStack("Morning Meditation", "brain.head.profile", "morning", "Wake up",
                   ("Drink water", "Stretch for 5 minutes", "Meditate for 10 minutes", "Set daily intention"),
                   PresetCategory.MINDFULNESS),
    SuggestedStack("Morning Skincare", "sparkles", "morning", "Wash face",
                   ("Apply toner", "Apply serum", "Moisturizer", "Sunscreen SPF"),
                   PresetCategory.SELF_CARE),
    SuggestedStack("Morning Workout", "figure.run", "morning", "Put on workout clothes",
                   ("Dynamic warmup", "30 min exercise", "Cool down stretch", "Protein shake"),
                   PresetCategory.FITNESS),
    SuggestedStack("Hydration Start", "drop.fill", "morning", "Wake up",
                   ("Drink full glass water", "Add electrolytes", "Prepare water bottle", "Set hydration reminder"),
                   PresetCategory.HEALTH),
    SuggestedStack("Creative Morning", "paintbrush.fill", "morning", "Open notebook",
                   ("Morning pages journaling", "Brainstorm ideas", "Sketch or doodle", "Plan creative project"),
                   PresetCategory.CREATIVE),
    SuggestedStack("Midday Reset", "leaf.fill", "midday", "Lunch break starts",
                   ("Step outside", "5 min walk", "Deep breathing", "Refill water"),
                   PresetCategory.WELLNESS),
    SuggestedStack("Post-Lunch Focus", "target", "midday", "Return to desk",
                   ("Clear desk", "Review afternoon tasks", "Set 90-min focus block", "Put phone away"),
                   PresetCategory.PRODUCTIVITY),
    SuggestedStack("Desk Exercise", "figure.strengthtraining.functional", "midday", "Set hourly timer",
                   ("Chair squats", "Desk pushups", "Seated leg raises", "Standing calf raises"),
                   PresetCategory.FITNESS),
    SuggestedStack("Work Shutdown", "laptopcomputer", "evening", "End of work day",
                   ("Review completed tasks", "Plan tomorrow's top 3", "Clear desk", "Close work apps"),
                   PresetCategory.PRODUCTIVITY),
    SuggestedStack("Evening Run", "figure.run", "evening", "Change into running gear",
                   ("Dynamic warmup", "30 min run", "Cool down walk", "Stretch and foam roll"),
                   PresetCategory.FITNESS),
    SuggestedStack("Quality Time", "heart.fill", "evening", "After dinner",
                   ("Put phones away", "Play game or activity", "Have real conversation", "Express appreciation"),
                   PresetCategory.SOCIAL),
    SuggestedStack("Digital Sunset", "moon.fill", "night", "8 PM",
                   ("Put phone in another room", "Turn off TV", "Dim all screens", "Switch to book"),
                   PresetCategory.WELLNESS),
    SuggestedStack("Book Club Prep", "book.fill", "night", "Evening free time",
                   ("Read assigned chapters", "Take notes", "Write questions", "Prepare discussion points"),
                   PresetCategory.LEARNING),
    SuggestedStack("Weekly Finance Review", "dollarsign.circle.fill", "night", "Sunday night",
                   ("Review spending", "Check investments", "Pay pending bills", "Adjust budget"),
                   PresetCategory.FINANCE),
)


def time_blocks_for_hour(hour: int) -> tuple[str, str]:
    """Primary and secondary time block for an hour of the day."""
    if 5 <= hour <= 10:
        return "morning", "midday"
    if 11 <= hour <= 14:
        return "midday", "morning"
    if 15 <= hour <= 18:
        return "evening", "midday"
    return "night", "evening"


def relevant_presets(now: datetime | None = None) -> list[SuggestedStack]:
    primary, secondary = time_blocks_for_hour((now or datetime.now()).hour)

    def score(preset: SuggestedStack) -> int:
        if preset.time_block == primary:
            return 0
        if preset.time_block == secondary:
            return 1
        return 2

    return sorted(CATALOGUE, key=lambda p: (score(p), p.category.label))


def find_preset(name: str) -> SuggestedStack | None:
    wanted = name.strip().lower()
    for preset in CATALOGUE:
        if preset.name.lower() == wanted:
            return preset
    return None


def build_stack(preset: SuggestedStack, reminder_hour: int | None = None, reminder_minute: int = 0,
                scheduled_days=None) -> models.HabitStack:
    """A new, unsaved stack with the anchor habit first."""
    stack = models.HabitStack(
        name=preset.name,
        time_block=preset.time_block,
        reminder_hour=DEFAULT_REMINDER_HOURS[preset.time_block] if reminder_hour is None else reminder_hour,
        reminder_minute=reminder_minute,
        scheduled_days=scheduled_days,
    )
    stack.habits.append(models.Habit(name=preset.anchor_habit, icon=TIME_BLOCK_ICONS[preset.time_block], position=0))
    for i, name in enumerate(preset.habits, start=1):
        stack.habits.append(models.Habit(name=name, position=i))
    return stack
