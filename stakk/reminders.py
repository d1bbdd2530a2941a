"""Grouped reminder scheduling.

Stacks whose reminder times land in the same 30-minute slot share a single
daily notification. Every pass clears what is pending and rebuilds it from
scratch.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from . import models

logger = logging.getLogger(__name__)

BUCKET_MINUTES = 30


@dataclass(frozen=True)
class NotificationRequest:
    identifier: str
    title: str
    body: str
    hour: int
    minute: int
    badge: int = 1
    repeats: bool = True


class NotificationCenter(Protocol):
    def remove_all_pending(self) -> None: ...

    def remove_all_delivered(self) -> None: ...

    def add(self, request: NotificationRequest) -> None: ...


class InMemoryNotificationCenter:
    """Keeps requests in process; stands in for the platform delivery service."""

    def __init__(self):
        self.pending: dict[str, NotificationRequest] = {}
        self.delivered: list[NotificationRequest] = []

    def remove_all_pending(self) -> None:
        self.pending.clear()

    def remove_all_delivered(self) -> None:
        self.delivered.clear()

    def add(self, request: NotificationRequest) -> None:
        self.pending[request.identifier] = request


def bucket_key(hour: int, minute: int) -> tuple[int, int]:
    return hour, (minute // BUCKET_MINUTES) * BUCKET_MINUTES


def group_stacks(stacks) -> dict[tuple[int, int], list[models.HabitStack]]:
    groups: dict[tuple[int, int], list[models.HabitStack]] = {}
    for stack in stacks:
        hour, minute = stack.reminder_hour, stack.reminder_minute
        if hour is None or minute is None:
            logger.warning("stack %r has no reminder time, skipped", stack.name)
            continue
        groups.setdefault(bucket_key(hour, minute), []).append(stack)
    return dict(sorted(groups.items()))


def _habits(n: int) -> str:
    return f"{n} habit" if n == 1 else f"{n} habits"


def compose_request(key: tuple[int, int], stacks: list[models.HabitStack]) -> NotificationRequest:
    hour, minute = key
    if len(stacks) == 1:
        stack = stacks[0]
        title = f"Time for {stack.name}"
        body = f"You have {_habits(len(stack.habits))} to complete. Start with: {stack.anchor_habit}"
    else:
        total = sum(len(s.habits) for s in stacks)
        title = "Time for your habits!"
        if len(stacks) == 2:
            body = f"{stacks[0].name} and {stacks[1].name} are ready. {_habits(total)} total."
        else:
            body = f"{stacks[0].name} and {len(stacks) - 1} other stacks are ready. {_habits(total)} total."

    return NotificationRequest(
        identifier=f"habitstack-{hour}-{minute}",
        title=title,
        body=body,
        hour=hour,
        minute=minute,
        badge=len(stacks),
    )


def schedule_reminders(stacks, center: NotificationCenter, authorized: bool) -> list[NotificationRequest]:
    center.remove_all_pending()

    if not authorized:
        logger.info("notifications not authorized, pending reminders cleared")
        return []

    submitted = []
    for key, group in group_stacks(stacks).items():
        request = compose_request(key, group)
        try:
            center.add(request)
        except Exception:
            logger.exception("failed to schedule %s", request.identifier)
            continue
        submitted.append(request)

    logger.info("scheduled %d reminder(s) for %d stack(s)", len(submitted), len(stacks))
    return submitted


def cancel_all(center: NotificationCenter) -> None:
    center.remove_all_pending()
    center.remove_all_delivered()
