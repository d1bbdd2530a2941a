from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import List, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


@dataclass(frozen=True)
class StatsCard:
    period_label: str
    current_streak: int
    longest_streak: int
    completed_today: int
    total_habits: int
    total_completions: int
    average_completion_rate: float


def render_stats_card_png(card: StatsCard) -> bytes:
    fig = plt.figure(figsize=(9, 5), dpi=160)
    ax = fig.add_subplot(111)
    ax.axis("off")

    title = f"Your Progress - {card.period_label}"
    lines = [
        f"Current streak: {card.current_streak} days",
        f"Longest streak: {card.longest_streak} days",
        f"Today: {card.completed_today}/{card.total_habits} habits",
        f"Completions: {card.total_completions}",
        f"Weekly rate: {card.average_completion_rate * 100:.0f}%",
    ]

    ax.text(0.03, 0.92, title, fontsize=18, fontweight="bold", va="top")
    y = 0.80
    for ln in lines:
        ax.text(0.05, y, ln, fontsize=14, va="top")
        y -= 0.12

    buf = BytesIO()
    fig.savefig(buf, format="png", bbox_inches="tight", pad_inches=0.3)
    plt.close(fig)
    return buf.getvalue()


def render_weekly_png(points: List[Tuple[date, str, int]], title: str = "Completions this week") -> bytes:
    fig = plt.figure(figsize=(9, 4.5), dpi=160)
    ax = fig.add_subplot(111)

    labels = [p[1] for p in points]
    counts = [p[2] for p in points]

    ax.bar(range(len(points)), counts)
    ax.set_xticks(range(len(points)))
    ax.set_xticklabels(labels)
    ax.set_title(title)
    ax.set_xlabel("Day")
    ax.set_ylabel("Completions")

    buf = BytesIO()
    fig.savefig(buf, format="png", bbox_inches="tight", pad_inches=0.2)
    plt.close(fig)
    return buf.getvalue()
