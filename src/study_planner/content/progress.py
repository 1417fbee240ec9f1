"""Completion percentages derived from the subject tree."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Subject, Topic, TopicCategory

__all__ = [
    "Progress",
    "subject_progress",
    "category_progress",
    "overall_progress",
]


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        # Half-up rounding; ``round`` would send 12.5 to 12.
        return int(math.floor(100 * self.completed / self.total + 0.5))

    @property
    def label(self) -> str:
        return f"{self.completed}/{self.total}"


def _count(topics: Iterable[Topic]) -> Progress:
    items: Sequence[Topic] = list(topics)
    return Progress(
        completed=sum(1 for topic in items if topic.completed),
        total=len(items),
    )


def subject_progress(subject: Subject) -> Progress:
    return _count(subject.topics)


def category_progress(subject: Subject) -> dict[TopicCategory, Progress]:
    """Progress per category, including categories with no topics."""
    return {
        category: _count(t for t in subject.topics if t.category is category)
        for category in TopicCategory
    }


def overall_progress(subjects: Iterable[Subject]) -> Progress:
    return _count(topic for subject in subjects for topic in subject.topics)
