from __future__ import annotations

import pytest

from fixtures import build_store
from study_planner.content import (
    Progress,
    Subject,
    Topic,
    TopicCategory,
    category_progress,
    overall_progress,
    subject_progress,
)


def _subject(flags, category=TopicCategory.MIDTERM) -> Subject:
    return Subject(
        id="s",
        name="S",
        topics=[
            Topic(id=f"t{i}", title=f"T{i}", category=category, completed=flag)
            for i, flag in enumerate(flags)
        ],
    )


@pytest.mark.parametrize(
    "completed, total, percent",
    [
        (0, 0, 0),
        (0, 3, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (3, 3, 100),
    ],
)
def test_progress_percent_rounds_half_up(completed, total, percent):
    assert Progress(completed, total).percent == percent


def test_subject_progress_counts_completed_topics():
    progress = subject_progress(_subject([True, False, True]))

    assert progress == Progress(2, 3)
    assert progress.label == "2/3"
    assert progress.percent == 67


def test_subject_without_topics_is_zero_percent():
    assert subject_progress(_subject([])).percent == 0


def test_category_progress_covers_every_category():
    store = build_store()
    store.toggle_topic_completion("subj-1", "topic-2")

    progress = category_progress(store.get_subject("subj-1"))

    assert progress[TopicCategory.MIDTERM] == Progress(0, 1)
    assert progress[TopicCategory.FINAL] == Progress(1, 1)
    assert progress[TopicCategory.QUIZ] == Progress(0, 0)


def test_overall_progress_spans_subjects():
    subjects = [_subject([True, True]), _subject([False, True, False])]

    assert overall_progress(subjects) == Progress(3, 5)
    assert overall_progress([]).percent == 0


def test_percent_never_decreases_as_topics_complete():
    total = 7
    subject = _subject([False] * total)
    seen = [subject_progress(subject).percent]

    for topic in subject.topics:
        topic.completed = True
        progress = subject_progress(subject)
        assert progress.total == total
        seen.append(progress.percent)

    assert seen == sorted(seen)
    assert all(0 <= percent <= 100 for percent in seen)
    assert (seen[0], seen[-1]) == (0, 100)
