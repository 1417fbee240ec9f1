"""In-memory subject tree with invariant-preserving mutators.

The store is the single source of truth for subjects, topics and
attachments. Every successful mutation is followed by a save of the full tree
through the configured repository. A failed save never undoes the mutation:
the error is logged and kept on :attr:`ContentStore.persistence_error` until
the next successful save, so data written since the last good save can be lost
if the process exits first.

Mutations are not safe to interleave; one logical owner drives the store.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable, Sequence

from ..errors import NotFoundError, PersistenceError, ValidationError
from .models import (
    Attachment,
    AttachmentKind,
    Subject,
    Topic,
    TopicCategory,
)
from .repository import ContentRepository, MemoryContentRepository

__all__ = ["ContentStore", "TopicSpec"]

logger = logging.getLogger(__name__)

TopicSpec = tuple[str, "str | TopicCategory"]
IdFactory = Callable[[str], str]

_MAX_ID_ATTEMPTS = 16


def _random_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class ContentStore:
    """Owns the Subject → Topic → Attachment tree."""

    def __init__(
        self,
        repository: ContentRepository | None = None,
        *,
        subjects: Iterable[Subject] = (),
        id_factory: IdFactory = _random_id,
    ) -> None:
        self._repository = repository or MemoryContentRepository()
        self._subjects: list[Subject] = list(subjects)
        self._new_id = id_factory
        self.persistence_error: PersistenceError | None = None

    @classmethod
    def open(
        cls,
        repository: ContentRepository,
        *,
        id_factory: IdFactory = _random_id,
    ) -> "ContentStore":
        """Load the persisted tree once and return a store over it.

        Raises :class:`PersistenceError` when the stored tree is unreadable;
        starting empty would overwrite it on the next save.
        """
        subjects = repository.load() or []
        logger.info(
            "Loaded content tree",
            extra={"subject_count": len(subjects)},
        )
        return cls(repository, subjects=subjects, id_factory=id_factory)

    # Queries -----------------------------------------------------------

    def subjects(self) -> tuple[Subject, ...]:
        return tuple(self._subjects)

    def get_subject(self, subject_id: str) -> Subject:
        for subject in self._subjects:
            if subject.id == subject_id:
                return subject
        raise NotFoundError(f"Subject not found: {subject_id}")

    def get_topic(self, subject_id: str, topic_id: str) -> Topic:
        subject = self.get_subject(subject_id)
        topic = subject.find_topic(topic_id)
        if topic is None:
            raise NotFoundError(
                f"Topic not found: {topic_id} (subject {subject_id})"
            )
        return topic

    def topics_by_category(
        self, subject_id: str
    ) -> dict[TopicCategory, list[Topic]]:
        """Group a subject's topics by category, keeping topic order."""
        grouped: dict[TopicCategory, list[Topic]] = {
            category: [] for category in TopicCategory
        }
        for topic in self.get_subject(subject_id).topics:
            grouped[topic.category].append(topic)
        return grouped

    # Mutations ---------------------------------------------------------

    def create_subject(
        self, name: str, initial_topics: Sequence[TopicSpec] = ()
    ) -> Subject:
        clean_name = _require_text(name, "Subject name")
        specs = [
            (_require_text(title, "Topic title"), TopicCategory.parse(category))
            for title, category in initial_topics
        ]
        subject_id = self._unique_id(
            "subj", {subject.id for subject in self._subjects}
        )
        subject = Subject(id=subject_id, name=clean_name)
        for title, category in specs:
            subject.topics.append(self._new_topic(subject, title, category))
        self._subjects.insert(0, subject)
        logger.info(
            "Created subject",
            extra={"subject_id": subject.id, "topic_count": len(specs)},
        )
        self._persist()
        return subject

    def add_topic(
        self, subject_id: str, title: str, category: "str | TopicCategory"
    ) -> Subject:
        subject = self.get_subject(subject_id)
        clean_title = _require_text(title, "Topic title")
        parsed = TopicCategory.parse(category)
        topic = self._new_topic(subject, clean_title, parsed)
        subject.topics.append(topic)
        logger.info(
            "Added topic",
            extra={
                "subject_id": subject.id,
                "topic_id": topic.id,
                "category": parsed.value,
            },
        )
        self._persist()
        return subject

    def toggle_topic_completion(self, subject_id: str, topic_id: str) -> Subject:
        subject = self.get_subject(subject_id)
        topic = self.get_topic(subject_id, topic_id)
        topic.completed = not topic.completed
        logger.info(
            "Toggled topic completion",
            extra={
                "subject_id": subject.id,
                "topic_id": topic.id,
                "completed": topic.completed,
            },
        )
        self._persist()
        return subject

    def add_attachment(
        self,
        subject_id: str,
        topic_id: str,
        name: str,
        kind: "str | AttachmentKind",
        payload: str,
    ) -> Subject:
        subject = self.get_subject(subject_id)
        topic = self.get_topic(subject_id, topic_id)
        clean_name = _require_text(name, "Attachment name")
        parsed = AttachmentKind.parse(kind)
        if not isinstance(payload, str):
            raise ValidationError("Attachment payload must be text or a data URL.")
        attachment = Attachment(
            id=self._unique_id("att", {item.id for item in topic.attachments}),
            name=clean_name,
            kind=parsed,
            payload=payload,
        )
        topic.attachments.append(attachment)
        logger.info(
            "Attached file",
            extra={
                "subject_id": subject.id,
                "topic_id": topic.id,
                "attachment_id": attachment.id,
                "kind": parsed.value,
            },
        )
        self._persist()
        return subject

    def delete_attachment(
        self, subject_id: str, topic_id: str, attachment_id: str
    ) -> Subject:
        subject = self.get_subject(subject_id)
        topic = self.get_topic(subject_id, topic_id)
        attachment = topic.find_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError(f"Attachment not found: {attachment_id}")
        topic.attachments.remove(attachment)
        logger.info(
            "Removed attachment",
            extra={"topic_id": topic.id, "attachment_id": attachment_id},
        )
        self._persist()
        return subject

    def delete_subject(self, subject_id: str) -> Subject:
        """Remove a subject together with all of its topics and attachments."""
        subject = self.get_subject(subject_id)
        self._subjects = [item for item in self._subjects if item is not subject]
        logger.info(
            "Deleted subject",
            extra={"subject_id": subject.id, "topic_count": len(subject.topics)},
        )
        self._persist()
        return subject

    # Internals ---------------------------------------------------------

    def _new_topic(
        self, subject: Subject, title: str, category: TopicCategory
    ) -> Topic:
        topic_id = self._unique_id("topic", {topic.id for topic in subject.topics})
        return Topic(id=topic_id, title=title, category=category)

    def _unique_id(self, prefix: str, taken: set[str]) -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = self._new_id(prefix)
            if candidate not in taken:
                return candidate
        raise RuntimeError(f"Failed to allocate a unique {prefix} id.")

    def _persist(self) -> None:
        try:
            self._repository.save(self._subjects)
        except PersistenceError as exc:
            self.persistence_error = exc
            logger.error(
                "Failed to persist content tree; in-memory change kept",
                extra={"error": str(exc)},
            )
            return
        self.persistence_error = None


def _require_text(value: object, label: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{label} must not be empty.")
    return text
