"""Subject → Topic → Attachment tree and its JSON representation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, Mapping, MutableMapping

from ..errors import PersistenceError, ValidationError

__all__ = [
    "TopicCategory",
    "AttachmentKind",
    "Attachment",
    "Topic",
    "Subject",
    "infer_kind",
]


class TopicCategory(str, Enum):
    """Assessment a topic is studied for."""

    MIDTERM = "midterm"
    FINAL = "final"
    QUIZ = "quiz"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: "str | TopicCategory") -> "TopicCategory":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        key = _CATEGORY_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unknown topic category '{value}'. Expected one of: {allowed}."
            ) from exc


class AttachmentKind(str, Enum):
    """How an attachment's payload is stored."""

    PDF = "pdf"
    SLIDE_DECK = "slide-deck"
    PLAIN_TEXT = "plain-text"
    IMAGE = "image"

    @property
    def is_text(self) -> bool:
        return self is AttachmentKind.PLAIN_TEXT

    @classmethod
    def parse(cls, value: "str | AttachmentKind") -> "AttachmentKind":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        key = _KIND_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unknown attachment kind '{value}'. Expected one of: {allowed}."
            ) from exc


_CATEGORY_ALIASES = {"mid": "midterm"}
_KIND_ALIASES = {
    "pptx": "slide-deck",
    "ppt": "slide-deck",
    "slides": "slide-deck",
    "txt": "plain-text",
    "text": "plain-text",
}
_SLIDE_SUFFIXES = {".pptx", ".ppt", ".key", ".odp"}
_TEXT_SUFFIXES = {".txt"}
_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".svg"}


def infer_kind(name: str, mime_type: str | None = None) -> AttachmentKind:
    """Classify an upload by file name, falling back to its MIME type.

    Anything unrecognised is treated as a PDF.
    """
    suffix = PurePath(name).suffix.lower()
    if suffix in _SLIDE_SUFFIXES:
        return AttachmentKind.SLIDE_DECK
    if suffix in _TEXT_SUFFIXES:
        return AttachmentKind.PLAIN_TEXT
    if (mime_type or "").lower().startswith("image/") or suffix in _IMAGE_SUFFIXES:
        return AttachmentKind.IMAGE
    return AttachmentKind.PDF


@dataclass(frozen=True)
class Attachment:
    """A file attached to a topic. Never edited after upload."""

    id: str
    name: str
    kind: AttachmentKind
    payload: str

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Attachment":
        if not isinstance(payload, Mapping):
            raise PersistenceError("Attachment record must be a mapping.")
        try:
            return cls(
                id=str(payload["id"]),
                name=str(payload["name"]),
                kind=AttachmentKind.parse(payload["kind"]),
                payload=str(payload.get("payload", "")),
            )
        except (KeyError, ValidationError) as exc:
            raise PersistenceError(f"Invalid attachment record: {exc}") from exc


@dataclass
class Topic:
    """A unit of study inside a subject."""

    id: str
    title: str
    category: TopicCategory
    completed: bool = False
    attachments: list[Attachment] = field(default_factory=list)

    @property
    def has_context(self) -> bool:
        return bool(self.attachments)

    def find_attachment(self, attachment_id: str) -> Attachment | None:
        for attachment in self.attachments:
            if attachment.id == attachment_id:
                return attachment
        return None

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category.value,
            "completed": self.completed,
            "attachments": [item.to_dict() for item in self.attachments],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Topic":
        if not isinstance(payload, Mapping):
            raise PersistenceError("Topic record must be a mapping.")
        try:
            attachments = payload.get("attachments", [])
            if not isinstance(attachments, list):
                raise PersistenceError("Topic attachments must be a list.")
            completed = payload.get("completed", False)
            if not isinstance(completed, bool):
                raise PersistenceError("Topic completed flag must be a boolean.")
            return cls(
                id=str(payload["id"]),
                title=str(payload["title"]),
                category=TopicCategory.parse(payload["category"]),
                completed=completed,
                attachments=[Attachment.from_dict(item) for item in attachments],
            )
        except (KeyError, ValidationError) as exc:
            raise PersistenceError(f"Invalid topic record: {exc}") from exc


@dataclass
class Subject:
    """Top-level syllabus unit owning an ordered list of topics."""

    id: str
    name: str
    topics: list[Topic] = field(default_factory=list)

    def find_topic(self, topic_id: str) -> Topic | None:
        for topic in self.topics:
            if topic.id == topic_id:
                return topic
        return None

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "topics": [topic.to_dict() for topic in self.topics],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Subject":
        if not isinstance(payload, Mapping):
            raise PersistenceError("Subject record must be a mapping.")
        try:
            topics = payload.get("topics", [])
            if not isinstance(topics, list):
                raise PersistenceError("Subject topics must be a list.")
            return cls(
                id=str(payload["id"]),
                name=str(payload["name"]),
                topics=[Topic.from_dict(item) for item in topics],
            )
        except KeyError as exc:
            raise PersistenceError(
                f"Subject record missing required field: {exc}"
            ) from exc
