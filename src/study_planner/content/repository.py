"""Durable storage for the subject tree."""

from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence

from ..errors import PersistenceError
from .models import Subject

__all__ = [
    "ContentRepository",
    "JsonContentRepository",
    "MemoryContentRepository",
    "FORMAT_VERSION",
]


FORMAT_VERSION = 1
_LOCK_TIMEOUT_SECONDS = 5.0


class ContentRepository(Protocol):
    """Persistence collaborator used by :class:`~.store.ContentStore`."""

    def load(self) -> list[Subject] | None:
        """Return the stored tree, or ``None`` when nothing was saved yet."""

    def save(self, subjects: Sequence[Subject]) -> None:
        """Replace the stored tree with ``subjects``."""


class MemoryContentRepository:
    """Keeps a serialized copy in memory; nothing survives the process."""

    def __init__(self, subjects: Sequence[Subject] | None = None) -> None:
        self._payload: list[dict[str, Any]] | None = None
        if subjects is not None:
            self.save(subjects)

    def load(self) -> list[Subject] | None:
        if self._payload is None:
            return None
        return [Subject.from_dict(item) for item in self._payload]

    def save(self, subjects: Sequence[Subject]) -> None:
        self._payload = [dict(subject.to_dict()) for subject in subjects]


class JsonContentRepository:
    """Store the whole tree as one JSON document, replaced atomically."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Subject] | None:
        if not self._path.exists():
            return None
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(
                f"Failed to read content file: {self._path}"
            ) from exc
        return _subjects_from_document(document, self._path)

    def save(self, subjects: Sequence[Subject]) -> None:
        document = {
            "version": FORMAT_VERSION,
            "subjects": [subject.to_dict() for subject in subjects],
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with _FileLock(self._path.with_name(self._path.name + ".lock")):
                _atomic_write_json(self._path, document)
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write content file: {self._path}"
            ) from exc


def _subjects_from_document(document: Any, path: Path) -> list[Subject]:
    # Early releases stored a bare list of subjects.
    if isinstance(document, list):
        records = document
    elif isinstance(document, dict):
        version = document.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise PersistenceError(
                f"Unsupported content format version {version!r} in {path}"
            )
        records = document.get("subjects", [])
    else:
        raise PersistenceError(f"Content file has unexpected shape: {path}")
    if not isinstance(records, list):
        raise PersistenceError(f"'subjects' must be a list in {path}")
    subjects = [Subject.from_dict(item) for item in records]
    _require_unique_ids(subjects, path)
    return subjects


def _require_unique_ids(subjects: Sequence[Subject], path: Path) -> None:
    """Reject trees where an id repeats within its scope."""
    _check_unique((subject.id for subject in subjects), "subject", path)
    for subject in subjects:
        _check_unique(
            (topic.id for topic in subject.topics), f"topic in {subject.id}", path
        )
        for topic in subject.topics:
            _check_unique(
                (item.id for item in topic.attachments),
                f"attachment in {topic.id}",
                path,
            )


def _check_unique(ids: Iterable[str], scope: str, path: Path) -> None:
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise PersistenceError(f"Duplicate {scope} id {item_id!r} in {path}")
        seen.add(item_id)


class _FileLock:
    """Exclusive-create lock file guarding a single writer."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def __enter__(self) -> "_FileLock":
        deadline = time.time() + _LOCK_TIMEOUT_SECONDS
        while True:
            try:
                fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.close(fd)
                return self
            except FileExistsError:
                if time.time() > deadline:
                    raise PersistenceError(
                        f"Timed out waiting for content lock: {self._path}"
                    )
                time.sleep(0.05)

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self._path.unlink(missing_ok=True)


def _atomic_write_json(path: Path, payload: Any) -> None:
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        prefix=f".{path.name}.",
    )
    try:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
        handle.flush()
        os.fsync(handle.fileno())
    finally:
        handle.close()
    os.replace(handle.name, path)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
