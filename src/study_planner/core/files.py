"""File ingestion helpers: turn uploaded files into attachment triples."""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Iterable, List

from ..content.models import AttachmentKind, infer_kind
from ..errors import ValidationError

__all__ = [
    "read_text_file",
    "encode_data_url",
    "attachment_from_path",
    "collect_upload_paths",
]


def read_text_file(path: Path) -> str:
    """Read a text file as UTF-8 with replacement for decode errors."""
    with Path(path).open("r", encoding="utf-8", errors="replace") as fh:
        return fh.read()


def encode_data_url(data: bytes, mime_type: str | None) -> str:
    """Encode ``data`` as a base64 ``data:`` URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'application/octet-stream'};base64,{encoded}"


def attachment_from_path(path: Path) -> tuple[str, AttachmentKind, str]:
    """Return ``(name, kind, payload)`` for an uploaded file.

    Plain text keeps its contents inline; every other kind is stored as an
    opaque data URL and never parsed.
    """
    source = Path(path)
    if not source.is_file():
        raise ValidationError(f"Not a file: {source}")
    mime_type, _ = mimetypes.guess_type(source.name)
    kind = infer_kind(source.name, mime_type)
    if kind is AttachmentKind.PLAIN_TEXT:
        return source.name, kind, read_text_file(source)
    return source.name, kind, encode_data_url(source.read_bytes(), mime_type)


def collect_upload_paths(paths: Iterable[Path]) -> List[Path]:
    """Expand the given paths into files, preserving input order.

    Directories contribute their direct children sorted by name.
    """
    files: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(
                sorted(
                    (child for child in path.iterdir() if child.is_file()),
                    key=lambda p: p.name.lower(),
                )
            )
        elif path.is_file():
            files.append(path)
        else:
            raise ValidationError(f"Input not found: {path}")
    return files
