from __future__ import annotations

import base64

import pytest

from study_planner.content import AttachmentKind
from study_planner.core import files
from study_planner.errors import ValidationError


def test_text_files_are_stored_inline(tmp_path):
    note = tmp_path / "notes.txt"
    note.write_text("Prophase comes first.", encoding="utf-8")

    name, kind, payload = files.attachment_from_path(note)

    assert (name, kind, payload) == (
        "notes.txt",
        AttachmentKind.PLAIN_TEXT,
        "Prophase comes first.",
    )


def test_binary_files_become_data_urls(tmp_path):
    pdf = tmp_path / "chapter.pdf"
    pdf.write_bytes(b"%PDF-1.7")

    name, kind, payload = files.attachment_from_path(pdf)

    assert name == "chapter.pdf"
    assert kind is AttachmentKind.PDF
    prefix, encoded = payload.split(",", 1)
    assert prefix == "data:application/pdf;base64"
    assert base64.b64decode(encoded) == b"%PDF-1.7"


def test_image_and_slides_kinds(tmp_path):
    image = tmp_path / "cell.png"
    image.write_bytes(b"\x89PNG")
    deck = tmp_path / "lecture.pptx"
    deck.write_bytes(b"PK")

    assert files.attachment_from_path(image)[1] is AttachmentKind.IMAGE
    assert files.attachment_from_path(deck)[1] is AttachmentKind.SLIDE_DECK


def test_encode_data_url_defaults_mime():
    assert files.encode_data_url(b"hi", None) == (
        "data:application/octet-stream;base64,aGk="
    )


def test_read_text_file_replaces_invalid_bytes(tmp_path):
    target = tmp_path / "broken.txt"
    target.write_bytes(b"ok \xff done")

    assert files.read_text_file(target) == "ok � done"


def test_attachment_from_path_requires_file(tmp_path):
    with pytest.raises(ValidationError):
        files.attachment_from_path(tmp_path)


def test_collect_upload_paths_expands_directories(tmp_path):
    folder = tmp_path / "notes"
    folder.mkdir()
    (folder / "b.txt").write_text("b", encoding="utf-8")
    (folder / "A.txt").write_text("a", encoding="utf-8")
    (folder / "nested").mkdir()
    single = tmp_path / "single.pdf"
    single.write_bytes(b"%PDF")

    collected = files.collect_upload_paths([single, folder])

    assert [path.name for path in collected] == ["single.pdf", "A.txt", "b.txt"]


def test_collect_upload_paths_rejects_missing(tmp_path):
    with pytest.raises(ValidationError):
        files.collect_upload_paths([tmp_path / "missing.txt"])
