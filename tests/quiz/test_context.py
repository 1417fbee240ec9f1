from __future__ import annotations

import pytest

from study_planner.content import Attachment, AttachmentKind, Topic, TopicCategory
from study_planner.errors import NoContextError
from study_planner.quiz import MAX_CONTEXT_CHARS, build_topic_context


def _topic(*attachments: Attachment) -> Topic:
    return Topic(
        id="topic-1",
        title="Mitosis",
        category=TopicCategory.MIDTERM,
        attachments=list(attachments),
    )


def _attachment(name: str, kind: AttachmentKind, payload: str) -> Attachment:
    return Attachment(id=f"att-{name}", name=name, kind=kind, payload=payload)


def test_text_attachment_contributes_contents():
    topic = _topic(_attachment("notes.txt", AttachmentKind.PLAIN_TEXT, "Prophase first."))

    assert build_topic_context(topic) == (
        "Topic: Mitosis.\nContent from notes.txt: Prophase first."
    )


def test_binary_attachments_contribute_only_their_name():
    topic = _topic(
        _attachment("cells.pdf", AttachmentKind.PDF, "data:application/pdf;base64,AAAA"),
        _attachment("notes.txt", AttachmentKind.PLAIN_TEXT, "Spindle fibres."),
        _attachment("diagram.png", AttachmentKind.IMAGE, "data:image/png;base64,BBBB"),
    )

    context = build_topic_context(topic)

    assert context.splitlines() == [
        "Topic: Mitosis.",
        "File attached: cells.pdf",
        "Content from notes.txt: Spindle fibres.",
        "File attached: diagram.png",
    ]
    assert "base64" not in context


def test_context_is_cut_at_limit():
    topic = _topic(
        _attachment("long.txt", AttachmentKind.PLAIN_TEXT, "x" * (MAX_CONTEXT_CHARS * 2))
    )

    context = build_topic_context(topic)

    assert len(context) == MAX_CONTEXT_CHARS
    assert context.startswith("Topic: Mitosis.\nContent from long.txt: x")
    assert build_topic_context(topic) == context


def test_custom_limit():
    topic = _topic(_attachment("notes.txt", AttachmentKind.PLAIN_TEXT, "abcdef"))

    assert build_topic_context(topic, max_chars=10) == "Topic: Mit"


def test_topic_without_attachments_has_no_context():
    with pytest.raises(NoContextError):
        build_topic_context(_topic())
