"""Build the text context handed to quiz generation."""

from __future__ import annotations

from ..content.models import Topic
from ..errors import NoContextError

__all__ = ["MAX_CONTEXT_CHARS", "build_topic_context"]


MAX_CONTEXT_CHARS = 15_000


def build_topic_context(topic: Topic, *, max_chars: int = MAX_CONTEXT_CHARS) -> str:
    """Describe ``topic`` from its attachments, cut at ``max_chars``.

    Plain-text attachments contribute their contents; binary ones only their
    name. Truncation is a hard cut, so the same topic always yields the same
    context.
    """
    if not topic.attachments:
        raise NoContextError(
            f"Topic '{topic.title}' has no attachments to build a quiz from."
        )
    lines = [f"Topic: {topic.title}."]
    for attachment in topic.attachments:
        if attachment.kind.is_text:
            lines.append(f"Content from {attachment.name}: {attachment.payload}")
        else:
            lines.append(f"File attached: {attachment.name}")
    return "\n".join(lines)[:max_chars]
