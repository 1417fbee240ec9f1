"""Shared testing fixtures and fakes for the study_planner test suite."""

from .ai import FakeChatClient, FakeContentService, quiz_item, quiz_json  # noqa: F401
from .content import SequentialIds, build_store  # noqa: F401

__all__ = [
    "FakeChatClient",
    "FakeContentService",
    "SequentialIds",
    "build_store",
    "quiz_item",
    "quiz_json",
]
