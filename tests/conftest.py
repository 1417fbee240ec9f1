from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

# Ensure src/ is importable when the package is not installed
ROOT = TESTS_DIR.parent
for extra in (ROOT, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import (  # noqa: E402
    FakeChatClient,
    FakeContentService,
    build_store,
    quiz_json,
)
from study_planner.core.logging import reset_logger  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch) -> Iterator[None]:
    monkeypatch.delenv("STUDY_PLANNER_HOME", raising=False)
    monkeypatch.delenv("STUDY_PLANNER_CONFIG", raising=False)
    yield
    reset_logger()


@pytest.fixture
def fake_service() -> FakeContentService:
    """Content service returning queued responses (five valid questions by default)."""

    return FakeContentService(default=quiz_json(5))


@pytest.fixture
def fake_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def store():
    """Store holding one subject with a note-backed topic and an empty one."""

    return build_store()
