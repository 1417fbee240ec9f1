"""Quiz session state machine and the engine that drives it.

A session moves ``LOADING -> ACTIVE -> FINISHED`` or ``LOADING -> FAILED``.
While ``ACTIVE`` the first answer to each question is scored and an advance to
the next question is scheduled after a short feedback delay. Closing a session
cancels that pending advance and drops any generation result that arrives
afterwards. Sessions live only in memory and never write back to the content
store.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Callable, Optional, Protocol, Sequence

from ..content.store import ContentStore
from ..errors import (
    INVALID_OUTPUT,
    GenerationFailedError,
    NotFoundError,
    ValidationError,
)
from .context import MAX_CONTEXT_CHARS, build_topic_context
from .generator import (
    DEFAULT_QUESTION_COUNT,
    ContentService,
    GenerationResult,
    QuizQuestion,
    generate_quiz,
)

__all__ = [
    "DEFAULT_ADVANCE_DELAY",
    "SessionState",
    "AnswerFeedback",
    "ScheduledCall",
    "Scheduler",
    "ManualScheduler",
    "AsyncioScheduler",
    "QuizSession",
    "QuizEngine",
]

logger = logging.getLogger(__name__)

DEFAULT_ADVANCE_DELAY = 1.0


class SessionState(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass(frozen=True)
class AnswerFeedback:
    """What the caller needs to render right after an answer."""

    question_index: int
    selected_index: int
    correct_index: int
    is_correct: bool
    score: int


class ScheduledCall(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Deferred, cancelable callbacks."""

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> ScheduledCall:
        ...


class _ManualCall:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Hold callbacks until :meth:`run_pending` is called.

    The terminal runner waits out the delay itself and then runs the queue.
    """

    def __init__(self) -> None:
        self._queue: list[_ManualCall] = []

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> ScheduledCall:
        call = _ManualCall(delay, callback)
        self._queue.append(call)
        return call

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if not call.cancelled)

    def run_pending(self) -> int:
        """Run every queued, non-cancelled callback; return how many ran."""
        queue, self._queue = self._queue, []
        ran = 0
        for call in queue:
            if call.cancelled:
                continue
            call.callback()
            ran += 1
        return ran


class AsyncioScheduler:
    """Schedule on an asyncio event loop (the running one by default)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> ScheduledCall:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


@dataclass(eq=False)
class QuizSession:
    """One run through a generated quiz."""

    session_id: str
    subject_id: str
    topic_id: str
    topic_title: str
    context: str
    state: SessionState = SessionState.LOADING
    questions: tuple[QuizQuestion, ...] = ()
    current_index: int = 0
    score: int = 0
    selected_index: Optional[int] = None
    error: Optional[GenerationFailedError] = None
    closed: bool = False
    _pending_advance: Optional[ScheduledCall] = field(
        default=None, init=False, repr=False
    )

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.FINISHED, SessionState.FAILED)

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.state is not SessionState.ACTIVE:
            return None
        return self.questions[self.current_index]

    @property
    def advance_pending(self) -> bool:
        return self._pending_advance is not None

    def activate(self, questions: Sequence[QuizQuestion]) -> None:
        if self.state is not SessionState.LOADING:
            raise RuntimeError(f"Cannot activate a session in state {self.state}")
        if not questions:
            raise ValueError("an active session needs at least one question")
        self.questions = tuple(questions)
        self.current_index = 0
        self.score = 0
        self.selected_index = None
        self.state = SessionState.ACTIVE

    def fail(self, error: GenerationFailedError) -> None:
        if self.state is not SessionState.LOADING:
            raise RuntimeError(f"Cannot fail a session in state {self.state}")
        self.error = error
        self.state = SessionState.FAILED

    def answer(
        self,
        index: int,
        schedule_advance: Optional[Callable[[], ScheduledCall]] = None,
    ) -> Optional[AnswerFeedback]:
        """Record the answer for the current question.

        Returns ``None`` (and changes nothing) when the session is not active
        or the current question was already answered. ``schedule_advance`` runs
        before anything is recorded, so a scheduler error leaves the question
        unanswered.
        """
        question = self.current_question
        if question is None or self.selected_index is not None:
            return None
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError("Answer must be an option index.")
        if not 0 <= index < len(question.options):
            raise ValidationError(
                f"Answer {index} is outside 0-{len(question.options) - 1}."
            )
        if schedule_advance is not None:
            self._pending_advance = schedule_advance()
        self.selected_index = index
        correct = question.is_correct(index)
        if correct:
            self.score += 1
        return AnswerFeedback(
            question_index=self.current_index,
            selected_index=index,
            correct_index=question.correct_index,
            is_correct=correct,
            score=self.score,
        )

    def advance(self) -> None:
        """Move past an answered question, finishing after the last one."""
        self._pending_advance = None
        if self.state is not SessionState.ACTIVE or self.selected_index is None:
            return
        self.selected_index = None
        if self.current_index >= len(self.questions) - 1:
            self.state = SessionState.FINISHED
        else:
            self.current_index += 1

    def dispose(self) -> None:
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None
        self.closed = True


class QuizEngine:
    """Caller-facing surface: start, answer and close quiz sessions."""

    def __init__(
        self,
        store: ContentStore,
        service: ContentService,
        *,
        scheduler: Scheduler,
        question_count: int = DEFAULT_QUESTION_COUNT,
        advance_delay: float = DEFAULT_ADVANCE_DELAY,
        context_max_chars: int = MAX_CONTEXT_CHARS,
    ) -> None:
        self._store = store
        self._service = service
        self._scheduler = scheduler
        self.question_count = question_count
        self.advance_delay = advance_delay
        self.context_max_chars = context_max_chars
        self._sessions: dict[str, QuizSession] = {}

    def start_quiz(self, subject_id: str, topic_id: str) -> QuizSession:
        """Create a LOADING session for a topic.

        Raises :class:`NotFoundError` for unknown ids and
        :class:`~study_planner.errors.NoContextError` for a topic without
        attachments; in both cases no session is created.
        """
        topic = self._store.get_topic(subject_id, topic_id)
        context = build_topic_context(topic, max_chars=self.context_max_chars)
        session = QuizSession(
            session_id=uuid.uuid4().hex,
            subject_id=subject_id,
            topic_id=topic.id,
            topic_title=topic.title,
            context=context,
        )
        self._sessions[session.session_id] = session
        logger.info(
            "Started quiz session",
            extra={
                "session_id": session.session_id,
                "topic_id": topic.id,
                "context_chars": len(context),
            },
        )
        return session

    def get_session(self, session_id: str) -> QuizSession:
        try:
            return self._sessions[session_id]
        except KeyError as exc:
            raise NotFoundError(f"Quiz session not found: {session_id}") from exc

    def load(self, session: QuizSession) -> QuizSession:
        """Generate questions synchronously and deliver them to ``session``."""
        result = generate_quiz(
            session.context, self._service, count=self.question_count
        )
        self.deliver(session, result)
        return session

    async def load_async(self, session: QuizSession) -> QuizSession:
        """Like :meth:`load`, with the service call off the event loop."""
        result = await asyncio.to_thread(
            generate_quiz,
            session.context,
            self._service,
            count=self.question_count,
        )
        self.deliver(session, result)
        return session

    def deliver(self, session: QuizSession, result: GenerationResult) -> bool:
        """Apply a generation result; return ``False`` if it was discarded.

        Results are only applied to the exact session object still registered
        under its id and still LOADING.
        """
        if (
            self._sessions.get(session.session_id) is not session
            or session.state is not SessionState.LOADING
        ):
            logger.info(
                "Discarded generation result for inactive session",
                extra={"session_id": session.session_id},
            )
            return False
        if result.ok:
            session.activate(result.questions)
            logger.info(
                "Quiz session active",
                extra={
                    "session_id": session.session_id,
                    "question_count": session.total,
                },
            )
        else:
            error = result.error or GenerationFailedError(
                "Quiz service returned no questions.", reason=INVALID_OUTPUT
            )
            session.fail(error)
            logger.warning(
                "Quiz session failed",
                extra={"session_id": session.session_id, "reason": error.reason},
            )
        return True

    def submit_answer(
        self, session_id: str, index: int
    ) -> Optional[AnswerFeedback]:
        session = self.get_session(session_id)
        feedback = session.answer(
            index,
            lambda: self._scheduler.call_later(
                self.advance_delay, partial(self._advance, session)
            ),
        )
        if feedback is None:
            logger.debug(
                "Ignored answer",
                extra={"session_id": session_id, "state": session.state.value},
            )
            return None
        return feedback

    def close_quiz(self, session_id: str) -> None:
        """Dispose a session. Closing an unknown or closed session is a no-op."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.dispose()
        logger.info(
            "Closed quiz session",
            extra={
                "session_id": session_id,
                "state": session.state.value,
                "score": session.score,
                "total": session.total,
            },
        )

    def _advance(self, session: QuizSession) -> None:
        if self._sessions.get(session.session_id) is not session:
            return
        session.advance()
        if session.state is SessionState.FINISHED:
            logger.info(
                "Quiz session finished",
                extra={
                    "session_id": session.session_id,
                    "score": session.score,
                    "total": session.total,
                },
            )
