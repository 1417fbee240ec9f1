"""Request quiz questions from a generative service and validate them.

Everything the service returns is treated as untrusted text: it is parsed,
then every element is checked against the question schema. One bad element
rejects the whole batch; callers never see a partially valid quiz.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence

from ..errors import INVALID_OUTPUT, SERVICE_ERROR, GenerationFailedError

__all__ = [
    "DEFAULT_QUESTION_COUNT",
    "OPTION_COUNT",
    "QuizQuestion",
    "QuizFormatError",
    "GenerationResult",
    "ContentService",
    "OpenAIContentService",
    "build_quiz_prompt",
    "strip_code_fences",
    "validate_question",
    "parse_quiz_response",
    "generate_quiz",
]

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_COUNT = 5
OPTION_COUNT = 4

_FENCED_BLOCK = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)```", re.DOTALL)
_FENCE_MARKER = re.compile(r"```[a-zA-Z0-9_-]*")


class QuizFormatError(ValueError):
    """Raised when a service response does not match the question schema."""


@dataclass(frozen=True)
class QuizQuestion:
    prompt: str
    options: tuple[str, ...]
    correct_index: int

    def is_correct(self, index: int) -> bool:
        return index == self.correct_index

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]


@dataclass(frozen=True)
class GenerationResult:
    """Either a non-empty list of questions or the error explaining why not."""

    questions: tuple[QuizQuestion, ...] = ()
    error: Optional[GenerationFailedError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.questions)

    @classmethod
    def success(cls, questions: Sequence[QuizQuestion]) -> "GenerationResult":
        return cls(questions=tuple(questions))

    @classmethod
    def failure(cls, error: GenerationFailedError) -> "GenerationResult":
        return cls(error=error)


class ContentService(Protocol):
    """Single-shot text generation: one prompt in, one response out."""

    def generate(self, prompt_text: str) -> str:
        ...


class OpenAIContentService:
    """:class:`ContentService` backed by an OpenAI-compatible chat client."""

    system_prompt = "You write multiple-choice study quizzes and reply only with JSON."

    def __init__(
        self,
        client: Any,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: int = 1000,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def generate(self, prompt_text: str) -> str:
        resp = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt_text},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return (resp.choices[0].message.content or "").strip()


def build_quiz_prompt(context: str, count: int = DEFAULT_QUESTION_COUNT) -> str:
    return (
        f"Based on the following study notes, generate a {count}-question "
        "multiple choice quiz.\n"
        "Return ONLY a raw JSON array. Do not add prose and do not wrap it in "
        "markdown code fences.\n"
        "Format:\n"
        "[\n"
        '  {"question": "Question text here?", '
        '"options": ["Option A", "Option B", "Option C", "Option D"], '
        '"correctAnswer": 0}\n'
        "]\n"
        f"Each question has exactly {OPTION_COUNT} distinct options and "
        f"correctAnswer is the 0-based index (0-{OPTION_COUNT - 1}) of the "
        "single correct option.\n\n"
        f"Notes Content:\n{context}"
    )


def strip_code_fences(raw: str) -> str:
    """Return the body of the first fenced block, or ``raw`` without fences."""
    text = (raw or "").strip()
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        return fenced.group(1).strip()
    return _FENCE_MARKER.sub("", text).strip()


def validate_question(item: Any, position: int = 0) -> QuizQuestion:
    """Validate one decoded element and return it as a :class:`QuizQuestion`.

    Raises :class:`QuizFormatError` naming the offending element.
    """
    where = f"question {position + 1}"
    if not isinstance(item, dict):
        raise QuizFormatError(f"{where}: expected an object")
    for key in ("question", "options", "correctAnswer"):
        if key not in item:
            raise QuizFormatError(f"{where}: missing '{key}'")
    prompt = item["question"]
    if not isinstance(prompt, str) or not prompt.strip():
        raise QuizFormatError(f"{where}: 'question' must be non-empty text")
    options = item["options"]
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        raise QuizFormatError(
            f"{where}: 'options' must list exactly {OPTION_COUNT} entries"
        )
    if not all(isinstance(option, str) and option.strip() for option in options):
        raise QuizFormatError(f"{where}: options must be non-empty text")
    cleaned = tuple(option.strip() for option in options)
    if len(set(cleaned)) != OPTION_COUNT:
        raise QuizFormatError(f"{where}: options must be distinct")
    answer = item["correctAnswer"]
    # bool is an int subclass; true/false is not an index.
    if isinstance(answer, bool) or not isinstance(answer, int):
        raise QuizFormatError(f"{where}: 'correctAnswer' must be an integer")
    if not 0 <= answer < OPTION_COUNT:
        raise QuizFormatError(
            f"{where}: 'correctAnswer' {answer} is out of range"
        )
    return QuizQuestion(prompt=prompt.strip(), options=cleaned, correct_index=answer)


def parse_quiz_response(
    raw: str, *, limit: int = DEFAULT_QUESTION_COUNT
) -> List[QuizQuestion]:
    """Parse and validate a full service response.

    Returns at most ``limit`` questions; raises :class:`QuizFormatError` if
    the response is not a non-empty JSON array of valid questions.
    """
    payload = strip_code_fences(raw)
    if not payload:
        raise QuizFormatError("empty response")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise QuizFormatError(f"response is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, list):
        raise QuizFormatError("response is not a JSON array")
    if not data:
        raise QuizFormatError("response contained no questions")
    questions = [validate_question(item, idx) for idx, item in enumerate(data)]
    return questions[:limit]


def generate_quiz(
    context: str,
    service: ContentService,
    *,
    count: int = DEFAULT_QUESTION_COUNT,
) -> GenerationResult:
    """Ask ``service`` for ``count`` questions about ``context``.

    Never raises for service or format problems; those come back as a failed
    :class:`GenerationResult`.
    """
    if not context or not context.strip():
        raise ValueError("context must be non-empty")
    if count <= 0:
        raise ValueError("count must be positive")
    prompt = build_quiz_prompt(context, count)
    try:
        raw = service.generate(prompt)
    except Exception as exc:
        logger.warning(
            "Quiz service call failed",
            extra={"error": repr(exc)},
        )
        return GenerationResult.failure(
            GenerationFailedError(
                f"Quiz service call failed: {exc}", reason=SERVICE_ERROR
            )
        )
    try:
        questions = parse_quiz_response(raw, limit=count)
    except QuizFormatError as exc:
        logger.warning(
            "Rejected quiz service response",
            extra={"error": str(exc), "response_chars": len(raw or "")},
        )
        return GenerationResult.failure(
            GenerationFailedError(
                f"Quiz service returned unusable output: {exc}",
                reason=INVALID_OUTPUT,
            )
        )
    logger.info(
        "Generated quiz",
        extra={"question_count": len(questions), "requested": count},
    )
    return GenerationResult.success(questions)
