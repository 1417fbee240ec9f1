from .context import MAX_CONTEXT_CHARS, build_topic_context
from .generator import (
    ContentService,
    GenerationResult,
    OpenAIContentService,
    QuizFormatError,
    QuizQuestion,
    build_quiz_prompt,
    generate_quiz,
    parse_quiz_response,
    strip_code_fences,
    validate_question,
)
from .session import (
    AnswerFeedback,
    AsyncioScheduler,
    ManualScheduler,
    QuizEngine,
    QuizSession,
    SessionState,
)

__all__ = [
    "MAX_CONTEXT_CHARS",
    "build_topic_context",
    "ContentService",
    "GenerationResult",
    "OpenAIContentService",
    "QuizFormatError",
    "QuizQuestion",
    "build_quiz_prompt",
    "generate_quiz",
    "parse_quiz_response",
    "strip_code_fences",
    "validate_question",
    "AnswerFeedback",
    "AsyncioScheduler",
    "ManualScheduler",
    "QuizEngine",
    "QuizSession",
    "SessionState",
]
