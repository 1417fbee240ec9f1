from __future__ import annotations

import json
import logging

import pytest

from fixtures import FakeChatClient, FakeContentService, quiz_item, quiz_json
from study_planner.errors import INVALID_OUTPUT, SERVICE_ERROR, GenerationFailedError
from study_planner.quiz import (
    GenerationResult,
    OpenAIContentService,
    QuizFormatError,
    build_quiz_prompt,
    generate_quiz,
    parse_quiz_response,
    strip_code_fences,
    validate_question,
)


def test_build_quiz_prompt_mentions_count_and_format():
    prompt = build_quiz_prompt("Topic: Mitosis.", 5)

    assert "5-question multiple choice quiz" in prompt
    assert "Return ONLY a raw JSON array" in prompt
    assert '"correctAnswer": 0' in prompt
    assert prompt.endswith("Notes Content:\nTopic: Mitosis.")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('[{"a": 1}]', '[{"a": 1}]'),
        ('```json\n[{"a": 1}]\n```', '[{"a": 1}]'),
        ('```\n[]\n```', "[]"),
        ('Sure! Here you go:\n```json\n[1]\n```\nGood luck.', "[1]"),
        ("  ```json [2]", "[2]"),
    ],
)
def test_strip_code_fences(raw, expected):
    assert strip_code_fences(raw) == expected


def test_validate_question_normalises_whitespace():
    question = validate_question(
        {
            "question": "  What comes first? ",
            "options": [" Prophase", "Metaphase", "Anaphase", "Telophase"],
            "correctAnswer": 0,
        }
    )

    assert question.prompt == "What comes first?"
    assert question.options[0] == "Prophase"
    assert question.correct_option == "Prophase"
    assert question.is_correct(0)
    assert not question.is_correct(1)


@pytest.mark.parametrize(
    "item",
    [
        "not an object",
        {"options": ["a", "b", "c", "d"], "correctAnswer": 0},
        {"question": "Q?", "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "b", "c", "d"]},
        {"question": "  ", "options": ["a", "b", "c", "d"], "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "b", "c"], "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "b", "c", "d", "e"], "correctAnswer": 0},
        {"question": "Q?", "options": "abcd", "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "b", "", "d"], "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "a", "c", "d"], "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "b", "c", 4], "correctAnswer": 0},
        {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": 4},
        {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": -1},
        {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": "0"},
        {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": 1.0},
        {"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": True},
    ],
)
def test_validate_question_rejects_schema_violations(item):
    with pytest.raises(QuizFormatError):
        validate_question(item)


def test_parse_quiz_response_accepts_fenced_array():
    raw = "```json\n" + quiz_json(5, answer=2) + "\n```"

    questions = parse_quiz_response(raw)

    assert len(questions) == 5
    assert all(question.correct_index == 2 for question in questions)


def test_parse_quiz_response_truncates_to_limit():
    assert len(parse_quiz_response(quiz_json(7), limit=5)) == 5


def test_parse_quiz_response_allows_fewer_questions():
    assert len(parse_quiz_response(quiz_json(3), limit=5)) == 3


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "not json at all",
        json.dumps({"question": "Q?"}),
        "[]",
        json.dumps([quiz_item(1), quiz_item(2, options=["a", "b", "c"])]),
    ],
)
def test_parse_quiz_response_rejects_bad_payloads(raw):
    with pytest.raises(QuizFormatError):
        parse_quiz_response(raw)


def test_generate_quiz_success(fake_service):
    result = generate_quiz("Topic: Mitosis.", fake_service, count=5)

    assert result.ok
    assert len(result.questions) == 5
    assert result.error is None
    assert "Topic: Mitosis." in fake_service.prompts[0]


def test_generate_quiz_service_failure_is_reported(caplog):
    service = FakeContentService()
    service.queue(ConnectionError("network down"))

    with caplog.at_level(logging.WARNING):
        result = generate_quiz("Topic: Mitosis.", service)

    assert not result.ok
    assert result.questions == ()
    assert isinstance(result.error, GenerationFailedError)
    assert result.error.reason == SERVICE_ERROR
    assert result.error.user_message == "Failed to contact the quiz service."
    assert "Quiz service call failed" in caplog.text


def test_generate_quiz_invalid_output_is_reported():
    service = FakeContentService(default="I cannot help with that.")

    result = generate_quiz("Topic: Mitosis.", service)

    assert not result.ok
    assert result.error.reason == INVALID_OUTPUT


def test_generate_quiz_rejects_partial_batches():
    bad = json.dumps([quiz_item(n) for n in range(1, 4)] + [quiz_item(4, answer=9)])
    service = FakeContentService(default=bad)

    result = generate_quiz("Topic: Mitosis.", service)

    assert not result.ok
    assert result.error.reason == INVALID_OUTPUT


def test_generate_quiz_requires_context_and_positive_count(fake_service):
    with pytest.raises(ValueError):
        generate_quiz("   ", fake_service)
    with pytest.raises(ValueError):
        generate_quiz("Topic: x.", fake_service, count=0)
    assert fake_service.prompts == []


def test_generation_result_ok_requires_questions():
    assert not GenerationResult().ok
    assert not GenerationResult.failure(GenerationFailedError("nope")).ok


def test_openai_content_service_sends_prompt():
    client = FakeChatClient()
    client.queue_response("  [1, 2]  ")
    service = OpenAIContentService(
        client, model="gpt-test", temperature=0.0, max_tokens=256
    )

    assert service.generate("Make a quiz") == "[1, 2]"

    call = client.calls[0]
    assert call["model"] == "gpt-test"
    assert call["temperature"] == 0.0
    assert call["max_tokens"] == 256
    assert call["messages"][0]["role"] == "system"
    assert call["messages"][-1] == {"role": "user", "content": "Make a quiz"}


def test_openai_content_service_handles_empty_content():
    client = FakeChatClient()
    client.queue_response(None)

    assert OpenAIContentService(client).generate("x") == ""
