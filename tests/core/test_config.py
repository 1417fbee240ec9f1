from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from study_planner import config
from study_planner.errors import ConfigError


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_file(tmp_path):
    cfg = config.load_config(env={}, default_path=tmp_path / "missing.toml")

    assert cfg.data_home is None
    assert cfg.openai.model == "gpt-4o-mini"
    assert cfg.openai.api_key_env == "OPENAI_API_KEY"
    assert cfg.openai.api_base is None
    assert cfg.quiz.question_count == 5
    assert cfg.quiz.context_max_chars == 15000
    assert cfg.quiz.advance_delay_seconds == 1.0
    assert cfg.logging.level == "INFO"
    assert cfg.logging.verbose is False


def test_file_overrides_defaults(tmp_path):
    path = _write(
        tmp_path / "study-planner.toml",
        """
[paths]
data_home = "~/planner-data"

[providers.openai]
model = "deepseek/deepseek-chat"
api_base = "https://openrouter.ai/api/v1"
api_key_env = "OPENROUTER_API_KEY"

[quiz]
question_count = 8
advance_delay_seconds = 0

[logging]
level = "debug"
""",
    )

    cfg = config.load_config(env={}, default_path=path)

    assert cfg.data_home == Path("~/planner-data").expanduser()
    assert cfg.openai.model == "deepseek/deepseek-chat"
    assert cfg.openai.api_base == "https://openrouter.ai/api/v1"
    assert cfg.openai.temperature == 0.2
    assert cfg.quiz.question_count == 8
    assert cfg.quiz.advance_delay_seconds == 0.0
    assert cfg.logging.level == "DEBUG"


def test_environment_variable_points_at_config(tmp_path):
    path = _write(tmp_path / "env.toml", "[quiz]\nquestion_count = 3\n")

    cfg = config.load_config(env={config.CONFIG_PATH_ENV: str(path)})

    assert cfg.quiz.question_count == 3


def test_explicit_path_beats_environment(tmp_path):
    explicit = _write(tmp_path / "explicit.toml", "[quiz]\nquestion_count = 2\n")
    from_env = _write(tmp_path / "env.toml", "[quiz]\nquestion_count = 9\n")

    cfg = config.load_config(
        explicit_path=explicit, env={config.CONFIG_PATH_ENV: str(from_env)}
    )

    assert cfg.quiz.question_count == 2


def test_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        config.load_config(explicit_path=tmp_path / "nope.toml", env={})


@pytest.mark.parametrize(
    "text, message",
    [
        ("[quiz]\nquestions = 5\n", "Unknown configuration key 'quiz.questions'"),
        ("quiz = 5\n", "Expected table for 'quiz'"),
        ("[quiz]\nquestion_count = 0\n", "quiz.question_count"),
        ("[quiz]\nquestion_count = 21\n", "at most 20"),
        ("[quiz]\nquestion_count = true\n", "quiz.question_count"),
        ("[quiz]\nadvance_delay_seconds = 11\n", "advance_delay_seconds"),
        ("[providers.openai]\ntemperature = 3.5\n", "temperature"),
        ("[providers.openai]\nmodel = \"  \"\n", "providers.openai.model"),
        ("[logging]\nlevel = \"LOUD\"\n", "logging.level"),
        ("[logging]\nverbose = \"yes\"\n", "logging.verbose"),
        ("[quiz\n", "Failed to parse"),
    ],
)
def test_invalid_values_are_rejected(tmp_path, text, message):
    path = _write(tmp_path / "bad.toml", text)

    with pytest.raises(ConfigError, match=message):
        config.load_config(explicit_path=path, env={})


def test_template_parses_to_defaults(tmp_path):
    target = config.write_template(tmp_path / "config" / "study-planner.toml")

    parsed = tomllib.loads(target.read_text(encoding="utf-8"))
    assert parsed["quiz"]["question_count"] == 5
    assert config.load_config(explicit_path=target, env={}) == config.load_config(
        env={}
    )
    assert oct(target.stat().st_mode & 0o777) == oct(0o600)


def test_write_template_refuses_to_overwrite(tmp_path):
    target = config.write_template(tmp_path / "study-planner.toml")
    target.write_text("# mine\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        config.write_template(target)
    config.write_template(target, overwrite=True)
    assert "question_count" in target.read_text(encoding="utf-8")


def test_default_tree_is_a_copy():
    tree = config.default_tree()
    tree["quiz"]["question_count"] = 99

    assert config.default_tree()["quiz"]["question_count"] == 5
