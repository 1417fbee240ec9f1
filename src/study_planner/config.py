"""TOML configuration for the planner.

The file is optional: missing keys fall back to the defaults below, unknown
keys are rejected so typos surface immediately.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - should never happen
    raise RuntimeError("Python 3.11+ required for tomllib support") from exc

from .errors import ConfigError

__all__ = [
    "CONFIG_PATH_ENV",
    "OpenAIConfig",
    "QuizConfig",
    "LoggingConfig",
    "PlannerConfig",
    "load_config",
    "resolve_config_path",
    "default_tree",
    "config_template",
    "write_template",
]


CONFIG_PATH_ENV = "STUDY_PLANNER_CONFIG"


@dataclass(frozen=True)
class OpenAIConfig:
    model: str
    temperature: float
    max_tokens: int
    api_base: Optional[str]
    api_key_env: str
    request_timeout_seconds: int


@dataclass(frozen=True)
class QuizConfig:
    question_count: int
    context_max_chars: int
    advance_delay_seconds: float


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class PlannerConfig:
    data_home: Optional[Path]
    openai: OpenAIConfig
    quiz: QuizConfig
    logging: LoggingConfig


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    f"Expected table for '{dotted}', found {type(value).__name__}."
                )
            _merge_dict(base[key], value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _coerce_optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    return _require_string(value, field=field)


def _build_openai(section: Mapping[str, Any]) -> OpenAIConfig:
    prefix = "providers.openai"
    return OpenAIConfig(
        model=_require_string(section.get("model"), field=f"{prefix}.model"),
        temperature=_require_float_range(
            section.get("temperature"),
            field=f"{prefix}.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_tokens=_require_positive_int(
            section.get("max_tokens"), field=f"{prefix}.max_tokens"
        ),
        api_base=_coerce_optional_string(
            section.get("api_base"), field=f"{prefix}.api_base"
        ),
        api_key_env=_require_string(
            section.get("api_key_env"), field=f"{prefix}.api_key_env"
        ),
        request_timeout_seconds=_require_positive_int(
            section.get("request_timeout_seconds"),
            field=f"{prefix}.request_timeout_seconds",
        ),
    )


def _build_quiz(section: Mapping[str, Any]) -> QuizConfig:
    question_count = _require_positive_int(
        section.get("question_count"), field="quiz.question_count"
    )
    if question_count > 20:
        raise ConfigError("'quiz.question_count' must be at most 20.")
    return QuizConfig(
        question_count=question_count,
        context_max_chars=_require_positive_int(
            section.get("context_max_chars"), field="quiz.context_max_chars"
        ),
        advance_delay_seconds=_require_float_range(
            section.get("advance_delay_seconds"),
            field="quiz.advance_delay_seconds",
            min_value=0.0,
            max_value=10.0,
        ),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigError(
            "logging.level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(tree: Mapping[str, Any]) -> PlannerConfig:
    raw_home = tree["paths"]["data_home"]
    if raw_home is not None:
        raw_home = Path(
            _require_string(raw_home, field="paths.data_home")
        ).expanduser()
    return PlannerConfig(
        data_home=raw_home,
        openai=_build_openai(tree["providers"]["openai"]),
        quiz=_build_quiz(tree["quiz"]),
        logging=_build_logging(tree["logging"]),
    )


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
    default_path: Optional[Path] = None,
) -> tuple[Optional[Path], bool]:
    """Return ``(path, required)``; only an explicit choice is required."""

    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve(), True
    env_override = env_map.get(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve(), True
    return default_path, False


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
    default_path: Optional[Path] = None,
) -> PlannerConfig:
    """Load the TOML config, applying defaults and validation."""

    path, required = resolve_config_path(
        explicit_path=explicit_path, env=env, default_path=default_path
    )
    tree = default_tree()
    if path is not None and (required or path.exists()):
        _merge_dict(tree, _load_toml(path))
    return _build_config(tree)


def default_tree() -> Dict[str, Any]:
    """Return a copy of the default configuration tree."""

    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    """Write the commented default template to ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    path.write_text(config_template(), encoding="utf-8")
    try:
        path.chmod(mode)
    except PermissionError:
        pass
    return path


_DEFAULTS: Dict[str, Any] = {
    "paths": {
        "data_home": None,
    },
    "providers": {
        "openai": {
            "model": "gpt-4o-mini",
            "temperature": 0.2,
            "max_tokens": 1000,
            "api_base": None,
            "api_key_env": "OPENAI_API_KEY",
            "request_timeout_seconds": 60,
        },
    },
    "quiz": {
        "question_count": 5,
        "context_max_chars": 15000,
        "advance_delay_seconds": 1.0,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# study-planner configuration

[paths]
# Override the data directory (defaults to STUDY_PLANNER_HOME or ~/.study-planner)
# data_home = "~/my-study-data"

[providers.openai]
model = "gpt-4o-mini"
# Sampling temperature (0.0-2.0)
temperature = 0.2
max_tokens = 1000
# Point at an OpenAI-compatible gateway, e.g. OpenRouter
# api_base = "https://openrouter.ai/api/v1"
# Environment variable holding the API key
api_key_env = "OPENAI_API_KEY"
request_timeout_seconds = 60

[quiz]
# Questions requested per quiz
question_count = 5
# Attachment context is cut to this many characters
context_max_chars = 15000
# Seconds to show answer feedback before moving on
advance_delay_seconds = 1.0

[logging]
level = "INFO"
verbose = false
"""
