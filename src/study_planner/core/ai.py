"""OpenAI client construction."""

from __future__ import annotations

import os
from typing import Any, Mapping

from dotenv import load_dotenv

try:  # Allow module import even when the OpenAI dependency is absent.
    from openai import OpenAI  # type: ignore
except Exception:  # pragma: no cover - optional dependency guard
    OpenAI = None  # type: ignore

__all__ = ["load_client"]


def load_client(
    *,
    api_key_env: str = "OPENAI_API_KEY",
    api_base: str | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> Any:
    """Build an OpenAI-compatible client from environment credentials.

    ``api_base`` points the client at a compatible gateway (e.g. OpenRouter);
    the key is read from ``api_key_env`` after loading ``.env``.
    """

    if OpenAI is None:
        raise RuntimeError(
            "The 'openai' package is required to create a client. "
            "Install it and retry."
        )
    if env is None:
        load_dotenv()
        env = os.environ
    api_key = env.get(api_key_env)
    if not api_key:
        raise RuntimeError(
            f"{api_key_env} not found in environment. Set it or add to .env"
        )
    kwargs: dict[str, Any] = {"api_key": api_key}
    if api_base:
        kwargs["base_url"] = api_base
    if timeout is not None:
        kwargs["timeout"] = timeout
    return OpenAI(**kwargs)
