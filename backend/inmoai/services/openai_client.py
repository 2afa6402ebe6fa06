"""OpenAI client construction shared by the fallback agent and the property assistant."""

import os

from openai import AsyncOpenAI

from inmoai.config import get_settings


def tracing_enabled() -> bool:
    """LangSmith tracing is switched on by the LANGCHAIN_TRACING_V2 env var (exported by main.py)."""
    return os.getenv("LANGCHAIN_TRACING_V2", "").lower() == "true"


def get_openai_client(
    api_key: str | None = None,
    *,
    timeout: float | None = None,
    max_retries: int | None = None,
) -> AsyncOpenAI:
    """
    Build an AsyncOpenAI client for report generation or chat.

    Options left as None keep the SDK defaults. The fallback agent passes
    max_retries=0 because the orchestrator allows it a single bounded attempt.

    Args:
        api_key:     OpenAI API key. Defaults to settings.openai_api_key.
        timeout:     Per-request timeout in seconds.
        max_retries: SDK-level retries on connection errors and 5xx responses.

    Returns:
        AsyncOpenAI client, wrapped with LangSmith when tracing is enabled.
    """
    options: dict = {"api_key": api_key or get_settings().openai_api_key}
    if timeout is not None:
        options["timeout"] = timeout
    if max_retries is not None:
        options["max_retries"] = max_retries

    client = AsyncOpenAI(**options)

    if tracing_enabled():
        from langsmith.wrappers import wrap_openai

        client = wrap_openai(client)

    return client
