"""Unit tests for the OpenAI client factory shared by the fallback agent and the assistant."""

import pytest
from openai import AsyncOpenAI

from inmoai.services.openai_client import get_openai_client, tracing_enabled


class TestGetOpenAIClient:
    def test_uses_provided_api_key(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LANGCHAIN_TRACING_V2", "false")

        client = get_openai_client("sk-custom-key")

        assert isinstance(client, AsyncOpenAI)
        assert client.api_key == "sk-custom-key"

    def test_falls_back_to_settings_key(self):
        from inmoai.config import get_settings

        get_settings.cache_clear()
        client = get_openai_client()

        assert client.api_key == "sk-test-fake-key-for-testing"

    def test_custom_timeout(self):
        client = get_openai_client("sk-test-key", timeout=12.5)

        assert client.timeout == 12.5

    def test_plain_client_when_tracing_disabled(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LANGCHAIN_TRACING_V2", "false")

        assert type(get_openai_client("sk-test-key")).__name__ == "AsyncOpenAI"

    def test_retries_can_be_disabled(self):
        client = get_openai_client("sk-test-key", max_retries=0)

        assert client.max_retries == 0

    def test_tracing_flag_reads_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LANGCHAIN_TRACING_V2", "TRUE")
        assert tracing_enabled() is True

        monkeypatch.delenv("LANGCHAIN_TRACING_V2")
        assert tracing_enabled() is False
