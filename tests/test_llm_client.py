from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from betterask.llm_client import GatewayError, GatewayNotConfiguredError, GeminiGateway


class FakeChatModel:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.messages = None

    async def ainvoke(self, messages):
        self.messages = messages
        if self.error is not None:
            raise self.error
        return self.result


class ProviderError(Exception):
    def __init__(self, message: str, code: int) -> None:
        super().__init__(message)
        self.code = code


def _gateway(monkeypatch, chat_model: FakeChatModel) -> GeminiGateway:
    gateway = GeminiGateway(provider="genai", api_key="test-key")
    monkeypatch.setattr(gateway, "_build_chat_model", lambda schema, temperature: chat_model)
    return gateway


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(ValueError):
        GeminiGateway(provider="openai")


def test_configuration_depends_on_provider() -> None:
    assert GeminiGateway(provider="genai", api_key="").is_configured is False
    assert GeminiGateway(provider="genai", api_key="k").is_configured is True
    assert GeminiGateway(provider="vertex", vertex_project="").is_configured is False
    assert GeminiGateway(provider="vertex", vertex_project="my-project").is_configured is True


def test_generate_without_credential_raises() -> None:
    gateway = GeminiGateway(provider="genai", api_key="")
    with pytest.raises(GatewayNotConfiguredError):
        asyncio.run(gateway.generate("sys", "user", {"type": "object"}))


def test_generate_returns_text_and_tracks_usage(monkeypatch) -> None:
    resp = SimpleNamespace(
        content='  {"tags": ["Use Bullet Points"]}  ',
        usage_metadata={"input_tokens": 12, "output_tokens": 5, "total_tokens": 17},
    )
    chat_model = FakeChatModel(result=resp)
    gateway = _gateway(monkeypatch, chat_model)

    text = asyncio.run(gateway.generate("be brief", "topic: cells", {"type": "object"}))
    asyncio.run(gateway.generate("be brief", "topic: cells", {"type": "object"}))

    assert text == '{"tags": ["Use Bullet Points"]}'
    assert isinstance(chat_model.messages[0], SystemMessage)
    assert isinstance(chat_model.messages[1], HumanMessage)
    assert chat_model.messages[1].content == "topic: cells"
    assert gateway.get_accrued_usage() == {
        "prompt_token_count": 24,
        "candidates_token_count": 10,
        "total_token_count": 34,
    }


def test_provider_failure_is_wrapped_with_status(monkeypatch) -> None:
    gateway = _gateway(monkeypatch, FakeChatModel(error=ProviderError("RESOURCE_EXHAUSTED: quota", 429)))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.generate("sys", "user", {"type": "object"}))

    assert "RESOURCE_EXHAUSTED" in str(excinfo.value)
    assert excinfo.value.status_code == 429
    assert isinstance(excinfo.value.__cause__, ProviderError)


def test_content_parts_are_joined() -> None:
    resp = SimpleNamespace(content=[{"type": "text", "text": '{"a"'}, ": 1}", {"type": "image", "url": "x"}])
    assert GeminiGateway._content_to_text(resp) == '{"a": 1}'
    assert GeminiGateway._content_to_text("plain") == "plain"
