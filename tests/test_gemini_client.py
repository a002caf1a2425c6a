from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from ooh_terminal.infrastructure.llm.errors import ErrorKind, ProviderError
from ooh_terminal.infrastructure.llm.gemini_client import GeminiClient, InferenceRequest, translate_error

REQUEST = httpx.Request("POST", "https://api.poe.com/v1/chat/completions")


def status_error(cls, status: int):
    return cls("failure", response=httpx.Response(status, request=REQUEST), body=None)


@pytest.mark.parametrize(
    "exc, kind",
    [
        (status_error(openai.RateLimitError, 429), ErrorKind.RATE_LIMITED),
        (status_error(openai.InternalServerError, 503), ErrorKind.UNAVAILABLE),
        (status_error(openai.APIStatusError, 408), ErrorKind.UNAVAILABLE),
        (status_error(openai.BadRequestError, 400), ErrorKind.PERMANENT),
        (status_error(openai.AuthenticationError, 401), ErrorKind.PERMANENT),
        (openai.APIConnectionError(request=REQUEST), ErrorKind.UNAVAILABLE),
        (openai.APITimeoutError(request=REQUEST), ErrorKind.UNAVAILABLE),
    ],
)
def test_translate_error_kinds(exc, kind):
    assert translate_error(exc).kind is kind


def test_missing_api_key_is_rejected():
    with pytest.raises(ValueError):
        GeminiClient(api_key="", model="gemini-2.5-flash")


class FakeCompletions:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def fake_sdk(outcome) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(outcome)))


@pytest.mark.asyncio
async def test_invoke_passes_options_and_returns_text():
    client = GeminiClient(api_key="key", model="gemini-2.5-flash", default_web_search=False)
    reply = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content='{"ok": true}'))])
    client._client = fake_sdk(reply)
    try:
        request = InferenceRequest.from_prompt("quotes please", system="json only", web_search=True, thinking_budget=512)
        response = await client.invoke(request)
    finally:
        await client.aclose()

    assert response.text == '{"ok": true}'
    sent = client._client.chat.completions.kwargs
    assert sent["model"] == "gemini-2.5-flash"
    assert sent["messages"][0] == {"role": "system", "content": "json only"}
    assert sent["extra_body"] == {"web_search": True, "thinking_budget": 512}


@pytest.mark.asyncio
async def test_invoke_translates_sdk_errors():
    client = GeminiClient(api_key="key", model="gemini-2.5-flash")
    client._client = fake_sdk(status_error(openai.RateLimitError, 429))
    try:
        with pytest.raises(ProviderError) as info:
            await client.invoke(InferenceRequest.from_prompt("hi"))
    finally:
        await client.aclose()
    assert info.value.kind is ErrorKind.RATE_LIMITED
    assert info.value.status_code == 429


@pytest.mark.asyncio
async def test_empty_choices_are_unavailable():
    client = GeminiClient(api_key="key", model="gemini-2.5-flash")
    client._client = fake_sdk(SimpleNamespace(choices=[]))
    try:
        with pytest.raises(ProviderError) as info:
            await client.invoke(InferenceRequest.from_prompt("hi"))
    finally:
        await client.aclose()
    assert info.value.kind is ErrorKind.UNAVAILABLE
