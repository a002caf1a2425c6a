"""LLM gateway for Gemini access via an OpenAI-compatible API."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from ooh_terminal.infrastructure.llm.errors import ErrorKind, ProviderError


@dataclass
class InferenceRequest:
    """Opaque request content handed to the provider."""

    messages: List[Dict[str, str]]
    temperature: float = 0.2
    web_search: Optional[bool] = None
    thinking_budget: Optional[int] = None

    @classmethod
    def from_prompt(
        cls,
        prompt: str,
        *,
        system: Optional[str] = None,
        **options: Any,
    ) -> "InferenceRequest":
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return cls(messages=messages, **options)


@dataclass
class InferenceResponse:
    text: str


class GeminiClient:
    """Minimal async Gemini client hiding transport plumbing from pipeline nodes."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = "https://api.poe.com/v1",
        proxy_url: Optional[str] = None,
        timeout: float = 60.0,
        default_web_search: Optional[bool] = None,
        default_thinking_budget: Optional[int] = None,
    ) -> None:
        if not api_key:
            raise ValueError("GEMINI_API_KEY (or POE_API_KEY) is required to contact Gemini endpoints.")

        http_client_kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(timeout, connect=10.0),
            "verify": True,
        }
        if proxy_url:
            http_client_kwargs["proxy"] = proxy_url
            http_client_kwargs["verify"] = False

        self._http_client = httpx.AsyncClient(**http_client_kwargs)
        # Retries are owned by the caller's backoff policy.
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            http_client=self._http_client,
            max_retries=0,
        )
        self._model = model
        self._default_web_search = default_web_search
        self._default_thinking_budget = default_thinking_budget

    @property
    def model(self) -> str:
        return self._model

    async def invoke(self, request: InferenceRequest) -> InferenceResponse:
        """Fire a chat completion and return the assistant text.

        SDK failures are translated into ``ProviderError`` with a structured
        kind so callers never inspect messages.
        """
        resolved_web_search = (
            self._default_web_search if request.web_search is None else request.web_search
        )
        resolved_budget = (
            self._default_thinking_budget
            if request.thinking_budget is None
            else request.thinking_budget
        )

        extra_body: Dict[str, Any] = {}
        if resolved_web_search is not None:
            extra_body["web_search"] = bool(resolved_web_search)
        if resolved_budget is not None:
            extra_body["thinking_budget"] = resolved_budget

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=request.temperature,
                messages=request.messages,
                extra_body=extra_body or None,
            )
        except openai.APIError as exc:
            raise translate_error(exc) from exc

        if not response.choices:
            raise ProviderError(ErrorKind.UNAVAILABLE, "Gemini returned no choices.")
        return InferenceResponse(text=response.choices[0].message.content or "")

    async def aclose(self) -> None:
        """Release the underlying HTTP session."""
        await self._http_client.aclose()


def translate_error(exc: openai.APIError) -> ProviderError:
    """Decide the error kind of an OpenAI SDK exception."""
    if isinstance(exc, openai.RateLimitError):
        return ProviderError(ErrorKind.RATE_LIMITED, str(exc), status_code=exc.status_code)
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError)):
        return ProviderError(ErrorKind.UNAVAILABLE, str(exc))
    if isinstance(exc, openai.APIStatusError):
        status = exc.status_code
        if status in (408, 409) or status >= 500:
            return ProviderError(ErrorKind.UNAVAILABLE, str(exc), status_code=status)
        return ProviderError(ErrorKind.PERMANENT, str(exc), status_code=status)
    return ProviderError(ErrorKind.PERMANENT, str(exc))
