"""Provider gateway: one async call interface over heterogeneous model APIs.

Each wire protocol is a translator function turning (provider config,
prompts, max tokens) into a WireRequest. The gateway posts the request
with httpx and hands the JSON body to the request's parser. Adding a
provider means registering one translator.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from codexgen.contracts.models import CompletionResult, ProviderConfig, TokenUsage
from codexgen.core.errors import ProviderError, UnsupportedProviderError
from codexgen.settings import get_settings

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_DEFAULT_MAX_TOKENS = 4096
ERROR_BODY_LIMIT = 2000

ResponseParser = Callable[[dict[str, Any]], tuple[str, TokenUsage]]


@dataclass
class WireRequest:
    """Provider-specific HTTP request plus the parser for its response."""

    url: str
    headers: dict[str, str]
    body: dict[str, Any]
    parse: ResponseParser
    params: dict[str, str] = field(default_factory=dict)


Translator = Callable[[ProviderConfig, str, str, int | None], WireRequest]


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int(value: Any) -> int:
    return value if isinstance(value, int) and value >= 0 else 0


def ensure_chat_completions_url(base_url: str) -> str:
    """Normalize an OpenAI-compatible base URL to its chat-completions endpoint."""
    url = (base_url or "").strip().rstrip("/")
    if not url:
        raise ValueError("AI provider base_url is missing")
    if url.endswith("/chat/completions"):
        return url
    return f"{url}/chat/completions"


# --------------------------------------------------------------------------
# OpenAI-compatible (openai, deepseek, perplexity, openrouter)
# --------------------------------------------------------------------------


def _parse_openai(data: dict[str, Any]) -> tuple[str, TokenUsage]:
    choices = data.get("choices") or [{}]
    content = _text((choices[0].get("message") or {}).get("content"))
    usage = data.get("usage") or {}
    prompt = _int(usage.get("prompt_tokens"))
    completion = _int(usage.get("completion_tokens"))
    return content, TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=_int(usage.get("total_tokens")) or prompt + completion,
    )


def openai_translator(
    provider: ProviderConfig, system_prompt: str, user_prompt: str, max_tokens: int | None
) -> WireRequest:
    body: dict[str, Any] = {
        "model": provider.model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    }
    if max_tokens:
        body["max_tokens"] = max_tokens
    return WireRequest(
        url=ensure_chat_completions_url(provider.base_url),
        headers={
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
        },
        body=body,
        parse=_parse_openai,
    )


def openrouter_translator(site_url: str, site_name: str) -> Translator:
    """OpenAI-compatible translator with OpenRouter attribution headers."""

    def translate(
        provider: ProviderConfig, system_prompt: str, user_prompt: str, max_tokens: int | None
    ) -> WireRequest:
        request = openai_translator(provider, system_prompt, user_prompt, max_tokens)
        if site_url:
            request.headers["HTTP-Referer"] = site_url
        if site_name:
            request.headers["X-Title"] = site_name
        return request

    return translate


# --------------------------------------------------------------------------
# Anthropic Messages API
# --------------------------------------------------------------------------


def _parse_anthropic(data: dict[str, Any]) -> tuple[str, TokenUsage]:
    blocks = data.get("content") or []
    content = "".join(
        _text(b.get("text")) for b in blocks if isinstance(b, dict) and b.get("type", "text") == "text"
    )
    usage = data.get("usage") or {}
    prompt = _int(usage.get("input_tokens"))
    completion = _int(usage.get("output_tokens"))
    return content, TokenUsage(
        prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion
    )


def anthropic_translator(
    provider: ProviderConfig, system_prompt: str, user_prompt: str, max_tokens: int | None
) -> WireRequest:
    url = (provider.base_url or "https://api.anthropic.com/v1").strip().rstrip("/")
    if not url.endswith("/messages"):
        url = f"{url}/messages"
    return WireRequest(
        url=url,
        headers={
            "x-api-key": provider.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        },
        body={
            "model": provider.model,
            "max_tokens": max_tokens or ANTHROPIC_DEFAULT_MAX_TOKENS,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        },
        parse=_parse_anthropic,
    )


# --------------------------------------------------------------------------
# Google Gemini generateContent
# --------------------------------------------------------------------------


def _parse_gemini(data: dict[str, Any]) -> tuple[str, TokenUsage]:
    candidates = data.get("candidates") or [{}]
    parts = (candidates[0].get("content") or {}).get("parts") or []
    content = "".join(_text(p.get("text")) for p in parts if isinstance(p, dict))
    meta = data.get("usageMetadata") or {}
    prompt = _int(meta.get("promptTokenCount"))
    completion = _int(meta.get("candidatesTokenCount"))
    return content, TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=_int(meta.get("totalTokenCount")) or prompt + completion,
    )


def gemini_translator(
    provider: ProviderConfig, system_prompt: str, user_prompt: str, max_tokens: int | None
) -> WireRequest:
    base = (provider.base_url or "https://generativelanguage.googleapis.com/v1beta").strip().rstrip("/")
    body: dict[str, Any] = {
        "systemInstruction": {"parts": [{"text": system_prompt}]},
        "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
    }
    if max_tokens:
        body["generationConfig"] = {"maxOutputTokens": max_tokens}
    return WireRequest(
        url=f"{base}/models/{provider.model}:generateContent",
        headers={"Content-Type": "application/json"},
        body=body,
        params={"key": provider.api_key},
        parse=_parse_gemini,
    )


def default_translators() -> dict[str, Translator]:
    """Built-in provider_code -> translator registry."""
    settings = get_settings()
    return {
        "openai": openai_translator,
        "deepseek": openai_translator,
        "perplexity": openai_translator,
        "openrouter": openrouter_translator(
            settings.openrouter_site_url, settings.openrouter_site_name
        ),
        "anthropic": anthropic_translator,
        "gemini": gemini_translator,
        "google": gemini_translator,
    }


class ProviderGateway:
    """Uniform async call interface over registered wire protocols.

    The gateway never retries; every failure surfaces as ProviderError.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        translators: dict[str, Translator] | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._translators = translators if translators is not None else default_translators()
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else get_settings().provider_timeout_seconds
        )

    def register(self, provider_code: str, translator: Translator) -> None:
        """Register (or replace) the translator for a provider code."""
        self._translators[provider_code] = translator

    def supports(self, provider_code: str) -> bool:
        return provider_code in self._translators

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        provider: ProviderConfig,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """Send one prompt pair to a provider and normalize its response.

        Raises:
            UnsupportedProviderError: no translator for provider.provider_code
            ProviderError: non-2xx response, transport failure or timeout
        """
        translator = self._translators.get(provider.provider_code)
        if translator is None:
            raise UnsupportedProviderError(provider.provider_code)
        try:
            request = translator(provider, system_prompt, user_prompt, max_tokens)
        except ValueError as e:
            raise ProviderError(provider.provider_code, str(e)) from e

        logger.debug(f"Calling {provider.provider_code}/{provider.model} at {request.url}")
        data = await self._post(provider, request)
        content, usage = request.parse(data)
        return CompletionResult(
            content=content,
            usage=usage,
            provider=provider.provider_code,
            model=provider.model,
        )

    async def _post(self, provider: ProviderConfig, request: WireRequest) -> dict[str, Any]:
        code = provider.provider_code
        try:
            if self._client is not None:
                response = await self._send(self._client, request)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await self._send(client, request)
        except httpx.TimeoutException as e:
            raise ProviderError(code, f"{code} request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(code, f"{code} request failed: {e}") from e

        if not response.is_success:
            body = response.text[:ERROR_BODY_LIMIT]
            raise ProviderError(
                code,
                f"{code} returned HTTP {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                code, f"{code} returned a non-JSON body", status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise ProviderError(code, f"{code} returned an unexpected body", status_code=response.status_code)
        return data

    async def _send(self, client: httpx.AsyncClient, request: WireRequest) -> httpx.Response:
        return await client.post(
            request.url,
            headers=request.headers,
            params=request.params or None,
            json=request.body,
            timeout=self._timeout,
        )
