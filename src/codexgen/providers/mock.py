"""In-process test doubles for the gateway and the resolver."""

import asyncio
from collections.abc import Callable
from uuid import UUID

from codexgen.contracts.models import CompletionResult, ProviderConfig, TokenUsage
from codexgen.core.errors import ProviderError


class MockGateway:
    """Gateway double that answers without network calls.

    Responses are "<model>: <user prompt>" unless a responder is supplied.
    Calls for models in ``fail_models`` raise ProviderError. Every call is
    recorded, and peak concurrency is tracked when ``delay`` is set.
    """

    def __init__(
        self,
        fail_models: set[str] | None = None,
        responder: Callable[[str, str, ProviderConfig], str] | None = None,
        delay: float = 0.0,
        usage: TokenUsage | None = None,
    ) -> None:
        self.fail_models = set(fail_models or ())
        self._responder = responder
        self._delay = delay
        self._usage = usage or TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150)
        self.calls: list[dict[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def get_call_count(self, model: str | None = None) -> int:
        if model is None:
            return len(self.calls)
        return sum(1 for c in self.calls if c["model"] == model)

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        provider: ProviderConfig,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "provider": provider.provider_code,
                "model": provider.model,
            }
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if provider.model in self.fail_models:
                raise ProviderError(
                    provider.provider_code,
                    f"{provider.provider_code} returned HTTP 500: mock failure for {provider.model}",
                    status_code=500,
                    body="mock failure",
                )
            if self._responder is not None:
                content = self._responder(system_prompt, user_prompt, provider)
            else:
                content = f"{provider.model}: {user_prompt}"
            return CompletionResult(
                content=content,
                usage=self._usage,
                provider=provider.provider_code,
                model=provider.model,
            )
        finally:
            self.in_flight -= 1


class StaticProviderResolver:
    """Resolver double: provider_id -> provider code, model passed through."""

    def __init__(
        self,
        providers: dict[UUID, str] | None = None,
        default_code: str = "openai",
        default_model: str = "gpt-4o-mini",
    ) -> None:
        self._providers = providers or {}
        self._default_code = default_code
        self._default_model = default_model

    async def resolve(
        self, requested_provider_id: UUID | None, requested_model: str | None
    ) -> ProviderConfig:
        code = self._default_code
        if requested_provider_id is not None:
            code = self._providers.get(requested_provider_id, self._default_code)
        return ProviderConfig(
            provider_code=code,
            name=code.title(),
            base_url=f"https://{code}.invalid/v1",
            api_key="test-key",
            model=requested_model or self._default_model,
        )
