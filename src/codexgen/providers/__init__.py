"""External model providers: wire gateway, registry resolution and test doubles."""

from codexgen.providers.gateway import ProviderGateway, WireRequest, ensure_chat_completions_url
from codexgen.providers.mock import MockGateway, StaticProviderResolver
from codexgen.providers.resolver import ProviderResolver, Resolver

__all__ = [
    "MockGateway",
    "ProviderGateway",
    "ProviderResolver",
    "Resolver",
    "StaticProviderResolver",
    "WireRequest",
    "ensure_chat_completions_url",
]
