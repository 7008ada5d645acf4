"""Provider clients keyed by capability."""
from __future__ import annotations

from typing import Dict, List, Optional, Type

from vevo.config import Config
from vevo.errors import ConfigurationFailure
from vevo.providers.base import ProviderClient
from vevo.providers.chat import ChatCompletionClient
from vevo.providers.gemini import GeminiClient
from vevo.providers.inference import TextInferenceClient
from vevo.providers.lookup import DataLookupClient
from vevo.providers.transport import HttpTransport

CLIENT_KINDS: Dict[str, Type[ProviderClient]] = {
    "chat": ChatCompletionClient,
    "inference": TextInferenceClient,
    "generation": GeminiClient,
    "lookup": DataLookupClient,
}


def build_provider(name: str, config: Config, transport: Optional[HttpTransport] = None) -> ProviderClient | None:
    settings = dict(config.provider(name))
    if not settings:
        return None
    kind = settings.pop("kind", "chat")
    client_cls = CLIENT_KINDS.get(kind)
    if client_cls is None:
        raise ConfigurationFailure(f"unknown provider kind {kind!r} for {name}")
    url = settings.pop("url", "")
    slots = settings.pop("credential_slots", [])
    transport = transport or HttpTransport(timeout=config.provider_timeout_seconds)
    return client_cls(name, url, transport, credential_slots=slots, **settings)


def build_providers(config: Config, transport: Optional[HttpTransport] = None) -> List[ProviderClient]:
    providers: List[ProviderClient] = []
    for name in config.enabled_providers:
        client = build_provider(name, config, transport)
        if client is not None:
            providers.append(client)
    return providers


__all__ = [
    "CLIENT_KINDS",
    "ChatCompletionClient",
    "DataLookupClient",
    "GeminiClient",
    "HttpTransport",
    "ProviderClient",
    "TextInferenceClient",
    "build_provider",
    "build_providers",
]
