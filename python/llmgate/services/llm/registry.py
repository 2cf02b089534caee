"""Adapter selection by vendor kind.

One adapter instance per vendor kind, all sharing the same
httpx.AsyncClient for connection pooling. Adding a vendor means adding one
adapter class and one entry here.
"""

from collections.abc import Callable

import httpx

from llmgate.services.crypto import decrypt_credential
from llmgate.services.llm.adapter import (
    DEFAULT_CONNECT_TIMEOUT_S,
    DEFAULT_TIMEOUT_S,
    ProviderAdapter,
)
from llmgate.services.llm.anthropic_adapter import AnthropicAdapter
from llmgate.services.llm.gemini_adapter import GeminiAdapter
from llmgate.services.llm.openai_adapter import OpenAIAdapter
from llmgate.services.llm.types import ProviderConfig, VendorKind

ADAPTER_CLASSES: dict[VendorKind, type[ProviderAdapter]] = {
    VendorKind.OPENAI: OpenAIAdapter,
    VendorKind.ANTHROPIC: AnthropicAdapter,
    VendorKind.GEMINI: GeminiAdapter,
}

# Vendor kinds whose adapter has an embeddings endpoint
EMBEDDING_VENDORS: frozenset[VendorKind] = frozenset(
    vendor for vendor, adapter_cls in ADAPTER_CLASSES.items() if adapter_cls.supports_embeddings
)


class AdapterRegistry:
    """Closed mapping VendorKind → ProviderAdapter."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        decrypt: Callable[[str], str] = decrypt_credential,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S,
    ):
        self._adapters: dict[VendorKind, ProviderAdapter] = {
            vendor: adapter_cls(
                client,
                decrypt=decrypt,
                timeout_s=timeout_s,
                connect_timeout_s=connect_timeout_s,
            )
            for vendor, adapter_cls in ADAPTER_CLASSES.items()
        }

    def adapter_for(self, provider: ProviderConfig) -> ProviderAdapter:
        return self.adapter_for_vendor(provider.vendor)

    def adapter_for_vendor(self, vendor: VendorKind) -> ProviderAdapter:
        return self._adapters[vendor]
