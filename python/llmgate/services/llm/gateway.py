"""The gateway object application code calls.

Constructed once at process start (see llmgate.app lifespan) from three
store interfaces and one shared httpx.AsyncClient. Control flow for a
generation:

    validate prompt size
    → QuotaEnforcer.enforce(client_id)       (once, before any provider)
    → CandidateResolver.resolve(feature)
    → GenerationExecutor.run / run_stream    (ordered fallback, usage per attempt)
"""

import time
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from datetime import datetime

import httpx

from llmgate.config import Settings
from llmgate.logging import get_logger, set_generation_context
from llmgate.services.crypto import decrypt_credential
from llmgate.services.llm.adapter import DEFAULT_CONNECT_TIMEOUT_S, DEFAULT_TIMEOUT_S
from llmgate.services.llm.errors import (
    AllProvidersFailedError,
    ProviderError,
    UnsupportedCapability,
)
from llmgate.services.llm.executor import GenerationExecutor
from llmgate.services.llm.prompt import MAX_PROMPT_CHARS, validate_prompt_size
from llmgate.services.llm.quota import PlanTier, QuotaEnforcer, QuotaStatus
from llmgate.services.llm.registry import AdapterRegistry
from llmgate.services.llm.resolver import CandidateResolver
from llmgate.services.llm.stores import PlanTierStore, ProviderConfigStore, UsageStore
from llmgate.services.llm.types import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfig,
    TokenUsage,
    UsageMetadata,
    VendorKind,
)
from llmgate.services.llm.usage import UsageTracker, utc_now
from llmgate.services.redact import safe_kv

logger = get_logger(__name__)

GENERATE_ENDPOINT = "generate"
GENERATE_STREAM_ENDPOINT = "generate_stream"
EMBED_ENDPOINT = "embed"

# Models used by test_connection when the caller leaves the model blank
TEST_CONNECTION_DEFAULT_MODELS = {
    VendorKind.OPENAI: "gpt-3.5-turbo",
    VendorKind.ANTHROPIC: "claude-3-haiku-20240307",
    VendorKind.GEMINI: "gemini-pro",
}
TEST_CONNECTION_MAX_TOKENS = 5


class LLMGateway:
    """Quota-checked, routed, metered access to the configured providers."""

    def __init__(
        self,
        providers: ProviderConfigStore,
        usage_store: UsageStore,
        plan_tiers: PlanTierStore,
        client: httpx.AsyncClient,
        *,
        settings: Settings | None = None,
        decrypt: Callable[[str], str] = decrypt_credential,
        clock: Callable[[], datetime] = utc_now,
        max_prompt_chars: int = MAX_PROMPT_CHARS,
    ):
        timeout_s = settings.llm_timeout_s if settings else DEFAULT_TIMEOUT_S
        connect_timeout_s = (
            settings.llm_connect_timeout_s if settings else DEFAULT_CONNECT_TIMEOUT_S
        )
        default_tier = PlanTier(settings.default_plan_tier) if settings else PlanTier.FREE

        self.registry = AdapterRegistry(
            client,
            decrypt=decrypt,
            timeout_s=timeout_s,
            connect_timeout_s=connect_timeout_s,
        )
        self.resolver = CandidateResolver(providers)
        self.tracker = UsageTracker(usage_store, clock)
        self.executor = GenerationExecutor(self.registry, self.tracker)
        self.quota = QuotaEnforcer(
            usage_store, plan_tiers, default_tier=default_tier, clock=clock
        )
        self._max_prompt_chars = max_prompt_chars

    async def generate(
        self, request: CompletionRequest, metadata: UsageMetadata | None = None
    ) -> CompletionResponse:
        """Blocking generation.

        Raises:
            PromptTooLargeError: If the prompt exceeds the size limit.
            QuotaExceededError: If the client is over quota.
            NoProviderConfigured: If no provider is enabled.
            AllProvidersFailedError: If every candidate failed.
        """
        metadata = (metadata or UsageMetadata()).for_request(
            request.feature, GENERATE_ENDPOINT
        )
        set_generation_context(metadata.client_id, request.feature)
        validate_prompt_size(request, self._max_prompt_chars)

        await self.quota.enforce(metadata.client_id, metadata.endpoint)
        candidates = await self.resolver.resolve(request.feature)
        return await self.executor.run(candidates, request, metadata)

    async def generate_stream(
        self, request: CompletionRequest, metadata: UsageMetadata | None = None
    ) -> AsyncIterator[str]:
        """Streaming generation.

        Failure modes are the same as generate(); they are raised before the
        first fragment or, after output has started, as stream termination
        with the provider's ProviderError.
        """
        metadata = (metadata or UsageMetadata()).for_request(
            request.feature, GENERATE_STREAM_ENDPOINT
        )
        set_generation_context(metadata.client_id, request.feature)
        validate_prompt_size(request, self._max_prompt_chars)

        await self.quota.enforce(metadata.client_id, metadata.endpoint)
        candidates = await self.resolver.resolve(request.feature)

        async with aclosing(self.executor.run_stream(candidates, request, metadata)) as stream:
            async for fragment in stream:
                yield fragment

    async def embed(self, text: str, metadata: UsageMetadata | None = None) -> list[float]:
        """Embedding vector from the single preferred embedding provider.

        There is no fallback for embeddings; a provider failure surfaces as
        AllProvidersFailedError with one attempt.

        Raises:
            ValueError: If text is empty.
            QuotaExceededError: If the client is over quota.
            NoEmbeddingProviderConfigured: If no enabled provider supports embeddings.
            AllProvidersFailedError: If the embedding call failed.
        """
        if not text or not text.strip():
            raise ValueError("text must be non-empty")

        metadata = (metadata or UsageMetadata()).with_endpoint_fallback(EMBED_ENDPOINT)
        set_generation_context(metadata.client_id, None)

        await self.quota.enforce(metadata.client_id, metadata.endpoint)
        provider = await self.resolver.resolve_embedding_provider()
        adapter = self.registry.adapter_for(provider)

        start = time.monotonic()
        try:
            embedding = await adapter.embed(provider, text)
        except (ProviderError, UnsupportedCapability) as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            await self.tracker.record(
                provider, TokenUsage.zero(), metadata, latency_ms, False, e.message
            )
            error_class = e.error_class.value if isinstance(e, ProviderError) else None
            logger.error(
                "llm.embedding.failed",
                **safe_kv(
                    provider_id=provider.id,
                    vendor=provider.vendor.value,
                    error_type=type(e).__name__,
                    error_class=error_class,
                    latency_ms=latency_ms,
                ),
            )
            raise AllProvidersFailedError(e, attempts=1) from e

        latency_ms = int((time.monotonic() - start) * 1000)
        usage = TokenUsage.estimate(len(text), 0)
        await self.tracker.record(provider, usage, metadata, latency_ms, True)
        return embedding

    async def check_quota(self, client_id: int | None, endpoint: str = "generate") -> QuotaStatus:
        """Quota status without raising."""
        return await self.quota.check(client_id, endpoint)

    async def test_connection(
        self,
        vendor: VendorKind | str,
        model: str | None,
        api_key: str,
        base_url: str | None = None,
    ) -> bool:
        """Send a tiny completion with a plaintext key. Writes no usage record.

        Returns:
            True if the vendor answered, False on any provider failure.
        """
        vendor_kind = vendor if isinstance(vendor, VendorKind) else VendorKind.parse(vendor)
        provider = ProviderConfig(
            id=0,
            name="connection-test",
            vendor=vendor_kind,
            model=model or TEST_CONNECTION_DEFAULT_MODELS[vendor_kind],
            api_key_encrypted="",
            base_url=base_url,
        )
        request = CompletionRequest(user_prompt="Test", max_tokens=TEST_CONNECTION_MAX_TOKENS)

        try:
            await self.registry.adapter_for(provider).complete(provider, request, api_key=api_key)
        except ProviderError as e:
            logger.warning(
                "llm.test_connection.failed",
                **safe_kv(
                    vendor=vendor_kind.value,
                    model=provider.model,
                    error_class=e.error_class.value,
                    status_code=e.status_code,
                ),
            )
            return False

        logger.info(
            "llm.test_connection.succeeded",
            **safe_kv(vendor=vendor_kind.value, model=provider.model),
        )
        return True
