"""LLM provider gateway.

Routes generation requests from application code to one of several
configured providers (OpenAI-compatible, Anthropic, Gemini) with
per-feature routing rules, ordered fallback, per-attempt usage metering,
and per-client quota enforcement, for blocking and streaming completions.

Usage:
    from llmgate.services.llm import CompletionRequest, LLMGateway, UsageMetadata

    gateway = LLMGateway(provider_store, usage_store, plan_tiers, httpx_client)
    response = await gateway.generate(
        CompletionRequest(user_prompt="Summarize...", feature="risk_analysis"),
        UsageMetadata(client_id=42),
    )

Rules:
- Adapters are async using one shared httpx.AsyncClient
- No retries inside adapters; fallback belongs to the executor
- No DB access inside adapters
- No logging of prompts, completions, or credentials
"""

from llmgate.services.llm.adapter import ProviderAdapter
from llmgate.services.llm.errors import (
    AllProvidersFailedError,
    GatewayError,
    LLMErrorClass,
    NoEmbeddingProviderConfigured,
    NoProviderConfigured,
    ProviderError,
    QuotaExceededError,
    SchemaValidationWarning,
    UnsupportedCapability,
    classify_provider_error,
)
from llmgate.services.llm.executor import GenerationExecutor, try_candidates
from llmgate.services.llm.gateway import LLMGateway
from llmgate.services.llm.pricing import cost_per_million_tokens, estimate_cost_cents
from llmgate.services.llm.prompt import PromptTooLargeError, validate_prompt_size
from llmgate.services.llm.quota import (
    PLAN_LIMITS,
    PlanLimits,
    PlanTier,
    QuotaEnforcer,
    QuotaStatus,
)
from llmgate.services.llm.registry import AdapterRegistry
from llmgate.services.llm.resolver import CandidateResolver
from llmgate.services.llm.stores import (
    InMemoryPlanTierStore,
    InMemoryProviderStore,
    InMemoryUsageStore,
    PlanTierStore,
    ProviderConfigStore,
    UsageStore,
    UsageTotals,
)
from llmgate.services.llm.types import (
    Capability,
    CompletionRequest,
    CompletionResponse,
    ProviderConfig,
    RoutingRule,
    TokenUsage,
    Turn,
    UsageMetadata,
    UsageRecord,
    VendorKind,
)
from llmgate.services.llm.usage import UsageTracker

__all__ = [
    # Core types
    "VendorKind",
    "Capability",
    "ProviderConfig",
    "RoutingRule",
    "CompletionRequest",
    "CompletionResponse",
    "TokenUsage",
    "Turn",
    "UsageMetadata",
    "UsageRecord",
    # Components
    "ProviderAdapter",
    "AdapterRegistry",
    "CandidateResolver",
    "GenerationExecutor",
    "try_candidates",
    "UsageTracker",
    "QuotaEnforcer",
    "QuotaStatus",
    "PlanTier",
    "PlanLimits",
    "PLAN_LIMITS",
    "LLMGateway",
    # Stores
    "ProviderConfigStore",
    "UsageStore",
    "PlanTierStore",
    "UsageTotals",
    "InMemoryProviderStore",
    "InMemoryUsageStore",
    "InMemoryPlanTierStore",
    # Errors
    "GatewayError",
    "ProviderError",
    "UnsupportedCapability",
    "NoProviderConfigured",
    "NoEmbeddingProviderConfigured",
    "AllProvidersFailedError",
    "QuotaExceededError",
    "SchemaValidationWarning",
    "LLMErrorClass",
    "classify_provider_error",
    # Pricing and prompt limits
    "cost_per_million_tokens",
    "estimate_cost_cents",
    "PromptTooLargeError",
    "validate_prompt_size",
]
