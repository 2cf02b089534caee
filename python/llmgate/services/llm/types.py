"""Shared type definitions for the provider gateway.

- VendorKind: closed set of wire protocols the gateway speaks
- ProviderConfig / RoutingRule: read-only configuration records
- CompletionRequest / CompletionResponse: the caller-facing values
- TokenUsage: prompt/completion/total token counts, never null
- UsageMetadata / UsageRecord: metering input and the immutable row it produces
- Turn: provider-agnostic message used by adapters
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel


class VendorKind(str, Enum):
    """Wire protocol families.

    OPENAI covers every OpenAI-compatible REST endpoint (OpenAI itself,
    DeepSeek, OpenRouter, vLLM, custom base URLs).
    """

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: str) -> "VendorKind":
        """Map a stored vendor string to its wire protocol.

        Anything that is not Anthropic or Gemini speaks the OpenAI protocol.
        """
        normalized = (value or "").strip().lower()
        if normalized == cls.ANTHROPIC.value:
            return cls.ANTHROPIC
        if normalized == cls.GEMINI.value:
            return cls.GEMINI
        return cls.OPENAI


class Capability(str, Enum):
    """Optional provider capabilities beyond text completion."""

    EMBEDDINGS = "embeddings"


@dataclass(frozen=True)
class ProviderConfig:
    """A configured provider as stored by the settings UI.

    Attributes:
        id: Opaque provider id
        name: Display name (e.g. "Company OpenAI")
        vendor: Wire protocol family
        model: Model identifier sent to the vendor
        api_key_encrypted: Credential blob, decrypted once per call
        base_url: Optional endpoint override
        enabled: Disabled providers are invisible to resolution
        priority: Higher is preferred
        capabilities: Optional capabilities such as embeddings
    """

    id: int
    name: str
    vendor: VendorKind
    model: str
    api_key_encrypted: str
    base_url: str | None = None
    enabled: bool = True
    priority: int = 0
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class RoutingRule:
    """Binds a feature name (call site) to one preferred provider."""

    feature: str
    provider_id: int | None


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn.

    Attributes:
        role: One of "system", "user", or "assistant"
        content: The text content of the turn
    """

    role: Literal["system", "user", "assistant"]
    content: str


DEFAULT_TEMPERATURE = 0.7
DEFAULT_ENDPOINT = "generate"


@dataclass(frozen=True)
class CompletionRequest:
    """A single stateless generation request.

    Any conversation history is flattened into user_prompt by the caller.

    Attributes:
        user_prompt: Required user prompt
        system_prompt: Optional system prompt
        temperature: Sampling temperature (0.0 to 2.0)
        max_tokens: Optional completion cap; adapters apply vendor defaults
        json_mode: Ask the vendor for a JSON object
        output_schema: Pydantic model used for advisory validation in JSON mode
        feature: Routing feature name (e.g. "risk_analysis")
    """

    user_prompt: str
    system_prompt: str | None = None
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int | None = None
    json_mode: bool = False
    output_schema: type[BaseModel] | None = None
    feature: str | None = None

    def __post_init__(self):
        if not self.user_prompt or not self.user_prompt.strip():
            raise ValueError("user_prompt must be non-empty")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be between 0.0 and 2.0, got {self.temperature}")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")

    @property
    def prompt_chars(self) -> int:
        """Characters sent to the provider (system + user)."""
        return len(self.system_prompt or "") + len(self.user_prompt)


def estimate_tokens(text_or_chars: str | int) -> int:
    """Deterministic token estimate: ceil(character_count / 4)."""
    chars = text_or_chars if isinstance(text_or_chars, int) else len(text_or_chars)
    return math.ceil(chars / 4)


@dataclass(frozen=True)
class TokenUsage:
    """Token usage for one attempt. Never null; estimated when the vendor is silent."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int

    @classmethod
    def zero(cls) -> "TokenUsage":
        return cls(prompt_tokens=0, completion_tokens=0, total_tokens=0)

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int | None,
        completion_tokens: int | None,
        total_tokens: int | None = None,
        *,
        prompt_chars: int = 0,
        completion_chars: int = 0,
    ) -> "TokenUsage":
        """Build usage from vendor counts, estimating whichever are missing."""
        prompt = prompt_tokens if prompt_tokens is not None else estimate_tokens(prompt_chars)
        completion = (
            completion_tokens
            if completion_tokens is not None
            else estimate_tokens(completion_chars)
        )
        total = total_tokens if total_tokens is not None else prompt + completion
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)

    @classmethod
    def estimate(cls, prompt_chars: int, completion_chars: int) -> "TokenUsage":
        return cls.from_counts(
            None, None, prompt_chars=prompt_chars, completion_chars=completion_chars
        )


@dataclass(frozen=True)
class CompletionResponse:
    """Result of the attempt that succeeded.

    Attributes:
        text: Generated text
        vendor: Vendor kind actually used
        model: Model actually used
        usage: Token usage of this attempt
        provider_id: Id of the provider that produced the text
        provider_request_id: Vendor request id for debugging (may be None)
    """

    text: str
    vendor: VendorKind
    model: str
    usage: TokenUsage
    provider_id: int | None = None
    provider_request_id: str | None = None


@dataclass(frozen=True)
class UsageMetadata:
    """Who is calling and from where; attached to every usage record.

    An unset endpoint is filled in by the gateway from the request feature,
    then the operation's default (see for_request).
    """

    endpoint: str | None = None
    client_id: int | None = None
    user_id: int | None = None
    feature: str | None = None

    def with_endpoint_fallback(self, *fallbacks: str | None) -> "UsageMetadata":
        """Copy whose endpoint is the first set value of endpoint, *fallbacks."""
        endpoint = next((e for e in (self.endpoint, *fallbacks) if e), DEFAULT_ENDPOINT)
        return replace(self, endpoint=endpoint)

    def for_request(self, feature: str | None, default_endpoint: str) -> "UsageMetadata":
        """Attach the routing feature; endpoint falls back to feature, then default."""
        with_feature = replace(self, feature=self.feature or feature)
        return with_feature.with_endpoint_fallback(with_feature.feature, default_endpoint)

    def details(self) -> dict | None:
        """Per-request context stored alongside the usage record columns."""
        if not self.feature:
            return None
        return {"feature": self.feature}


@dataclass(frozen=True)
class UsageRecord:
    """One provider attempt. Immutable and append-only."""

    provider_id: int
    vendor: VendorKind
    model: str
    endpoint: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    estimated_cost_cents: int
    latency_ms: int
    success: bool
    created_at: datetime
    client_id: int | None = None
    user_id: int | None = None
    error_message: str | None = None
    request_metadata: dict | None = None
