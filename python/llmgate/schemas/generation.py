"""Request and response schemas for the generation endpoints."""

from pydantic import BaseModel, ConfigDict, Field

from llmgate.services.llm.prompt import MAX_PROMPT_CHARS
from llmgate.services.llm.quota import QuotaStatus
from llmgate.services.llm.types import (
    DEFAULT_TEMPERATURE,
    CompletionRequest,
    CompletionResponse,
    UsageMetadata,
)

# =============================================================================
# Request Schemas
# =============================================================================


class CallerMetadata(BaseModel):
    """Who is calling; attached to every usage record of the call."""

    client_id: int | None = None
    user_id: int | None = None
    endpoint: str | None = Field(default=None, max_length=255)


class GenerateRequest(CallerMetadata):
    """Body of POST /generate and POST /generate/stream.

    Conversation history is not carried; callers flatten it into user_prompt.
    """

    user_prompt: str = Field(min_length=1, max_length=MAX_PROMPT_CHARS)
    system_prompt: str | None = Field(default=None, max_length=MAX_PROMPT_CHARS)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    json_mode: bool = False
    feature: str | None = Field(default=None, max_length=100)

    model_config = ConfigDict(extra="forbid")

    def to_completion_request(self) -> CompletionRequest:
        return CompletionRequest(
            user_prompt=self.user_prompt,
            system_prompt=self.system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            json_mode=self.json_mode,
            feature=self.feature,
        )

    def to_usage_metadata(self, default_endpoint: str) -> UsageMetadata:
        return UsageMetadata(
            endpoint=self.endpoint,
            client_id=self.client_id,
            user_id=self.user_id,
        ).for_request(self.feature, default_endpoint)


class EmbeddingRequest(CallerMetadata):
    """Body of POST /embeddings."""

    text: str = Field(min_length=1, max_length=MAX_PROMPT_CHARS)

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Response Schemas
# =============================================================================


class UsageOut(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class GenerateResponse(BaseModel):
    text: str
    vendor: str
    model: str
    usage: UsageOut
    provider_request_id: str | None = None

    @classmethod
    def from_completion(cls, response: CompletionResponse) -> "GenerateResponse":
        return cls(
            text=response.text,
            vendor=response.vendor.value,
            model=response.model,
            usage=UsageOut(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            ),
            provider_request_id=response.provider_request_id,
        )


class EmbeddingResponse(BaseModel):
    embedding: list[float]
    dimensions: int


class QuotaUsageOut(BaseModel):
    requests_last_hour: int
    requests_today: int
    tokens_today: int
    cost_today_cents: int


class PlanLimitsOut(BaseModel):
    requests_per_hour: int
    requests_per_day: int
    tokens_per_day: int
    cost_per_day_cents: int


class QuotaStatusOut(BaseModel):
    allowed: bool
    tier: str
    reason: str | None = None
    dimension: str | None = None
    usage: QuotaUsageOut
    limits: PlanLimitsOut

    @classmethod
    def from_status(cls, status: QuotaStatus) -> "QuotaStatusOut":
        return cls(
            allowed=status.allowed,
            tier=status.tier.value,
            reason=status.reason,
            dimension=status.dimension.value if status.dimension else None,
            usage=QuotaUsageOut(
                requests_last_hour=status.usage.requests_last_hour,
                requests_today=status.usage.requests_today,
                tokens_today=status.usage.tokens_today,
                cost_today_cents=status.usage.cost_today_cents,
            ),
            limits=PlanLimitsOut(
                requests_per_hour=status.limits.requests_per_hour,
                requests_per_day=status.limits.requests_per_day,
                tokens_per_day=status.limits.tokens_per_day,
                cost_per_day_cents=status.limits.cost_per_day_cents,
            ),
        )
