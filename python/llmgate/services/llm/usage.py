"""Usage tracking: one immutable record per provider attempt.

record() is awaited by the executor before an attempt is considered closed,
so the quota check of the next request observes it. It never raises: a
metering failure is logged and must not mask the completion result or the
provider failure being recorded. The write is shielded from cancellation, so
an attempt cut short by a cancelled caller is still recorded.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import anyio
from starlette.concurrency import run_in_threadpool

from llmgate.logging import get_logger
from llmgate.services.llm.pricing import estimate_cost_cents
from llmgate.services.llm.stores import UsageStore
from llmgate.services.llm.types import (
    DEFAULT_ENDPOINT,
    ProviderConfig,
    TokenUsage,
    UsageMetadata,
    UsageRecord,
)
from llmgate.services.redact import safe_kv

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_CHARS = 1000


def utc_now() -> datetime:
    return datetime.now(UTC)


class UsageTracker:
    def __init__(self, store: UsageStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    def build_record(
        self,
        provider: ProviderConfig,
        usage: TokenUsage,
        metadata: UsageMetadata,
        latency_ms: int,
        success: bool,
        error_message: str | None = None,
    ) -> UsageRecord:
        if error_message is not None:
            error_message = error_message[:MAX_ERROR_MESSAGE_CHARS]

        return UsageRecord(
            provider_id=provider.id,
            vendor=provider.vendor,
            model=provider.model,
            endpoint=metadata.endpoint or DEFAULT_ENDPOINT,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            estimated_cost_cents=estimate_cost_cents(
                provider.vendor, provider.model, usage.total_tokens
            ),
            latency_ms=max(0, latency_ms),
            success=success,
            created_at=self._clock(),
            client_id=metadata.client_id,
            user_id=metadata.user_id,
            error_message=error_message,
            request_metadata=metadata.details(),
        )

    async def record(
        self,
        provider: ProviderConfig,
        usage: TokenUsage,
        metadata: UsageMetadata,
        latency_ms: int,
        success: bool,
        error_message: str | None = None,
    ) -> UsageRecord | None:
        """Write one usage record. Returns it, or None if the write failed."""
        try:
            record = self.build_record(
                provider, usage, metadata, latency_ms, success, error_message
            )
            with anyio.CancelScope(shield=True):
                await run_in_threadpool(self._store.insert_usage_record, record)
            return record
        except Exception as e:
            logger.error(
                "usage.record_failed",
                **safe_kv(
                    provider_id=provider.id,
                    vendor=provider.vendor.value,
                    model=provider.model,
                    endpoint=metadata.endpoint,
                    success=success,
                    error_type=type(e).__name__,
                ),
            )
            return None
