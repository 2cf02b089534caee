"""Generation executor: walk the candidate list until one provider succeeds.

Both execution modes share try_candidates():
- Blocking: the attempt is the whole completion.
- Streaming: the attempt opens the vendor stream and pulls the first
  fragment. Once a fragment has been handed to the caller the attempt is
  over, so a later failure can no longer fall back; the ProviderError
  propagates to the caller as a truncated result.

Every attempt writes exactly one usage record before the next candidate is
tried (or before the result is returned):
- success: vendor usage (blocking) or an estimate from emitted characters
  (streaming)
- failure before output: zero usage with the provider error message
- failure after output, or consumer cancellation: usage estimated from what
  was emitted, success=False

Records and stream closes on the cancellation paths run shielded, so a
caller cancelled through an anyio cancel scope (starlette, task groups)
still leaves its attempt on the usage log.

Observability events (all fields pass through safe_kv):
- llm.request.started / llm.request.finished / llm.request.failed per attempt
- llm.candidate.failed when falling through to the next candidate
- llm.all_providers_failed on exhaustion
- llm.stream.partial_failure / llm.stream.cancelled for streams that end early
- llm.request.cancelled for blocking attempts whose caller was cancelled
- llm.schema_validation_failed for advisory schema mismatches
"""

import asyncio
import time
import warnings
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import TypeVar

import anyio
from pydantic import ValidationError

from llmgate.logging import get_logger
from llmgate.services.llm.errors import (
    AllProvidersFailedError,
    NoProviderConfigured,
    ProviderError,
    SchemaValidationWarning,
)
from llmgate.services.llm.registry import AdapterRegistry
from llmgate.services.llm.types import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfig,
    TokenUsage,
    UsageMetadata,
)
from llmgate.services.llm.usage import UsageTracker
from llmgate.services.redact import describe_text, safe_kv

logger = get_logger(__name__)

T = TypeVar("T")

STREAM_CANCELLED_MESSAGE = "stream cancelled by consumer"
REQUEST_CANCELLED_MESSAGE = "request cancelled by caller"


def is_fallback_eligible(error: BaseException) -> bool:
    """Provider-level failures fall through to the next candidate; nothing else does."""
    return isinstance(error, ProviderError)


async def try_candidates(
    candidates: list[ProviderConfig],
    attempt: Callable[[ProviderConfig], Awaitable[T]],
    *,
    on_failure: Callable[[ProviderConfig, ProviderError, int], None] | None = None,
    should_fall_back: Callable[[BaseException], bool] = is_fallback_eligible,
) -> T:
    """Run attempt() against each candidate in order; return the first success.

    Candidates are tried strictly one at a time.

    Args:
        candidates: Providers in resolver order.
        attempt: Performs one provider attempt, raising on failure.
        on_failure: Called with (provider, error, remaining) for each
            fallback-eligible failure.
        should_fall_back: Decides whether an error moves on to the next
            candidate. Anything else propagates immediately.

    Raises:
        NoProviderConfigured: If candidates is empty.
        AllProvidersFailedError: If every candidate failed; carries the error
            of the last candidate attempted.
    """
    if not candidates:
        raise NoProviderConfigured()

    last_error: ProviderError | None = None
    attempts = 0

    for index, provider in enumerate(candidates):
        attempts += 1
        try:
            return await attempt(provider)
        except Exception as e:
            if not should_fall_back(e):
                raise
            last_error = e
            if on_failure is not None:
                on_failure(provider, e, len(candidates) - index - 1)

    logger.error(
        "llm.all_providers_failed",
        **safe_kv(
            attempts=attempts,
            last_vendor=last_error.vendor if last_error else None,
            last_error_class=last_error.error_class.value if last_error else None,
        ),
    )
    raise AllProvidersFailedError(last_error, attempts)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence, if present."""
    stripped = text.strip()
    if stripped.startswith("```") and stripped.endswith("```"):
        body = stripped[3:-3]
        newline = body.find("\n")
        if newline != -1 and body[:newline].strip().isalpha():
            body = body[newline + 1 :]
        return body.strip()
    return stripped


def validate_output(req: CompletionRequest, text: str, provider: ProviderConfig) -> bool:
    """Advisory schema validation of JSON-mode output.

    A mismatch is logged and emitted as SchemaValidationWarning; it never
    changes control flow.
    """
    if not (req.json_mode and req.output_schema is not None):
        return True

    try:
        req.output_schema.model_validate_json(strip_code_fence(text))
    except ValidationError as e:
        schema_name = req.output_schema.__name__
        logger.warning(
            "llm.schema_validation_failed",
            **safe_kv(
                vendor=provider.vendor.value,
                model=provider.model,
                provider_id=provider.id,
                schema_name=schema_name,
                error_count=e.error_count(),
                **describe_text("output", text),
            ),
        )
        try:
            warnings.warn(
                f"Output from {provider.vendor.value}/{provider.model} does not match "
                f"schema {schema_name} ({e.error_count()} errors)",
                SchemaValidationWarning,
                stacklevel=2,
            )
        except SchemaValidationWarning:
            # Warning filters set to "error"; the log line above still reports it
            pass
        return False

    return True


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def _aclose_shielded(stream: AsyncIterator[str]) -> None:
    """Close a vendor stream, even from inside a cancelled scope."""
    with anyio.CancelScope(shield=True):
        await stream.aclose()


def _base_log_fields(provider: ProviderConfig, req: CompletionRequest, streaming: bool) -> dict:
    return {
        "provider_id": provider.id,
        "vendor": provider.vendor.value,
        "model": provider.model,
        "streaming": streaming,
        "json_mode": req.json_mode,
    }


@dataclass
class _OpenStream:
    """A vendor stream whose first fragment has already been pulled."""

    provider: ProviderConfig
    stream: AsyncIterator[str]
    first: str | None
    start: float


class GenerationExecutor:
    """Runs a request against an ordered candidate list."""

    def __init__(self, registry: AdapterRegistry, tracker: UsageTracker):
        self._registry = registry
        self._tracker = tracker

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    async def run(
        self,
        candidates: list[ProviderConfig],
        req: CompletionRequest,
        metadata: UsageMetadata,
    ) -> CompletionResponse:
        """Blocking completion with ordered fallback.

        Raises:
            NoProviderConfigured: If candidates is empty.
            AllProvidersFailedError: If every candidate failed.
        """

        async def attempt(provider: ProviderConfig) -> CompletionResponse:
            return await self._attempt_complete(provider, req, metadata)

        return await try_candidates(candidates, attempt, on_failure=self._log_candidate_failure)

    async def _attempt_complete(
        self,
        provider: ProviderConfig,
        req: CompletionRequest,
        metadata: UsageMetadata,
    ) -> CompletionResponse:
        adapter = self._registry.adapter_for(provider)
        base = _base_log_fields(provider, req, streaming=False)

        logger.info("llm.request.started", **safe_kv(**base, prompt_chars=req.prompt_chars))
        start = time.monotonic()

        try:
            response = await adapter.complete(provider, req)
        except ProviderError as e:
            latency_ms = _elapsed_ms(start)
            self._log_request_failed(base, e, latency_ms)
            await self._tracker.record(
                provider, TokenUsage.zero(), metadata, latency_ms, False, e.message
            )
            raise
        except asyncio.CancelledError:
            latency_ms = _elapsed_ms(start)
            logger.info("llm.request.cancelled", **safe_kv(**base, latency_ms=latency_ms))
            await self._tracker.record(
                provider,
                TokenUsage.estimate(req.prompt_chars, 0),
                metadata,
                latency_ms,
                False,
                REQUEST_CANCELLED_MESSAGE,
            )
            raise

        latency_ms = _elapsed_ms(start)
        await self._tracker.record(provider, response.usage, metadata, latency_ms, True)
        validate_output(req, response.text, provider)

        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=latency_ms,
                tokens_input=response.usage.prompt_tokens,
                tokens_output=response.usage.completion_tokens,
                tokens_total=response.usage.total_tokens,
                provider_request_id=response.provider_request_id,
            ),
        )
        return response

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def run_stream(
        self,
        candidates: list[ProviderConfig],
        req: CompletionRequest,
        metadata: UsageMetadata,
    ) -> AsyncIterator[str]:
        """Streaming completion with fallback only before the first fragment.

        Closing this generator (or cancelling the task consuming it) closes
        the upstream provider stream and records a failed attempt.

        Raises:
            NoProviderConfigured: If candidates is empty.
            AllProvidersFailedError: If every candidate failed before output.
            ProviderError: If the chosen provider failed after output began.
        """

        async def attempt(provider: ProviderConfig) -> _OpenStream:
            return await self._open_stream(provider, req, metadata)

        opened = await try_candidates(candidates, attempt, on_failure=self._log_candidate_failure)

        provider = opened.provider
        base = _base_log_fields(provider, req, streaming=True)
        fragments: list[str] = []
        emitted_chars = 0
        keep_text = req.json_mode and req.output_schema is not None

        async with aclosing(opened.stream) as stream:
            try:
                if opened.first is not None:
                    emitted_chars += len(opened.first)
                    if keep_text:
                        fragments.append(opened.first)
                    yield opened.first

                    async for fragment in stream:
                        emitted_chars += len(fragment)
                        if keep_text:
                            fragments.append(fragment)
                        yield fragment

            except ProviderError as e:
                latency_ms = _elapsed_ms(opened.start)
                logger.warning(
                    "llm.stream.partial_failure",
                    **safe_kv(
                        **base,
                        error_class=e.error_class.value,
                        latency_ms=latency_ms,
                        emitted_chars=emitted_chars,
                    ),
                )
                await self._tracker.record(
                    provider,
                    TokenUsage.estimate(req.prompt_chars, emitted_chars),
                    metadata,
                    latency_ms,
                    False,
                    e.message,
                )
                raise

            except (GeneratorExit, asyncio.CancelledError):
                latency_ms = _elapsed_ms(opened.start)
                logger.info(
                    "llm.stream.cancelled",
                    **safe_kv(**base, latency_ms=latency_ms, emitted_chars=emitted_chars),
                )
                await _aclose_shielded(stream)
                await self._tracker.record(
                    provider,
                    TokenUsage.estimate(req.prompt_chars, emitted_chars),
                    metadata,
                    latency_ms,
                    False,
                    STREAM_CANCELLED_MESSAGE,
                )
                raise

        latency_ms = _elapsed_ms(opened.start)
        usage = TokenUsage.estimate(req.prompt_chars, emitted_chars)
        await self._tracker.record(provider, usage, metadata, latency_ms, True)

        if keep_text:
            validate_output(req, "".join(fragments), provider)

        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=latency_ms,
                tokens_input=usage.prompt_tokens,
                tokens_output=usage.completion_tokens,
                tokens_total=usage.total_tokens,
                emitted_chars=emitted_chars,
            ),
        )

    async def _open_stream(
        self,
        provider: ProviderConfig,
        req: CompletionRequest,
        metadata: UsageMetadata,
    ) -> _OpenStream:
        """Open the vendor stream and pull its first fragment.

        A failure here has produced no output, so it is fallback-eligible.
        """
        adapter = self._registry.adapter_for(provider)
        base = _base_log_fields(provider, req, streaming=True)

        logger.info("llm.request.started", **safe_kv(**base, prompt_chars=req.prompt_chars))
        start = time.monotonic()
        stream = adapter.complete_stream(provider, req)

        try:
            first = await anext(stream)
        except StopAsyncIteration:
            # The vendor finished without producing any text
            first = None
        except ProviderError as e:
            await _aclose_shielded(stream)
            latency_ms = _elapsed_ms(start)
            self._log_request_failed(base, e, latency_ms)
            await self._tracker.record(
                provider, TokenUsage.zero(), metadata, latency_ms, False, e.message
            )
            raise
        except asyncio.CancelledError:
            await _aclose_shielded(stream)
            latency_ms = _elapsed_ms(start)
            logger.info(
                "llm.stream.cancelled",
                **safe_kv(**base, latency_ms=latency_ms, emitted_chars=0),
            )
            await self._tracker.record(
                provider,
                TokenUsage.estimate(req.prompt_chars, 0),
                metadata,
                latency_ms,
                False,
                STREAM_CANCELLED_MESSAGE,
            )
            raise

        return _OpenStream(provider=provider, stream=stream, first=first, start=start)

    # ------------------------------------------------------------------
    # Logging helpers
    # ------------------------------------------------------------------

    def _log_request_failed(self, base: dict, error: ProviderError, latency_ms: int) -> None:
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error.error_class.value,
                status_code=error.status_code,
                latency_ms=latency_ms,
            ),
        )

    def _log_candidate_failure(
        self, provider: ProviderConfig, error: ProviderError, remaining: int
    ) -> None:
        logger.warning(
            "llm.candidate.failed",
            **safe_kv(
                provider_id=provider.id,
                vendor=provider.vendor.value,
                model=provider.model,
                error_class=error.error_class.value,
                remaining_candidates=remaining,
            ),
        )
