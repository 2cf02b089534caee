"""Streaming generation over Server-Sent Events.

POST /generate/stream takes the same body as POST /generate.

Everything that can fail before the first fragment (quota, no provider,
every candidate failing before output) is answered with a normal JSON error
envelope; the first fragment is pulled before the response starts.

Once streaming has begun the body is a sequence of:
    event: delta   data: {"delta": "..."}
    event: done    data: {"status": "complete" | "error", "error_code": ...}
A "done" event with status "error" marks a truncated result; no other
provider is tried after output has started.

When the client disconnects, Starlette cancels the response task, which
closes the provider stream and records the attempt as cancelled.
"""

import json
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from llmgate.api.deps import get_gateway
from llmgate.api.routes.generate import build_completion_request
from llmgate.config import get_settings
from llmgate.errors import ApiError, ApiErrorCode
from llmgate.logging import get_logger
from llmgate.schemas.generation import GenerateRequest
from llmgate.services.llm import LLMGateway, ProviderError

logger = get_logger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


def format_sse_event(event: str, data: dict) -> str:
    """Format data as an SSE event."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def sse_events(stream: AsyncIterator[str], first: str | None) -> AsyncIterator[str]:
    """Render an already-primed fragment stream as SSE events."""
    status = "complete"
    error_code: str | None = None

    async with aclosing(stream):
        try:
            if first is not None:
                yield format_sse_event("delta", {"delta": first})
                async for fragment in stream:
                    yield format_sse_event("delta", {"delta": fragment})
        except ProviderError as e:
            status, error_code = "error", e.error_class.value
        except Exception as e:
            logger.exception("stream.unexpected_error", error_type=type(e).__name__)
            status, error_code = "error", ApiErrorCode.E_INTERNAL.value

    yield format_sse_event("done", {"status": status, "error_code": error_code})


@router.post("/generate/stream")
async def generate_stream(
    body: GenerateRequest,
    gateway: Annotated[LLMGateway, Depends(get_gateway)],
) -> StreamingResponse:
    if not get_settings().enable_streaming:
        raise ApiError(ApiErrorCode.E_STREAMING_DISABLED, "Streaming is disabled")

    request = build_completion_request(body)
    stream = gateway.generate_stream(request, body.to_usage_metadata("generate_stream"))

    # Errors raised here propagate to the exception handlers as JSON responses
    try:
        first = await anext(stream)
    except StopAsyncIteration:
        first = None

    return StreamingResponse(
        sse_events(stream, first),
        media_type="text/event-stream; charset=utf-8",
        headers=SSE_HEADERS,
    )
