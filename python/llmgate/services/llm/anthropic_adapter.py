"""Anthropic adapter.

- Endpoint: POST {base}/v1/messages
- Headers: x-api-key: <key>, anthropic-version: 2023-06-01, Content-Type: application/json

Turn conversion:
- System turn extracted to the separate "system" field
- JSON mode has no native switch; an instruction is appended to the system prompt

Request body:
{
  "model": "<model_name>",
  "max_tokens": 4096,
  "temperature": 0.7,
  "system": "<system_prompt>",
  "messages": [{"role": "user", "content": "..."}]
}

Response (non-stream):
- text = all content[].text where type="text", joined with newlines
- usage.prompt_tokens = input_tokens, usage.completion_tokens = output_tokens
- provider_request_id = id

Streaming:
- Set "stream": true
- Text arrives in content_block_delta events with delta.type == "text_delta"
- Terminal: message_stop
- Vendor-side failures mid-stream arrive as an "error" event

No embeddings endpoint.
"""

import json
from collections.abc import AsyncIterator

from llmgate.services.llm.adapter import ProviderAdapter
from llmgate.services.llm.errors import LLMErrorClass
from llmgate.services.llm.prompt import render_prompt, split_system
from llmgate.services.llm.types import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfig,
    TokenUsage,
    VendorKind,
)

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"
ANTHROPIC_DEFAULT_MAX_TOKENS = 4096


class AnthropicAdapter(ProviderAdapter):
    """Anthropic messages endpoint."""

    vendor = VendorKind.ANTHROPIC
    default_base_url = ANTHROPIC_BASE_URL

    async def _complete(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> CompletionResponse:
        response = await self._client.post(
            f"{self._base_url(provider)}/v1/messages",
            headers=self._build_headers(api_key),
            json=self._build_request_body(provider, req, stream=False),
            timeout=self._timeout,
        )
        response.raise_for_status()

        return self._parse_response(provider, req, response.json())

    async def _complete_stream(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> AsyncIterator[str]:
        async with self._client.stream(
            "POST",
            f"{self._base_url(provider)}/v1/messages",
            headers=self._build_headers(api_key),
            json=self._build_request_body(provider, req, stream=True),
            timeout=self._timeout,
        ) as response:
            await self._raise_for_status(response)

            received_stop = False

            async for line in response.aiter_lines():
                # Anthropic SSE format: "event: <type>\ndata: {...}"; the data
                # payload repeats the event type, so only data lines are parsed.
                if not line.startswith("data:"):
                    continue

                try:
                    data = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    continue

                event_type = data.get("type", "")

                if event_type == "content_block_delta":
                    delta = data.get("delta") or {}
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield delta["text"]
                    continue

                if event_type == "message_stop":
                    received_stop = True
                    break

                if event_type == "error":
                    error = data.get("error") or {}
                    error_class = (
                        LLMErrorClass.RATE_LIMIT
                        if error.get("type") in ("overloaded_error", "rate_limit_error")
                        else LLMErrorClass.PROVIDER_DOWN
                    )
                    raise self._error(
                        f"Stream error: {str(error.get('message') or 'unknown error')[:200]}",
                        error_class,
                    )

            if not received_stop:
                raise self._error(
                    "Anthropic stream ended without message_stop event",
                    LLMErrorClass.PROVIDER_DOWN,
                )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    def _build_request_body(
        self, provider: ProviderConfig, req: CompletionRequest, stream: bool
    ) -> dict:
        """Build request body; system turn goes to its own field."""
        system_prompt, turns = split_system(render_prompt(req, json_instruction=True))

        body: dict = {
            "model": provider.model,
            "max_tokens": req.max_tokens or ANTHROPIC_DEFAULT_MAX_TOKENS,
            "temperature": req.temperature,
            "messages": [{"role": turn.role, "content": turn.content} for turn in turns],
            "stream": stream,
        }

        if system_prompt:
            body["system"] = system_prompt

        return body

    def _parse_response(
        self, provider: ProviderConfig, req: CompletionRequest, data: dict
    ) -> CompletionResponse:
        content_blocks = data.get("content")
        if not isinstance(content_blocks, list):
            raise self._error("Anthropic response missing content")

        text = "\n".join(
            block.get("text", "") for block in content_blocks if block.get("type") == "text"
        )

        usage_data = data.get("usage") or {}
        usage = TokenUsage.from_counts(
            usage_data.get("input_tokens"),
            usage_data.get("output_tokens"),
            prompt_chars=req.prompt_chars,
            completion_chars=len(text),
        )

        return CompletionResponse(
            text=text,
            vendor=self.vendor,
            model=provider.model,
            usage=usage,
            provider_id=provider.id,
            provider_request_id=data.get("id"),
        )
