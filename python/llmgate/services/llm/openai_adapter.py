"""OpenAI-compatible adapter.

Serves OpenAI itself and every OpenAI-compatible endpoint (DeepSeek,
OpenRouter, vLLM, custom) through ProviderConfig.base_url.

- Completions: POST {base}/chat/completions
- Embeddings: POST {base}/embeddings
- Headers: Authorization: Bearer <key>, Content-Type: application/json
- Streaming: Server-Sent Events with data: {...} format
- Terminal event: data: [DONE]

Request body:
{
  "model": "<model_name>",
  "messages": [
    {"role": "system", "content": "..."},
    {"role": "user", "content": "..."}
  ],
  "temperature": 0.7,
  "max_tokens": 1024,                          # only when the request sets it
  "response_format": {"type": "json_object"},  # only in JSON mode
  "stream": false
}

Response (non-stream) - extract:
- text = choices[0].message.content
- usage = prompt_tokens / completion_tokens / total_tokens (estimated if absent)
- provider_request_id = response header x-request-id or body id
"""

import json
from collections.abc import AsyncIterator

import httpx

from llmgate.services.llm.adapter import ProviderAdapter
from llmgate.services.llm.errors import LLMErrorClass
from llmgate.services.llm.prompt import DEFAULT_SYSTEM_PROMPT, render_prompt
from llmgate.services.llm.types import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfig,
    TokenUsage,
    VendorKind,
)

OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions and embeddings."""

    vendor = VendorKind.OPENAI
    default_base_url = OPENAI_BASE_URL
    supports_embeddings = True

    async def _complete(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> CompletionResponse:
        response = await self._client.post(
            f"{self._base_url(provider)}/chat/completions",
            headers=self._build_headers(api_key),
            json=self._build_request_body(provider, req, stream=False),
            timeout=self._timeout,
        )
        response.raise_for_status()

        return self._parse_response(provider, req, response.json(), response.headers)

    async def _complete_stream(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> AsyncIterator[str]:
        async with self._client.stream(
            "POST",
            f"{self._base_url(provider)}/chat/completions",
            headers=self._build_headers(api_key),
            json=self._build_request_body(provider, req, stream=True),
            timeout=self._timeout,
        ) as response:
            await self._raise_for_status(response)

            received_done = False

            async for line in response.aiter_lines():
                # OpenAI SSE format: "data: {...}" or "data: [DONE]"
                if not line.startswith("data:"):
                    continue

                data_str = line[5:].strip()

                if data_str == "[DONE]":
                    received_done = True
                    break

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    continue

                if "error" in data:
                    raise self._error(
                        f"Stream error: {_error_message(data)}", LLMErrorClass.PROVIDER_DOWN
                    )

                choices = data.get("choices") or []
                if not choices:
                    continue

                delta_text = (choices[0].get("delta") or {}).get("content")
                if delta_text:
                    yield delta_text

            if not received_done:
                raise self._error(
                    "OpenAI stream ended without [DONE] marker", LLMErrorClass.PROVIDER_DOWN
                )

    async def _embed(self, provider: ProviderConfig, text: str, api_key: str) -> list[float]:
        response = await self._client.post(
            f"{self._base_url(provider)}/embeddings",
            headers=self._build_headers(api_key),
            json={
                "model": OPENAI_EMBEDDING_MODEL,
                "input": text,
                "encoding_format": "float",
            },
            timeout=self._timeout,
        )
        response.raise_for_status()

        data = response.json()
        return [float(value) for value in data["data"][0]["embedding"]]

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(
        self, provider: ProviderConfig, req: CompletionRequest, stream: bool
    ) -> dict:
        """Build request body; OpenAI uses the same role names as Turn."""
        turns = render_prompt(req, default_system_prompt=DEFAULT_SYSTEM_PROMPT)
        body: dict = {
            "model": provider.model,
            "messages": [{"role": turn.role, "content": turn.content} for turn in turns],
            "temperature": req.temperature,
            "stream": stream,
        }

        if req.max_tokens is not None:
            body["max_tokens"] = req.max_tokens

        if req.json_mode:
            body["response_format"] = {"type": "json_object"}

        return body

    def _parse_response(
        self,
        provider: ProviderConfig,
        req: CompletionRequest,
        data: dict,
        headers: httpx.Headers,
    ) -> CompletionResponse:
        choices = data.get("choices") or []
        if not choices:
            raise self._error("OpenAI response missing choices")

        text = (choices[0].get("message") or {}).get("content") or ""

        usage_data = data.get("usage") or {}
        usage = TokenUsage.from_counts(
            usage_data.get("prompt_tokens"),
            usage_data.get("completion_tokens"),
            usage_data.get("total_tokens"),
            prompt_chars=req.prompt_chars,
            completion_chars=len(text),
        )

        return CompletionResponse(
            text=text,
            vendor=self.vendor,
            model=provider.model,
            usage=usage,
            provider_id=provider.id,
            provider_request_id=headers.get("x-request-id") or data.get("id"),
        )


def _error_message(data: dict) -> str:
    error = data.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or "unknown error")[:200]
    return str(error)[:200]
