"""Gemini adapter.

- Non-streaming: POST {base}/v1beta/models/{model}:generateContent
- Streaming: POST {base}/v1beta/models/{model}:streamGenerateContent?alt=sse
- Embeddings: POST {base}/v1beta/models/text-embedding-004:embedContent

Auth:
- Header: x-goog-api-key: <key>
- NEVER put key in query param

Turn conversion:
- System turn → systemInstruction.parts[0].text
- Each remaining turn → {"role": "user", "parts": [{"text": "..."}]}
- JSON mode → generationConfig.responseMimeType = "application/json"

Request body:
{
  "contents": [{"role": "user", "parts": [{"text": "..."}]}],
  "systemInstruction": {"parts": [{"text": "<system_prompt>"}]},
  "generationConfig": {"maxOutputTokens": 2048, "temperature": 0.7}
}

Response:
- text = concatenate candidates[0].content.parts[].text
- usage from usageMetadata (promptTokenCount / candidatesTokenCount /
  totalTokenCount); estimated with ceil(chars / 4) when absent

Streaming:
- Each event: data: {"candidates":[{"content":{"parts":[{"text":"..."}]}}]}
- Terminal: an event whose candidate carries a finishReason
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
    Turn,
    VendorKind,
)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"
GEMINI_EMBEDDING_MODEL = "text-embedding-004"
GEMINI_DEFAULT_MAX_TOKENS = 2048


class GeminiAdapter(ProviderAdapter):
    """Google Gemini generateContent and embedContent."""

    vendor = VendorKind.GEMINI
    default_base_url = GEMINI_BASE_URL
    supports_embeddings = True

    async def _complete(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> CompletionResponse:
        response = await self._client.post(
            f"{self._models_url(provider)}/{provider.model}:generateContent",
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=self._timeout,
        )
        response.raise_for_status()

        return self._parse_response(provider, req, response.json())

    async def _complete_stream(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> AsyncIterator[str]:
        async with self._client.stream(
            "POST",
            f"{self._models_url(provider)}/{provider.model}:streamGenerateContent?alt=sse",
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=self._timeout,
        ) as response:
            await self._raise_for_status(response)

            received_finish = False

            async for line in response.aiter_lines():
                # Gemini SSE format: "data: {...}"
                if not line.startswith("data:"):
                    continue

                try:
                    data = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    continue

                if "error" in data:
                    error = data.get("error") or {}
                    raise self._error(
                        f"Stream error: {str(error.get('message') or 'unknown error')[:200]}",
                        LLMErrorClass.PROVIDER_DOWN,
                    )

                candidates = data.get("candidates") or []
                if not candidates:
                    continue

                candidate = candidates[0]
                delta_text = _join_parts(candidate)
                if delta_text:
                    yield delta_text

                if candidate.get("finishReason"):
                    received_finish = True
                    break

            if not received_finish:
                raise self._error(
                    "Gemini stream ended without a finish reason", LLMErrorClass.PROVIDER_DOWN
                )

    async def _embed(self, provider: ProviderConfig, text: str, api_key: str) -> list[float]:
        response = await self._client.post(
            f"{self._models_url(provider)}/{GEMINI_EMBEDDING_MODEL}:embedContent",
            headers=self._build_headers(api_key),
            json={
                "model": f"models/{GEMINI_EMBEDDING_MODEL}",
                "content": {"parts": [{"text": text}]},
            },
            timeout=self._timeout,
        )
        response.raise_for_status()

        data = response.json()
        return [float(value) for value in data["embedding"]["values"]]

    def _models_url(self, provider: ProviderConfig) -> str:
        return f"{self._base_url(provider)}/v1beta/models"

    def _build_headers(self, api_key: str) -> dict[str, str]:
        """Build request headers.

        Note: API key goes in header, NEVER in query param.
        """
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: CompletionRequest) -> dict:
        system_prompt, turns = split_system(render_prompt(req))

        generation_config: dict = {
            "temperature": req.temperature,
            "maxOutputTokens": req.max_tokens or GEMINI_DEFAULT_MAX_TOKENS,
        }
        if req.json_mode:
            generation_config["responseMimeType"] = "application/json"

        body: dict = {
            "contents": [self._turn_to_content(turn) for turn in turns],
            "generationConfig": generation_config,
        }

        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        return body

    def _turn_to_content(self, turn: Turn) -> dict:
        """Gemini uses "model" instead of "assistant" for the role."""
        role = "model" if turn.role == "assistant" else turn.role
        return {
            "role": role,
            "parts": [{"text": turn.content}],
        }

    def _parse_response(
        self, provider: ProviderConfig, req: CompletionRequest, data: dict
    ) -> CompletionResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            raise self._error("Gemini response missing candidates")

        text = _join_parts(candidates[0])

        usage_metadata = data.get("usageMetadata") or {}
        usage = TokenUsage.from_counts(
            usage_metadata.get("promptTokenCount"),
            usage_metadata.get("candidatesTokenCount"),
            usage_metadata.get("totalTokenCount"),
            prompt_chars=req.prompt_chars,
            completion_chars=len(text),
        )

        return CompletionResponse(
            text=text,
            vendor=self.vendor,
            model=provider.model,
            usage=usage,
            provider_id=provider.id,
            provider_request_id=data.get("responseId"),
        )


def _join_parts(candidate: dict) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if "text" in part)
