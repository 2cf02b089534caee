"""Tests for vendor adapters.

Tests cover:
- Request construction per vendor (URL, auth header, body shape)
- Response parsing (text, usage, provider request id)
- Usage estimation when the vendor omits counts
- Error normalization to ProviderError with the right error class
- Streaming fragments, terminal markers, and truncated streams
- Embeddings and the capability check
"""

import json

import httpx
import pytest
import respx

from llmgate.services.crypto import CryptoError
from llmgate.services.llm import (
    CompletionRequest,
    LLMErrorClass,
    ProviderError,
    UnsupportedCapability,
    VendorKind,
)
from llmgate.services.llm.anthropic_adapter import AnthropicAdapter
from llmgate.services.llm.gemini_adapter import GeminiAdapter
from llmgate.services.llm.openai_adapter import OpenAIAdapter
from llmgate.services.llm.prompt import DEFAULT_SYSTEM_PROMPT, JSON_MODE_INSTRUCTION
from tests.helpers import (
    ANTHROPIC_URL,
    GEMINI_MODELS_URL,
    OPENAI_EMBEDDINGS_URL,
    OPENAI_URL,
    fake_decrypt,
    make_provider,
    openai_completion,
    openai_stream,
    sse_lines,
)


@pytest.fixture
def llm_request() -> CompletionRequest:
    return CompletionRequest(
        user_prompt="Summarize the audit findings.",
        system_prompt="You are terse.",
        max_tokens=100,
    )


async def collect(stream) -> list[str]:
    return [fragment async for fragment in stream]


# =============================================================================
# OpenAI Adapter Tests
# =============================================================================


class TestOpenAIAdapter:
    """Tests for the OpenAI-compatible adapter."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_complete_success(self, httpx_client, llm_request):
        route = respx.post(OPENAI_URL).respond(
            200, json=openai_completion("Three findings."), headers={"x-request-id": "req-1"}
        )
        provider = make_provider(1)

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        response = await adapter.complete(provider, llm_request)

        assert response.text == "Three findings."
        assert response.vendor == VendorKind.OPENAI
        assert response.model == "gpt-4o-mini"
        assert response.provider_id == 1
        assert response.provider_request_id == "req-1"
        assert response.usage.prompt_tokens == 10
        assert response.usage.completion_tokens == 5
        assert response.usage.total_tokens == 15

        sent = route.calls.last.request
        assert sent.headers["authorization"] == "Bearer key-for-blob-1"
        body = json.loads(sent.content)
        assert body["model"] == "gpt-4o-mini"
        assert body["stream"] is False
        assert body["max_tokens"] == 100
        assert body["messages"] == [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Summarize the audit findings."},
        ]
        assert "response_format" not in body

    @pytest.mark.asyncio
    @respx.mock
    async def test_default_system_prompt_and_json_mode(self, httpx_client):
        route = respx.post(OPENAI_URL).respond(200, json=openai_completion('{"ok": true}'))

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        await adapter.complete(
            make_provider(1), CompletionRequest(user_prompt="Classify.", json_mode=True)
        )

        body = json.loads(route.calls.last.request.content)
        assert body["messages"][0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        assert body["response_format"] == {"type": "json_object"}
        assert "max_tokens" not in body

    @pytest.mark.asyncio
    @respx.mock
    async def test_base_url_override(self, httpx_client, llm_request):
        route = respx.post("https://api.deepseek.com/v1/chat/completions").respond(
            200, json=openai_completion()
        )
        provider = make_provider(2, model="deepseek-chat", base_url="https://api.deepseek.com/v1/")

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        response = await adapter.complete(provider, llm_request)

        assert route.called
        assert response.model == "deepseek-chat"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_usage_is_estimated(self, httpx_client):
        payload = openai_completion("abcdefghi")
        del payload["usage"]
        respx.post(OPENAI_URL).respond(200, json=payload)

        request = CompletionRequest(user_prompt="x" * 10, system_prompt="y" * 6)
        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        response = await adapter.complete(make_provider(1), request)

        # ceil(16 / 4) prompt, ceil(9 / 4) completion
        assert response.usage.prompt_tokens == 4
        assert response.usage.completion_tokens == 3
        assert response.usage.total_tokens == 7

    @pytest.mark.asyncio
    @respx.mock
    async def test_plaintext_key_override_skips_decrypt(self, httpx_client, llm_request):
        route = respx.post(OPENAI_URL).respond(200, json=openai_completion())

        def refuse(blob: str) -> str:
            raise AssertionError("decrypt must not be called")

        adapter = OpenAIAdapter(httpx_client, decrypt=refuse)
        await adapter.complete(make_provider(1), llm_request, api_key="sk-plain")

        assert route.calls.last.request.headers["authorization"] == "Bearer sk-plain"

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_key_401(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(
            401,
            json={"error": {"message": "Incorrect API key provided", "code": "invalid_api_key"}},
        )

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.INVALID_KEY
        assert exc_info.value.status_code == 401
        assert exc_info.value.vendor == "openai"
        assert "Incorrect API key provided" in exc_info.value.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_429(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(429, json={"error": {"message": "Rate limit reached"}})

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.RATE_LIMIT

    @pytest.mark.asyncio
    @respx.mock
    async def test_context_too_large(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(
            400,
            json={
                "error": {
                    "message": "This model's maximum context length is 8192 tokens.",
                    "code": "context_length_exceeded",
                }
            },
        )

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.CONTEXT_TOO_LARGE

    @pytest.mark.asyncio
    @respx.mock
    async def test_provider_down_500(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(500, text="upstream exploded")

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN
        assert exc_info.value.message == "Provider returned HTTP 500"

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).mock(side_effect=httpx.ReadTimeout("Read timed out"))

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt, timeout_s=1)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.TIMEOUT

    @pytest.mark.asyncio
    @respx.mock
    async def test_connect_error(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN
        assert "ConnectError" in exc_info.value.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_success_body(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(200, json={"id": "x", "choices": []})

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_undecryptable_credential(self, httpx_client, llm_request):
        def broken(blob: str) -> str:
            raise CryptoError("bad blob")

        adapter = OpenAIAdapter(httpx_client, decrypt=broken)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(make_provider(1), llm_request)

        assert exc_info.value.error_class == LLMErrorClass.INVALID_KEY
        assert "bad blob" not in exc_info.value.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_success(self, httpx_client, llm_request):
        route = respx.post(OPENAI_URL).respond(
            200,
            text=openai_stream("Hel", "", "lo", " world"),
            headers={"content-type": "text/event-stream"},
        )

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        fragments = await collect(adapter.complete_stream(make_provider(1), llm_request))

        assert fragments == ["Hel", "lo", " world"]
        assert json.loads(route.calls.last.request.content)["stream"] is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_without_done_marker_raises(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(
            200,
            text=openai_stream("partial", done=False),
            headers={"content-type": "text/event-stream"},
        )

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        received = []
        with pytest.raises(ProviderError) as exc_info:
            async for fragment in adapter.complete_stream(make_provider(1), llm_request):
                received.append(fragment)

        assert received == ["partial"]
        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_error_event(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(
            200,
            text=sse_lines({"error": {"message": "server overloaded"}}),
            headers={"content-type": "text/event-stream"},
        )

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await collect(adapter.complete_stream(make_provider(1), llm_request))

        assert "server overloaded" in exc_info.value.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_http_error_before_output(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(401, json={"error": {"message": "bad key"}})

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await collect(adapter.complete_stream(make_provider(1), llm_request))

        assert exc_info.value.error_class == LLMErrorClass.INVALID_KEY
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    @respx.mock
    async def test_embed(self, httpx_client):
        route = respx.post(OPENAI_EMBEDDINGS_URL).respond(
            200, json={"data": [{"embedding": [0.1, -0.2, 0.3]}]}
        )

        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        vector = await adapter.embed(make_provider(1, embeddings=True), "some text")

        assert vector == [0.1, -0.2, 0.3]
        body = json.loads(route.calls.last.request.content)
        assert body["model"] == "text-embedding-3-small"
        assert body["input"] == "some text"

    @pytest.mark.asyncio
    async def test_embed_requires_capability(self, httpx_client):
        adapter = OpenAIAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(UnsupportedCapability):
            await adapter.embed(make_provider(1, embeddings=False), "some text")


# =============================================================================
# Anthropic Adapter Tests
# =============================================================================


class TestAnthropicAdapter:
    """Tests for the Anthropic adapter."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_complete_success(self, httpx_client):
        route = respx.post(ANTHROPIC_URL).respond(
            200,
            json={
                "id": "msg_01",
                "type": "message",
                "content": [
                    {"type": "text", "text": "First."},
                    {"type": "tool_use", "id": "t1"},
                    {"type": "text", "text": "Second."},
                ],
                "usage": {"input_tokens": 12, "output_tokens": 4},
            },
        )
        provider = make_provider(3, VendorKind.ANTHROPIC)
        request = CompletionRequest(user_prompt="Go", system_prompt="Be brief.")

        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        response = await adapter.complete(provider, request)

        assert response.text == "First.\nSecond."
        assert response.vendor == VendorKind.ANTHROPIC
        assert response.provider_request_id == "msg_01"
        assert response.usage.prompt_tokens == 12
        assert response.usage.completion_tokens == 4
        assert response.usage.total_tokens == 16

        sent = route.calls.last.request
        assert sent.headers["x-api-key"] == "key-for-blob-3"
        assert sent.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(sent.content)
        assert body["system"] == "Be brief."
        assert body["max_tokens"] == 4096
        assert body["messages"] == [{"role": "user", "content": "Go"}]

    @pytest.mark.asyncio
    @respx.mock
    async def test_json_mode_adds_instruction(self, httpx_client):
        route = respx.post(ANTHROPIC_URL).respond(
            200,
            json={"id": "m", "content": [{"type": "text", "text": "{}"}], "usage": {}},
        )

        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        await adapter.complete(
            make_provider(3, VendorKind.ANTHROPIC),
            CompletionRequest(user_prompt="Go", json_mode=True),
        )

        body = json.loads(route.calls.last.request.content)
        assert body["system"] == JSON_MODE_INSTRUCTION

    @pytest.mark.asyncio
    @respx.mock
    async def test_overloaded_529_is_rate_limit(self, httpx_client):
        respx.post(ANTHROPIC_URL).respond(
            529, json={"type": "error", "error": {"type": "overloaded_error", "message": "busy"}}
        )

        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(
                make_provider(3, VendorKind.ANTHROPIC), CompletionRequest(user_prompt="Go")
            )

        assert exc_info.value.error_class == LLMErrorClass.RATE_LIMIT
        assert exc_info.value.vendor == "anthropic"

    @pytest.mark.asyncio
    @respx.mock
    async def test_prompt_too_long(self, httpx_client):
        respx.post(ANTHROPIC_URL).respond(
            400,
            json={
                "type": "error",
                "error": {"type": "invalid_request_error", "message": "prompt is too long"},
            },
        )

        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(
                make_provider(3, VendorKind.ANTHROPIC), CompletionRequest(user_prompt="Go")
            )

        assert exc_info.value.error_class == LLMErrorClass.CONTEXT_TOO_LARGE

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_success(self, httpx_client):
        body = (
            'event: message_start\ndata: {"type": "message_start"}\n\n'
            'event: content_block_delta\ndata: {"type": "content_block_delta", '
            '"delta": {"type": "text_delta", "text": "Hi"}}\n\n'
            'event: content_block_delta\ndata: {"type": "content_block_delta", '
            '"delta": {"type": "text_delta", "text": " there"}}\n\n'
            'event: message_stop\ndata: {"type": "message_stop"}\n\n'
        )
        respx.post(ANTHROPIC_URL).respond(
            200, text=body, headers={"content-type": "text/event-stream"}
        )

        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        fragments = await collect(
            adapter.complete_stream(
                make_provider(3, VendorKind.ANTHROPIC), CompletionRequest(user_prompt="Go")
            )
        )

        assert fragments == ["Hi", " there"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_error_event(self, httpx_client):
        body = sse_lines(
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}},
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
        )
        respx.post(ANTHROPIC_URL).respond(
            200, text=body, headers={"content-type": "text/event-stream"}
        )

        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        received = []
        with pytest.raises(ProviderError) as exc_info:
            async for fragment in adapter.complete_stream(
                make_provider(3, VendorKind.ANTHROPIC), CompletionRequest(user_prompt="Go")
            ):
                received.append(fragment)

        assert received == ["Hi"]
        assert exc_info.value.error_class == LLMErrorClass.RATE_LIMIT

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_without_message_stop_raises(self, httpx_client):
        body = sse_lines(
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}
        )
        respx.post(ANTHROPIC_URL).respond(
            200, text=body, headers={"content-type": "text/event-stream"}
        )

        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await collect(
                adapter.complete_stream(
                    make_provider(3, VendorKind.ANTHROPIC), CompletionRequest(user_prompt="Go")
                )
            )

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN

    @pytest.mark.asyncio
    async def test_embeddings_unsupported(self, httpx_client):
        adapter = AnthropicAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(UnsupportedCapability):
            await adapter.embed(make_provider(3, VendorKind.ANTHROPIC, embeddings=True), "x")


# =============================================================================
# Gemini Adapter Tests
# =============================================================================


GEMINI_GENERATE_URL = f"{GEMINI_MODELS_URL}/gemini-1.5-flash:generateContent"
GEMINI_STREAM_URL = f"{GEMINI_MODELS_URL}/gemini-1.5-flash:streamGenerateContent"


class TestGeminiAdapter:
    """Tests for the Gemini adapter."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_complete_success(self, httpx_client):
        route = respx.post(GEMINI_GENERATE_URL).respond(
            200,
            json={
                "responseId": "resp-9",
                "candidates": [
                    {
                        "content": {"role": "model", "parts": [{"text": "Part A "}, {"text": "B"}]},
                        "finishReason": "STOP",
                    }
                ],
                "usageMetadata": {
                    "promptTokenCount": 7,
                    "candidatesTokenCount": 3,
                    "totalTokenCount": 10,
                },
            },
        )
        provider = make_provider(5, VendorKind.GEMINI)
        request = CompletionRequest(user_prompt="Go", system_prompt="Sys", json_mode=True)

        adapter = GeminiAdapter(httpx_client, decrypt=fake_decrypt)
        response = await adapter.complete(provider, request)

        assert response.text == "Part A B"
        assert response.provider_request_id == "resp-9"
        assert response.usage.total_tokens == 10

        sent = route.calls.last.request
        assert sent.headers["x-goog-api-key"] == "key-for-blob-5"
        assert "key" not in sent.url.params
        body = json.loads(sent.content)
        assert body["systemInstruction"] == {"parts": [{"text": "Sys"}]}
        assert body["contents"] == [{"role": "user", "parts": [{"text": "Go"}]}]
        assert body["generationConfig"]["maxOutputTokens"] == 2048
        assert body["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_api_key_in_body(self, httpx_client):
        respx.post(GEMINI_GENERATE_URL).respond(
            400,
            json={
                "error": {
                    "code": 400,
                    "message": "API key not valid.",
                    "status": "INVALID_ARGUMENT",
                    "details": [{"reason": "API_KEY_INVALID"}],
                }
            },
        )

        adapter = GeminiAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(
                make_provider(5, VendorKind.GEMINI), CompletionRequest(user_prompt="Go")
            )

        assert exc_info.value.error_class == LLMErrorClass.INVALID_KEY

    @pytest.mark.asyncio
    @respx.mock
    async def test_resource_exhausted(self, httpx_client):
        respx.post(GEMINI_GENERATE_URL).respond(
            429, json={"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}}
        )

        adapter = GeminiAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(
                make_provider(5, VendorKind.GEMINI), CompletionRequest(user_prompt="Go")
            )

        assert exc_info.value.error_class == LLMErrorClass.RATE_LIMIT

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_candidates_is_malformed(self, httpx_client):
        respx.post(GEMINI_GENERATE_URL).respond(200, json={"promptFeedback": {}})

        adapter = GeminiAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete(
                make_provider(5, VendorKind.GEMINI), CompletionRequest(user_prompt="Go")
            )

        assert exc_info.value.error_class == LLMErrorClass.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_success(self, httpx_client):
        body = sse_lines(
            {"candidates": [{"content": {"parts": [{"text": "One "}]}}]},
            {"candidates": [{"content": {"parts": [{"text": "two"}]}, "finishReason": "STOP"}]},
        )
        route = respx.post(url__startswith=GEMINI_STREAM_URL).respond(
            200, text=body, headers={"content-type": "text/event-stream"}
        )

        adapter = GeminiAdapter(httpx_client, decrypt=fake_decrypt)
        fragments = await collect(
            adapter.complete_stream(
                make_provider(5, VendorKind.GEMINI), CompletionRequest(user_prompt="Go")
            )
        )

        assert fragments == ["One ", "two"]
        assert route.calls.last.request.url.params["alt"] == "sse"

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_without_finish_reason_raises(self, httpx_client):
        body = sse_lines({"candidates": [{"content": {"parts": [{"text": "One "}]}}]})
        respx.post(url__startswith=GEMINI_STREAM_URL).respond(
            200, text=body, headers={"content-type": "text/event-stream"}
        )

        adapter = GeminiAdapter(httpx_client, decrypt=fake_decrypt)
        with pytest.raises(ProviderError) as exc_info:
            await collect(
                adapter.complete_stream(
                    make_provider(5, VendorKind.GEMINI), CompletionRequest(user_prompt="Go")
                )
            )

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN

    @pytest.mark.asyncio
    @respx.mock
    async def test_embed(self, httpx_client):
        route = respx.post(f"{GEMINI_MODELS_URL}/text-embedding-004:embedContent").respond(
            200, json={"embedding": {"values": [1, 2.5]}}
        )

        adapter = GeminiAdapter(httpx_client, decrypt=fake_decrypt)
        vector = await adapter.embed(make_provider(5, VendorKind.GEMINI, embeddings=True), "hi")

        assert vector == [1.0, 2.5]
        body = json.loads(route.calls.last.request.content)
        assert body["content"] == {"parts": [{"text": "hi"}]}


# =============================================================================
# Vendor Kind Parsing
# =============================================================================


class TestVendorKind:
    @pytest.mark.parametrize(
        "stored,expected",
        [
            ("openai", VendorKind.OPENAI),
            ("Anthropic", VendorKind.ANTHROPIC),
            ("gemini ", VendorKind.GEMINI),
            ("deepseek", VendorKind.OPENAI),
            ("custom", VendorKind.OPENAI),
            ("", VendorKind.OPENAI),
        ],
    )
    def test_parse(self, stored, expected):
        assert VendorKind.parse(stored) == expected
