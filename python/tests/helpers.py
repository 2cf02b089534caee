"""Test helpers for building providers, gateways, and vendor payloads.

Provides:
- Provider config factories with per-vendor defaults
- A gateway wired to in-memory stores
- Vendor response and SSE body builders
"""

import json
from datetime import UTC, datetime

import httpx

from llmgate.services.llm import (
    Capability,
    InMemoryPlanTierStore,
    InMemoryProviderStore,
    InMemoryUsageStore,
    LLMGateway,
    ProviderConfig,
    RoutingRule,
    VendorKind,
)

FIXED_NOW = datetime(2026, 3, 10, 15, 30, tzinfo=UTC)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
GEMINI_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"

DEFAULT_MODELS = {
    VendorKind.OPENAI: "gpt-4o-mini",
    VendorKind.ANTHROPIC: "claude-3-haiku-20240307",
    VendorKind.GEMINI: "gemini-1.5-flash",
}


def fake_decrypt(blob: str) -> str:
    """Stand-in for decrypt_credential; the key is derived from the blob."""
    return f"key-for-{blob}"


def make_provider(
    id: int = 1,
    vendor: VendorKind = VendorKind.OPENAI,
    *,
    model: str | None = None,
    priority: int = 0,
    enabled: bool = True,
    embeddings: bool = False,
    base_url: str | None = None,
    name: str | None = None,
) -> ProviderConfig:
    return ProviderConfig(
        id=id,
        name=name or f"{vendor.value}-{id}",
        vendor=vendor,
        model=model or DEFAULT_MODELS[vendor],
        api_key_encrypted=f"blob-{id}",
        base_url=base_url,
        enabled=enabled,
        priority=priority,
        capabilities=frozenset({Capability.EMBEDDINGS}) if embeddings else frozenset(),
    )


def compatible_url(host: str) -> str:
    """Chat completions URL of an OpenAI-compatible provider at host."""
    return f"https://{host}/v1/chat/completions"


def make_gateway(
    providers: list[ProviderConfig],
    client: httpx.AsyncClient,
    *,
    rules: list[RoutingRule] | None = None,
    tiers: dict[int, str] | None = None,
    usage_store=None,
    clock=lambda: FIXED_NOW,
) -> LLMGateway:
    return LLMGateway(
        InMemoryProviderStore(providers, rules),
        usage_store if usage_store is not None else InMemoryUsageStore(),
        InMemoryPlanTierStore(tiers),
        client,
        decrypt=fake_decrypt,
        clock=clock,
    )


def openai_completion(text: str = "Hello!", *, prompt_tokens=10, completion_tokens=5) -> dict:
    return {
        "id": "chatcmpl-abc123",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def sse_lines(*payloads: dict | str) -> str:
    """Render payloads as an SSE body; strings are sent as raw data."""
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    return "".join(lines)


def openai_stream(*fragments: str, done: bool = True) -> str:
    payloads: list[dict | str] = [
        {"choices": [{"index": 0, "delta": {"content": fragment}}]} for fragment in fragments
    ]
    if done:
        payloads.append("[DONE]")
    return sse_lines(*payloads)
