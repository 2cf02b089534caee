"""Log guard for gateway events.

Never logged: provider credentials (encrypted or not), the internal secret,
system and user prompts, completion text, embedding input.

Text may be described instead, through keys carrying a redacted suffix
(prompt_chars, output_sha256, ...). describe_text builds those pairs.
"""

import hashlib
import os

from llmgate.logging import get_logger

logger = get_logger(__name__)

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "system_prompt",
        "user_prompt",
        "content",
        "text",
        "completion",
        "embedding_input",
        "api_key",
        "credential",
        "bearer",
        "secret",
        "password",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")

# Environments where a violation fails loudly instead of being reported
STRICT_ENVS = ("local", "test")


def hash_text(value: str) -> str:
    """Stable SHA-256 hex digest, for correlating text across log lines."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def describe_text(name: str, value: str) -> dict:
    """Length and digest of a text under redacted keys (<name>_chars, <name>_sha256)."""
    return {f"{name}_chars": len(value), f"{name}_sha256": hash_text(value)}


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Return kwargs unchanged after checking them against FORBIDDEN_KEYS.

    Usage:
        logger.info("llm.request.started", **safe_kv(
            vendor="openai",
            prompt_chars=1234,        # OK: _chars suffix
            # user_prompt="...",      # BLOCKED
        ))

    Args:
        _env: Override for LLMGATE_ENV (test-only).

    Raises:
        ValueError: In local/test, when a forbidden key is present.
    """
    violations = sorted(
        key for key in kwargs if key in FORBIDDEN_KEYS and not key.endswith(REDACTED_SUFFIXES)
    )
    if not violations:
        return kwargs

    env = _env or os.environ.get("LLMGATE_ENV", "local")
    if env in STRICT_ENVS:
        raise ValueError(f"Forbidden log keys without redacted suffix: {violations}")

    logger.warning("safe_kv_violation", forbidden_keys=violations)
    return kwargs
