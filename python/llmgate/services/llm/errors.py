"""Gateway error taxonomy and provider error classification.

Exceptions:
- ProviderError: one vendor call failed (transport, auth, rate limit,
  malformed vendor response). Converted to fallback inside the executor.
- UnsupportedCapability: adapter asked for something its vendor cannot do
- NoProviderConfigured: zero enabled providers
- NoEmbeddingProviderConfigured: no enabled provider supports embeddings
- AllProvidersFailedError: every candidate failed; carries the LAST error
- QuotaExceededError: denied before any provider was touched
- SchemaValidationWarning: advisory, logged and warned, never raised across
  the gateway boundary

Error classes (ProviderError.error_class):
- E_LLM_INVALID_KEY: Authentication failure (401/403)
- E_LLM_RATE_LIMIT: Rate limit exceeded (429)
- E_LLM_CONTEXT_TOO_LARGE: Context length exceeded
- E_LLM_TIMEOUT: Request timed out
- E_LLM_PROVIDER_DOWN: Provider unavailable (5xx, network error, truncated stream)
- E_MODEL_NOT_AVAILABLE: Model not found or disabled
- E_LLM_MALFORMED_RESPONSE: 2xx with a body we could not interpret
"""

from enum import Enum
from typing import TYPE_CHECKING

from llmgate.logging import get_logger

if TYPE_CHECKING:
    from llmgate.services.llm.quota import QuotaStatus

logger = get_logger(__name__)


class LLMErrorClass(str, Enum):
    """Normalized provider error classifications."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"
    MALFORMED_RESPONSE = "E_LLM_MALFORMED_RESPONSE"


class GatewayError(Exception):
    """Base class for every error the gateway raises."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProviderError(GatewayError):
    """A single vendor call failed.

    Attributes:
        vendor: Vendor kind value (e.g. "openai")
        message: Human-readable message, safe to store in usage records
        error_class: Normalized classification
        status_code: Vendor HTTP status, when there was one
    """

    def __init__(
        self,
        vendor: str,
        message: str,
        error_class: LLMErrorClass = LLMErrorClass.PROVIDER_DOWN,
        status_code: int | None = None,
    ):
        self.vendor = vendor
        self.error_class = error_class
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.vendor}] {self.message}"


class UnsupportedCapability(GatewayError):
    """The provider's vendor kind or configuration lacks a capability."""

    def __init__(self, vendor: str, capability: str):
        self.vendor = vendor
        self.capability = capability
        super().__init__(f"Provider kind {vendor} does not support {capability}")


class NoProviderConfigured(GatewayError):
    """Zero enabled providers."""

    def __init__(
        self, message: str = "No enabled LLM provider found. Configure one in Settings."
    ):
        super().__init__(message)


class NoEmbeddingProviderConfigured(GatewayError):
    """No enabled provider advertises embedding support."""

    def __init__(
        self,
        message: str = "No embedding-capable LLM provider found. Configure one in Settings.",
    ):
        super().__init__(message)


class AllProvidersFailedError(GatewayError):
    """Every candidate was attempted and failed.

    Attributes:
        last_error: Error from the last candidate attempted
        attempts: Number of provider attempts made
    """

    def __init__(self, last_error: Exception, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        last_message = getattr(last_error, "message", None) or str(last_error)
        super().__init__(f"All LLM providers failed. Last error: {last_message}")


class QuotaExceededError(GatewayError):
    """The quota enforcer denied the request before any provider was attempted."""

    def __init__(self, status: "QuotaStatus"):
        self.status = status
        self.dimension = status.dimension
        self.limit = status.limit
        self.current = status.current
        super().__init__(status.reason or "Quota exceeded")


class SchemaValidationWarning(UserWarning):
    """JSON-mode output did not match the requested schema. Advisory only."""


def classify_provider_error(
    vendor: str,
    status_code: int | None,
    json_body: dict | None,
    exception: Exception | None,
) -> LLMErrorClass:
    """Classify a provider failure into a normalized error class.

    Args:
        vendor: One of "openai", "anthropic", "gemini"
        status_code: HTTP status code (if available)
        json_body: Parsed JSON error response (if available)
        exception: The exception that was raised (if any)

    Returns:
        The appropriate LLMErrorClass for this error.
    """
    # Transport failures carry no status code
    if exception is not None:
        exception_type = type(exception).__name__
        if "Timeout" in exception_type or "timeout" in str(exception).lower():
            return LLMErrorClass.TIMEOUT
        if "Network" in exception_type or "Connect" in exception_type:
            return LLMErrorClass.PROVIDER_DOWN

    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    if vendor == "openai":
        return _classify_openai_error(status_code, json_body)
    elif vendor == "anthropic":
        return _classify_anthropic_error(status_code, json_body)
    elif vendor == "gemini":
        return _classify_gemini_error(status_code, json_body)
    else:
        logger.warning("unknown_vendor_for_error_classification", vendor=vendor)
        return LLMErrorClass.PROVIDER_DOWN


def _error_object(json_body: dict | None) -> dict:
    if not isinstance(json_body, dict):
        return {}
    error = json_body.get("error")
    return error if isinstance(error, dict) else {}


def _classify_openai_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    """OpenAI and OpenAI-compatible endpoints.

    - 401 or 403 → INVALID_KEY
    - 429 → RATE_LIMIT
    - 404 → MODEL_NOT_AVAILABLE
    - 5xx → PROVIDER_DOWN
    - 400 + context_length_exceeded / "maximum context length" → CONTEXT_TOO_LARGE
    """
    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT

    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code == 400:
        error = _error_object(json_body)
        error_code = error.get("code") or ""
        error_message = (error.get("message") or "").lower()

        if error_code == "context_length_exceeded":
            return LLMErrorClass.CONTEXT_TOO_LARGE
        if "maximum context length" in error_message:
            return LLMErrorClass.CONTEXT_TOO_LARGE
        if "model" in error_message and "not found" in error_message:
            return LLMErrorClass.MODEL_NOT_AVAILABLE

    return LLMErrorClass.PROVIDER_DOWN


def _classify_anthropic_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    """Anthropic messages API.

    - 401 or 403 → INVALID_KEY
    - 429 or 529 (overloaded) → RATE_LIMIT
    - 404 → MODEL_NOT_AVAILABLE
    - 5xx → PROVIDER_DOWN
    - 400 invalid_request_error mentioning "too long" → CONTEXT_TOO_LARGE
    """
    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code in (429, 529):
        return LLMErrorClass.RATE_LIMIT

    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code == 400:
        error = _error_object(json_body)
        error_type = error.get("type") or ""
        error_message = (error.get("message") or "").lower()

        if error_type == "invalid_request_error" and "too long" in error_message:
            return LLMErrorClass.CONTEXT_TOO_LARGE

    return LLMErrorClass.PROVIDER_DOWN


def _classify_gemini_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    """Gemini generateContent API.

    - "API_KEY_INVALID" in body, 401 or 403 → INVALID_KEY
    - 429 or "RESOURCE_EXHAUSTED" → RATE_LIMIT
    - "exceeds the maximum" → CONTEXT_TOO_LARGE
    - 404 or "model not found" → MODEL_NOT_AVAILABLE
    - 5xx → PROVIDER_DOWN
    """
    body_str = str(json_body).lower() if json_body else ""

    if "api_key_invalid" in body_str:
        return LLMErrorClass.INVALID_KEY

    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429 or "resource_exhausted" in body_str:
        return LLMErrorClass.RATE_LIMIT

    if "exceeds the maximum" in body_str:
        return LLMErrorClass.CONTEXT_TOO_LARGE

    if status_code == 404 or "model not found" in body_str:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    return LLMErrorClass.PROVIDER_DOWN
