"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes,
together with the mapping from gateway exceptions onto them.
"""

from enum import Enum

from llmgate.services.llm.errors import (
    AllProvidersFailedError,
    NoEmbeddingProviderConfigured,
    NoProviderConfigured,
    QuotaExceededError,
    UnsupportedCapability,
)
from llmgate.services.llm.prompt import PromptTooLargeError


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"

    # Quota errors (429)
    E_QUOTA_EXCEEDED = "E_QUOTA_EXCEEDED"

    # Provider errors
    E_ALL_PROVIDERS_FAILED = "E_ALL_PROVIDERS_FAILED"  # 502
    E_NO_PROVIDER_CONFIGURED = "E_NO_PROVIDER_CONFIGURED"  # 503
    E_NO_EMBEDDING_PROVIDER = "E_NO_EMBEDDING_PROVIDER"  # 503
    E_STREAMING_DISABLED = "E_STREAMING_DISABLED"  # 503

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_QUOTA_EXCEEDED: 429,
    ApiErrorCode.E_ALL_PROVIDERS_FAILED: 502,
    ApiErrorCode.E_NO_PROVIDER_CONFIGURED: 503,
    ApiErrorCode.E_NO_EMBEDDING_PROVIDER: 503,
    ApiErrorCode.E_STREAMING_DISABLED: 503,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        details: Optional structured details rendered next to the message
    """

    def __init__(self, code: ApiErrorCode, message: str, details: dict | None = None):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(ApiErrorCode.E_INVALID_REQUEST, message)


def api_error_from_gateway(exc: Exception) -> ApiError:
    """Translate a gateway exception into the ApiError callers see.

    Exhaustion errors keep the last provider's message for operator
    diagnosis; quota errors carry the exceeded dimension and its threshold.
    """
    if isinstance(exc, ApiError):
        return exc

    if isinstance(exc, QuotaExceededError):
        return ApiError(
            ApiErrorCode.E_QUOTA_EXCEEDED,
            exc.message,
            details={
                "dimension": exc.dimension.value if exc.dimension else None,
                "limit": exc.limit,
                "current": exc.current,
            },
        )

    if isinstance(exc, AllProvidersFailedError):
        return ApiError(
            ApiErrorCode.E_ALL_PROVIDERS_FAILED,
            exc.message,
            details={"attempts": exc.attempts},
        )

    if isinstance(exc, NoProviderConfigured):
        return ApiError(ApiErrorCode.E_NO_PROVIDER_CONFIGURED, exc.message)

    if isinstance(exc, (NoEmbeddingProviderConfigured, UnsupportedCapability)):
        return ApiError(ApiErrorCode.E_NO_EMBEDDING_PROVIDER, exc.message)

    if isinstance(exc, (PromptTooLargeError, ValueError)):
        return InvalidRequestError(str(exc))

    return ApiError(ApiErrorCode.E_INTERNAL, "Internal server error")
