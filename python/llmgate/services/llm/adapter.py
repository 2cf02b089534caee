"""Abstract base class for provider adapters.

Every vendor kind exposes the same three operations:
- complete: blocking completion → CompletionResponse
- complete_stream: async generator of text fragments
- embed: vector of floats (only for providers with the embeddings capability)

Rules:
- No retries inside adapters (fallback belongs to the executor)
- No DB access
- No logging of request/response bodies or credentials
- Credential decrypted once per call via the injected decrypt primitive
- Every failure leaves the adapter as ProviderError (or UnsupportedCapability)

Subclasses implement _complete / _complete_stream / _embed and may raise raw
httpx errors; the public methods normalize them in one place.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import aclosing, contextmanager

import httpx

from llmgate.services.crypto import CryptoError, decrypt_credential
from llmgate.services.llm.errors import (
    LLMErrorClass,
    ProviderError,
    UnsupportedCapability,
    classify_provider_error,
)
from llmgate.services.llm.types import (
    Capability,
    CompletionRequest,
    CompletionResponse,
    ProviderConfig,
    VendorKind,
)

DEFAULT_TIMEOUT_S = 45
DEFAULT_CONNECT_TIMEOUT_S = 10.0

# Vendor error messages are kept short in usage records
MAX_VENDOR_DETAIL_CHARS = 200


class ProviderAdapter(ABC):
    """Base class for vendor adapters.

    Attributes:
        vendor: The vendor kind this adapter speaks.
        default_base_url: Endpoint used when the provider has no override.
        supports_embeddings: Whether the vendor has an embeddings endpoint
            (the adapter overrides _embed).
    """

    vendor: VendorKind
    default_base_url: str
    supports_embeddings: bool = False

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        decrypt: Callable[[str], str] = decrypt_credential,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S,
    ):
        """Initialize adapter with the shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            decrypt: Credential decryption primitive.
            timeout_s: Per-call timeout.
            connect_timeout_s: Per-call connect timeout.
        """
        self._client = client
        self._decrypt = decrypt
        self._timeout = httpx.Timeout(timeout_s, connect=connect_timeout_s)

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    async def complete(
        self,
        provider: ProviderConfig,
        req: CompletionRequest,
        *,
        api_key: str | None = None,
    ) -> CompletionResponse:
        """Blocking completion.

        Args:
            provider: Provider configuration.
            req: The completion request.
            api_key: Plaintext key override (connection tests); skips decryption.

        Raises:
            ProviderError: On any transport, authentication, or vendor-side error.
        """
        with self._translate_errors():
            key = api_key if api_key is not None else self._decrypt(provider.api_key_encrypted)
            return await self._complete(provider, req, key)

    async def complete_stream(
        self,
        provider: ProviderConfig,
        req: CompletionRequest,
    ) -> AsyncIterator[str]:
        """Streaming completion. Yields non-empty text fragments.

        Fragments already yielded are never retracted. Closing this generator
        closes the upstream HTTP stream.

        Raises:
            ProviderError: On failure, before or after the first fragment.
        """
        with self._translate_errors():
            key = self._decrypt(provider.api_key_encrypted)
            async with aclosing(self._complete_stream(provider, req, key)) as stream:
                async for fragment in stream:
                    if fragment:
                        yield fragment

    async def embed(self, provider: ProviderConfig, text: str) -> list[float]:
        """Embedding vector for text.

        Raises:
            UnsupportedCapability: If the provider lacks the embeddings capability.
            ProviderError: On vendor failure.
        """
        if not provider.supports(Capability.EMBEDDINGS):
            raise UnsupportedCapability(self.vendor.value, Capability.EMBEDDINGS.value)

        with self._translate_errors():
            key = self._decrypt(provider.api_key_encrypted)
            return await self._embed(provider, text, key)

    # ------------------------------------------------------------------
    # Vendor hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _complete(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> CompletionResponse:
        """Vendor-specific blocking completion."""
        pass

    @abstractmethod
    async def _complete_stream(
        self, provider: ProviderConfig, req: CompletionRequest, api_key: str
    ) -> AsyncIterator[str]:
        """Vendor-specific streaming completion.

        Must raise if the vendor stream ends without its terminal marker.
        """
        pass
        # This is an abstract async generator, must yield to be valid
        yield  # type: ignore

    async def _embed(self, provider: ProviderConfig, text: str, api_key: str) -> list[float]:
        """Vendor-specific embedding. Vendors without an endpoint keep this default."""
        raise UnsupportedCapability(self.vendor.value, Capability.EMBEDDINGS.value)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _base_url(self, provider: ProviderConfig) -> str:
        return (provider.base_url or self.default_base_url).rstrip("/")

    def _error(
        self, message: str, error_class: LLMErrorClass = LLMErrorClass.MALFORMED_RESPONSE
    ) -> ProviderError:
        return ProviderError(self.vendor.value, message, error_class)

    async def _raise_for_status(self, response: httpx.Response) -> None:
        """raise_for_status that also works for unread streamed responses."""
        if response.is_error:
            await response.aread()
        response.raise_for_status()

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        """Normalize anything raised by a vendor call into ProviderError."""
        vendor = self.vendor.value
        try:
            yield
        except (ProviderError, UnsupportedCapability):
            raise
        except CryptoError as e:
            raise ProviderError(
                vendor, "Stored credential could not be decrypted", LLMErrorClass.INVALID_KEY
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError(vendor, "Request timed out", LLMErrorClass.TIMEOUT) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            json_body = _safe_parse_json(e.response)
            error_class = classify_provider_error(vendor, status, json_body, None)
            message = f"Provider returned HTTP {status}"
            detail = _vendor_detail(json_body)
            if detail:
                message = f"{message}: {detail}"
            raise ProviderError(vendor, message, error_class, status_code=status) from e
        except httpx.TransportError as e:
            raise ProviderError(
                vendor,
                f"Network error: {type(e).__name__}",
                classify_provider_error(vendor, None, None, e),
            ) from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderError(
                vendor,
                f"Malformed provider response: {type(e).__name__}",
                LLMErrorClass.MALFORMED_RESPONSE,
            ) from e
        except Exception as e:
            raise ProviderError(
                vendor, f"Unexpected error: {type(e).__name__}", LLMErrorClass.PROVIDER_DOWN
            ) from e


def _safe_parse_json(response: httpx.Response) -> dict | None:
    """Parse a JSON error body, returning None on failure."""
    try:
        data = response.json()
    except Exception:
        return None
    return data if isinstance(data, dict) else None


def _vendor_detail(json_body: dict | None) -> str | None:
    """Extract the vendor's own error message, truncated."""
    if not json_body:
        return None
    error = json_body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
    elif isinstance(error, str):
        message = error
    else:
        message = json_body.get("message")
    if not isinstance(message, str) or not message:
        return None
    return message[:MAX_VENDOR_DETAIL_CHARS]
