"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape is correct
- Every error code maps to correct HTTP status
- Gateway exceptions translate to the right API error
- Provider failures classify per vendor
- Unknown exceptions return E_INTERNAL with 500
- Malformed JSON returns E_INVALID_REQUEST
"""

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from llmgate.app import create_app
from llmgate.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    InvalidRequestError,
    api_error_from_gateway,
)
from llmgate.responses import error_response, success_response, unhandled_exception_handler
from llmgate.services.llm import (
    AllProvidersFailedError,
    LLMErrorClass,
    NoEmbeddingProviderConfigured,
    NoProviderConfigured,
    ProviderError,
    QuotaExceededError,
)
from llmgate.services.llm.errors import classify_provider_error
from llmgate.services.llm.prompt import PromptTooLargeError
from llmgate.services.llm.quota import PLAN_LIMITS, PlanTier, QuotaUsage, evaluate
from tests.helpers import make_gateway, make_provider


class TestErrorResponse:
    def test_error_response_has_correct_shape(self):
        response = error_response(ApiErrorCode.E_FORBIDDEN, "Access denied", request_id="r-1")

        assert response == {
            "error": {"code": "E_FORBIDDEN", "message": "Access denied", "request_id": "r-1"}
        }

    def test_details_included_when_present(self):
        response = error_response(
            ApiErrorCode.E_ALL_PROVIDERS_FAILED, "failed", details={"attempts": 3}
        )

        assert response["error"]["details"] == {"attempts": 3}

    def test_no_request_id_outside_a_request(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "boom")

        assert "request_id" not in response["error"]


class TestSuccessResponse:
    def test_success_response_has_data_key(self):
        assert success_response({"text": "hi"}) == {"data": {"text": "hi"}}

    def test_success_response_with_none(self):
        assert success_response(None) == {"data": None}


class TestErrorCodeToStatus:
    def test_all_error_codes_have_status_mapping(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    @pytest.mark.parametrize(
        "code,expected_status",
        [
            (ApiErrorCode.E_FORBIDDEN, 403),
            (ApiErrorCode.E_INVALID_REQUEST, 400),
            (ApiErrorCode.E_QUOTA_EXCEEDED, 429),
            (ApiErrorCode.E_ALL_PROVIDERS_FAILED, 502),
            (ApiErrorCode.E_NO_PROVIDER_CONFIGURED, 503),
            (ApiErrorCode.E_NO_EMBEDDING_PROVIDER, 503),
            (ApiErrorCode.E_STREAMING_DISABLED, 503),
            (ApiErrorCode.E_INTERNAL, 500),
        ],
    )
    def test_error_code_maps_to_correct_status(self, code, expected_status):
        assert ERROR_CODE_TO_STATUS[code] == expected_status

    def test_invalid_request_error_defaults(self):
        error = InvalidRequestError()

        assert error.code == ApiErrorCode.E_INVALID_REQUEST
        assert error.status_code == 400


class TestGatewayErrorMapping:
    def test_quota_exceeded(self):
        status = evaluate(
            QuotaUsage(requests_last_hour=20), PLAN_LIMITS[PlanTier.FREE], PlanTier.FREE
        )

        error = api_error_from_gateway(QuotaExceededError(status))

        assert error.status_code == 429
        assert error.message == "Hourly request limit reached (20/20 requests)"
        assert error.details == {"dimension": "requests_per_hour", "limit": 20, "current": 20}

    def test_all_providers_failed_keeps_last_message(self):
        last = ProviderError("anthropic", "Provider returned HTTP 529", LLMErrorClass.RATE_LIMIT)

        error = api_error_from_gateway(AllProvidersFailedError(last, attempts=2))

        assert error.code == ApiErrorCode.E_ALL_PROVIDERS_FAILED
        assert error.message == "All LLM providers failed. Last error: Provider returned HTTP 529"
        assert error.details == {"attempts": 2}

    @pytest.mark.parametrize(
        "exc,code",
        [
            (NoProviderConfigured(), ApiErrorCode.E_NO_PROVIDER_CONFIGURED),
            (NoEmbeddingProviderConfigured(), ApiErrorCode.E_NO_EMBEDDING_PROVIDER),
            (PromptTooLargeError(100_001, 100_000), ApiErrorCode.E_INVALID_REQUEST),
            (ValueError("temperature must be between 0.0 and 2.0"), ApiErrorCode.E_INVALID_REQUEST),
            (RuntimeError("boom"), ApiErrorCode.E_INTERNAL),
        ],
    )
    def test_codes(self, exc, code):
        assert api_error_from_gateway(exc).code == code

    def test_api_error_passes_through(self):
        original = ApiError(ApiErrorCode.E_FORBIDDEN, "nope")

        assert api_error_from_gateway(original) is original


class TestClassifyProviderError:
    @pytest.mark.parametrize(
        "vendor,status,body,expected",
        [
            ("openai", 401, None, LLMErrorClass.INVALID_KEY),
            ("openai", 429, None, LLMErrorClass.RATE_LIMIT),
            ("openai", 404, None, LLMErrorClass.MODEL_NOT_AVAILABLE),
            ("openai", 503, None, LLMErrorClass.PROVIDER_DOWN),
            (
                "openai",
                400,
                {"error": {"code": "context_length_exceeded"}},
                LLMErrorClass.CONTEXT_TOO_LARGE,
            ),
            ("anthropic", 529, None, LLMErrorClass.RATE_LIMIT),
            (
                "anthropic",
                400,
                {"error": {"type": "invalid_request_error", "message": "prompt is too long"}},
                LLMErrorClass.CONTEXT_TOO_LARGE,
            ),
            (
                "gemini",
                400,
                {"error": {"details": [{"reason": "API_KEY_INVALID"}]}},
                LLMErrorClass.INVALID_KEY,
            ),
            ("gemini", 400, {"error": {"status": "RESOURCE_EXHAUSTED"}}, LLMErrorClass.RATE_LIMIT),
            ("gemini", 404, None, LLMErrorClass.MODEL_NOT_AVAILABLE),
        ],
    )
    def test_status_and_body(self, vendor, status, body, expected):
        assert classify_provider_error(vendor, status, body, None) == expected

    def test_timeout_exception(self):
        exc = httpx.ReadTimeout("read timed out")

        assert classify_provider_error("openai", None, None, exc) == LLMErrorClass.TIMEOUT

    def test_connect_error(self):
        exc = httpx.ConnectError("connection refused")

        assert classify_provider_error("anthropic", None, None, exc) == LLMErrorClass.PROVIDER_DOWN

    def test_provider_error_str_names_vendor(self):
        assert str(ProviderError("gemini", "Provider returned HTTP 500")) == (
            "[gemini] Provider returned HTTP 500"
        )


class TestMalformedJsonHandling:
    @pytest.fixture
    def client(self):
        app = create_app(gateway=make_gateway([make_provider(1)], httpx.AsyncClient()))
        with TestClient(app) as test_client:
            yield test_client

    def test_malformed_json_returns_400(self, client):
        response = client.post(
            "/generate",
            content="{invalid json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_unknown_route_keeps_envelope(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert "error" in response.json()


class TestUnhandledExceptionHandling:
    def test_unhandled_exception_does_not_leak_details(self):
        test_app = FastAPI()

        @test_app.get("/crash")
        def crash_endpoint():
            raise RuntimeError("SECRET_INTERNAL_DETAIL")

        test_app.add_exception_handler(Exception, unhandled_exception_handler)

        client = TestClient(test_app, raise_server_exceptions=False)
        response = client.get("/crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_INTERNAL"
        assert "SECRET_INTERNAL_DETAIL" not in response.text
