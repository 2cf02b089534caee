"""FastAPI application creation and configuration.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including internal-secret rejections) get X-Request-ID

Gateway Lifecycle:
- One httpx.AsyncClient is created at startup and stored in app.state
- LLMGateway wraps the shared client and the SQL stores
- The client is closed gracefully at shutdown
- Tests pass a prebuilt gateway (in-memory stores, respx-mocked client)
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from llmgate.api.routes import create_api_router
from llmgate.config import Settings, get_settings
from llmgate.db.session import create_session_factory
from llmgate.errors import ApiError, ApiErrorCode
from llmgate.logging import configure_logging, get_logger
from llmgate.middleware.internal_secret import InternalSecretMiddleware
from llmgate.middleware.request_id import RequestIDMiddleware
from llmgate.responses import (
    api_error_handler,
    error_response,
    gateway_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from llmgate.services.llm import GatewayError, LLMGateway, PromptTooLargeError
from llmgate.services.llm.repository import (
    SqlPlanTierStore,
    SqlProviderConfigStore,
    SqlUsageStore,
)

logger = get_logger(__name__)


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared client for every provider call; per-call timeouts come from the adapters."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.llm_timeout_s, connect=settings.llm_connect_timeout_s),
        limits=httpx.Limits(
            max_connections=settings.http_max_connections,
            max_keepalive_connections=settings.http_max_keepalive_connections,
        ),
    )


def create_gateway(settings: Settings, client: httpx.AsyncClient) -> LLMGateway:
    """Gateway over the SQL stores."""
    session_factory = create_session_factory()
    return LLMGateway(
        SqlProviderConfigStore(session_factory),
        SqlUsageStore(session_factory),
        SqlPlanTierStore(session_factory),
        client,
        settings=settings,
    )


def create_lifespan(gateway: LLMGateway | None = None):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if gateway is not None:
            app.state.httpx_client = None
            app.state.gateway = gateway
            yield
            return

        settings = get_settings()
        app.state.httpx_client = create_http_client(settings)
        app.state.gateway = create_gateway(settings, app.state.httpx_client)

        logger.info(
            "gateway_initialized",
            env=settings.llmgate_env.value,
            timeout_s=settings.llm_timeout_s,
            default_plan_tier=settings.default_plan_tier,
            streaming_enabled=settings.enable_streaming,
        )

        yield

        await app.state.httpx_client.aclose()
        logger.info("httpx_client_closed")

    return lifespan


def create_app(gateway: LLMGateway | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        gateway: Prebuilt gateway (for testing). If None, the lifespan builds
            one over the SQL stores.
    """
    settings = get_settings()
    configure_logging(json_format=settings.log_json, level=settings.log_level)

    app = FastAPI(
        title="LLM Gateway",
        description="Routed, metered, quota-checked access to configured LLM providers",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=create_lifespan(gateway),
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(PromptTooLargeError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    app.include_router(create_api_router())

    if settings.requires_internal_header:
        app.add_middleware(
            InternalSecretMiddleware, internal_secret=settings.llmgate_internal_secret
        )
        logger.info("internal_secret_middleware_enabled", env=settings.llmgate_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call AFTER all other middleware is added, so it runs FIRST.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
