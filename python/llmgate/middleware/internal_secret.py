"""Shared-secret check for service-to-service callers.

The gateway sits behind the application backend; every non-public path
must carry X-Internal-Secret matching LLMGATE_INTERNAL_SECRET whenever the
secret is configured (always in staging and prod).
"""

import hmac

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from llmgate.errors import ApiErrorCode
from llmgate.logging import get_logger
from llmgate.responses import error_response

logger = get_logger(__name__)

INTERNAL_SECRET_HEADER = "x-internal-secret"

# Paths that don't require the secret
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


class InternalSecretMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, internal_secret: str | None):
        super().__init__(app)
        self.internal_secret = internal_secret

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        if not self.internal_secret:
            # Settings validation requires the secret wherever it is enforced
            logger.error("internal_secret_not_configured")
            return JSONResponse(
                status_code=500,
                content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
            )

        header_value = request.headers.get(INTERNAL_SECRET_HEADER)
        if header_value is None or not hmac.compare_digest(
            header_value.encode(), self.internal_secret.encode()
        ):
            reason = (
                "internal_secret_missing" if header_value is None else "internal_secret_mismatch"
            )
            logger.warning("auth_failure", reason=reason)
            return JSONResponse(
                status_code=403,
                content=error_response(ApiErrorCode.E_FORBIDDEN, "Internal API access required"),
            )

        return await call_next(request)
