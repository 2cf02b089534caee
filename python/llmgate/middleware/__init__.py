"""HTTP middleware: request correlation and the internal-secret check."""

from llmgate.middleware.internal_secret import InternalSecretMiddleware
from llmgate.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

__all__ = ["InternalSecretMiddleware", "RequestIDMiddleware", "REQUEST_ID_HEADER"]
