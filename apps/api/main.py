"""uvicorn entrypoint for the gateway service.

Run with: uvicorn main:app --reload  (from apps/api, with python/ on PYTHONPATH)

The app is built here rather than at import of llmgate.app, so tests can
import create_app and hand it an in-memory gateway without a database.
"""

from llmgate.app import add_request_id_middleware, create_app

app = create_app()
# Registered last: outermost, so every response carries X-Request-ID
add_request_id_middleware(app)

__all__ = ["app"]
