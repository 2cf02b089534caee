"""FastAPI dependencies for route handlers."""

from fastapi import Request

from llmgate.services.llm import LLMGateway

__all__ = ["get_gateway"]


def get_gateway(request: Request) -> LLMGateway:
    """Get the shared gateway from app state.

    The gateway is constructed once in the app lifespan around the shared
    httpx.AsyncClient and the configured stores.
    """
    return request.app.state.gateway
