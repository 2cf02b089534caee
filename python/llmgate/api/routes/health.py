"""Liveness endpoint (public, exempt from the internal-secret check)."""

from fastapi import APIRouter

from llmgate.responses import success_response

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """200 while the process serves requests. Touches neither the database nor any vendor."""
    return success_response({"status": "ok"})
