"""Blocking generation, embeddings, and quota inspection."""

from typing import Annotated

from fastapi import APIRouter, Depends

from llmgate.api.deps import get_gateway
from llmgate.errors import InvalidRequestError
from llmgate.responses import success_response
from llmgate.schemas.generation import (
    EmbeddingRequest,
    EmbeddingResponse,
    GenerateRequest,
    GenerateResponse,
    QuotaStatusOut,
)
from llmgate.services.llm import CompletionRequest, LLMGateway, UsageMetadata
from llmgate.services.llm.gateway import EMBED_ENDPOINT

router = APIRouter()


def build_completion_request(body: GenerateRequest) -> CompletionRequest:
    try:
        return body.to_completion_request()
    except ValueError as e:
        raise InvalidRequestError(str(e)) from e


@router.post("/generate")
async def generate(
    body: GenerateRequest,
    gateway: Annotated[LLMGateway, Depends(get_gateway)],
) -> dict:
    request = build_completion_request(body)
    response = await gateway.generate(request, body.to_usage_metadata("generate"))
    return success_response(GenerateResponse.from_completion(response).model_dump())


@router.post("/embeddings")
async def embeddings(
    body: EmbeddingRequest,
    gateway: Annotated[LLMGateway, Depends(get_gateway)],
) -> dict:
    if not body.text.strip():
        raise InvalidRequestError("text must be non-empty")

    metadata = UsageMetadata(
        endpoint=body.endpoint or EMBED_ENDPOINT,
        client_id=body.client_id,
        user_id=body.user_id,
    )
    embedding = await gateway.embed(body.text, metadata)
    return success_response(
        EmbeddingResponse(embedding=embedding, dimensions=len(embedding)).model_dump()
    )


@router.get("/quota/{client_id}")
async def quota_status(
    client_id: int,
    gateway: Annotated[LLMGateway, Depends(get_gateway)],
    endpoint: str = "generate",
) -> dict:
    """Current quota status for a client. Never denies; only reports."""
    status = await gateway.check_quota(client_id, endpoint)
    return success_response(QuotaStatusOut.from_status(status).model_dump())
