"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from llmgate.schemas.generation import (
    CallerMetadata,
    EmbeddingRequest,
    EmbeddingResponse,
    GenerateRequest,
    GenerateResponse,
    QuotaStatusOut,
    UsageOut,
)

__all__ = [
    "CallerMetadata",
    "GenerateRequest",
    "GenerateResponse",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "QuotaStatusOut",
    "UsageOut",
]
