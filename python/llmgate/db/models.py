"""SQLAlchemy ORM models for the gateway.

Defines the four tables the gateway reads or appends to using SQLAlchemy 2.x
declarative patterns. Provider configuration and routing rules are written by
the settings UI; the gateway only reads them. Usage metrics are append-only.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    false,
    func,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class LlmProvider(Base):
    """A configured provider.

    provider holds the stored vendor string ("openai", "anthropic", "gemini",
    "deepseek", "custom", ...); anything not Anthropic or Gemini speaks the
    OpenAI-compatible protocol. api_key holds the ENCRYPTED credential.
    """

    __tablename__ = "llm_providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    api_key: Mapped[str] = mapped_column(Text, nullable=False)
    base_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, server_default=false(), nullable=False)
    supports_embeddings: Mapped[bool] = mapped_column(
        Boolean, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class LlmRouterRule(Base):
    """Binds a feature name to one preferred provider. One rule per feature."""

    __tablename__ = "llm_router_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feature: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    provider_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("llm_providers.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class AiUsageMetric(Base):
    """One provider attempt. Append-only."""

    __tablename__ = "ai_usage_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    provider_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("llm_providers.id", ondelete="SET NULL"),
        nullable=True,
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    prompt_tokens: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    completion_tokens: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    total_tokens: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    estimated_cost_cents: Mapped[int] = mapped_column(
        Integer, server_default="0", nullable=False
    )
    latency_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, server_default=true(), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_metadata: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_ai_usage_client", "client_id"),
        Index("idx_ai_usage_provider", "provider"),
        Index("idx_ai_usage_endpoint", "endpoint"),
        Index("idx_ai_usage_created", "created_at"),
    )


class Client(Base):
    """Tenant record. The gateway only reads plan_tier."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    plan_tier: Mapped[str | None] = mapped_column(
        String(50), server_default="free", nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
