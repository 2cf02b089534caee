"""SQL-backed implementations of the gateway store interfaces.

Each call opens one short session from the injected sessionmaker; nothing is
held across calls. Reads return plain dataclasses so ORM instances never
leave this module.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from llmgate.db.models import AiUsageMetric, Client, LlmProvider, LlmRouterRule
from llmgate.db.session import transaction
from llmgate.services.llm.stores import UsageTotals
from llmgate.services.llm.types import (
    Capability,
    ProviderConfig,
    RoutingRule,
    UsageRecord,
    VendorKind,
)


def provider_from_row(row: LlmProvider) -> ProviderConfig:
    capabilities = {Capability.EMBEDDINGS} if row.supports_embeddings else set()
    return ProviderConfig(
        id=row.id,
        name=row.name,
        vendor=VendorKind.parse(row.provider),
        model=row.model,
        api_key_encrypted=row.api_key,
        base_url=row.base_url or None,
        enabled=bool(row.is_enabled),
        priority=row.priority or 0,
        capabilities=frozenset(capabilities),
    )


class SqlProviderConfigStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def list_enabled_providers(self) -> list[ProviderConfig]:
        with self._session_factory() as db:
            rows = db.scalars(
                select(LlmProvider).where(LlmProvider.is_enabled.is_(True))
            ).all()
            return [provider_from_row(row) for row in rows]

    def find_rule_for_feature(self, feature: str) -> RoutingRule | None:
        with self._session_factory() as db:
            row = db.scalars(
                select(LlmRouterRule).where(LlmRouterRule.feature == feature)
            ).first()
            if row is None:
                return None
            return RoutingRule(feature=row.feature, provider_id=row.provider_id)

    def find_providers_supporting(self, capability: Capability) -> list[ProviderConfig]:
        if capability != Capability.EMBEDDINGS:
            return []
        with self._session_factory() as db:
            rows = db.scalars(
                select(LlmProvider).where(
                    LlmProvider.is_enabled.is_(True),
                    LlmProvider.supports_embeddings.is_(True),
                )
            ).all()
            return [provider_from_row(row) for row in rows]


class SqlUsageStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def insert_usage_record(self, record: UsageRecord) -> None:
        with self._session_factory() as db, transaction(db):
            db.add(
                AiUsageMetric(
                    client_id=record.client_id,
                    user_id=record.user_id,
                    endpoint=record.endpoint,
                    provider_id=record.provider_id,
                    provider=record.vendor.value,
                    model=record.model,
                    prompt_tokens=record.prompt_tokens,
                    completion_tokens=record.completion_tokens,
                    total_tokens=record.total_tokens,
                    estimated_cost_cents=record.estimated_cost_cents,
                    latency_ms=record.latency_ms,
                    success=record.success,
                    error_message=record.error_message,
                    request_metadata=record.request_metadata,
                    created_at=record.created_at,
                )
            )

    def count_requests_since(self, client_id: int, since: datetime) -> int:
        with self._session_factory() as db:
            count = db.scalar(
                select(func.count(AiUsageMetric.id)).where(
                    AiUsageMetric.client_id == client_id,
                    AiUsageMetric.created_at >= since,
                )
            )
            return int(count or 0)

    def sum_tokens_and_cost_since(self, client_id: int, since: datetime) -> UsageTotals:
        with self._session_factory() as db:
            row = db.execute(
                select(
                    func.count(AiUsageMetric.id),
                    func.coalesce(func.sum(AiUsageMetric.total_tokens), 0),
                    func.coalesce(func.sum(AiUsageMetric.estimated_cost_cents), 0),
                ).where(
                    AiUsageMetric.client_id == client_id,
                    AiUsageMetric.created_at >= since,
                )
            ).one()
            return UsageTotals(requests=int(row[0]), tokens=int(row[1]), cost_cents=int(row[2]))


class SqlPlanTierStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get_plan_tier(self, client_id: int) -> str | None:
        with self._session_factory() as db:
            return db.scalar(select(Client.plan_tier).where(Client.id == client_id))
