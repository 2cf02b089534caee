"""Storage interfaces consumed by the gateway, plus in-memory implementations.

The gateway only ever reads provider configuration and plan tiers, and only
ever appends usage records. All three interfaces are synchronous; async
callers go through starlette.concurrency.run_in_threadpool.

The in-memory stores back the test suite and local development without a
database. SQL implementations live in llmgate.services.llm.repository.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from llmgate.services.llm.types import Capability, ProviderConfig, RoutingRule, UsageRecord


@dataclass(frozen=True)
class UsageTotals:
    """Aggregated usage for one client over one window."""

    requests: int = 0
    tokens: int = 0
    cost_cents: int = 0


class ProviderConfigStore(Protocol):
    def list_enabled_providers(self) -> list[ProviderConfig]: ...

    def find_rule_for_feature(self, feature: str) -> RoutingRule | None: ...

    def find_providers_supporting(self, capability: Capability) -> list[ProviderConfig]: ...


class UsageStore(Protocol):
    def insert_usage_record(self, record: UsageRecord) -> None: ...

    def count_requests_since(self, client_id: int, since: datetime) -> int: ...

    def sum_tokens_and_cost_since(self, client_id: int, since: datetime) -> UsageTotals: ...


class PlanTierStore(Protocol):
    def get_plan_tier(self, client_id: int) -> str | None: ...


class InMemoryProviderStore:
    """Provider configuration held in a list. Returned order is insertion order."""

    def __init__(
        self,
        providers: list[ProviderConfig] | None = None,
        rules: list[RoutingRule] | None = None,
    ):
        self.providers = list(providers or [])
        self.rules = {rule.feature: rule for rule in rules or []}

    def list_enabled_providers(self) -> list[ProviderConfig]:
        return [p for p in self.providers if p.enabled]

    def find_rule_for_feature(self, feature: str) -> RoutingRule | None:
        return self.rules.get(feature)

    def find_providers_supporting(self, capability: Capability) -> list[ProviderConfig]:
        return [p for p in self.providers if p.enabled and p.supports(capability)]


class InMemoryUsageStore:
    """Append-only usage log guarded by a lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: list[UsageRecord] = []

    @property
    def records(self) -> list[UsageRecord]:
        with self._lock:
            return list(self._records)

    def insert_usage_record(self, record: UsageRecord) -> None:
        with self._lock:
            self._records.append(record)

    def count_requests_since(self, client_id: int, since: datetime) -> int:
        with self._lock:
            return sum(
                1 for r in self._records if r.client_id == client_id and r.created_at >= since
            )

    def sum_tokens_and_cost_since(self, client_id: int, since: datetime) -> UsageTotals:
        with self._lock:
            matching = [
                r for r in self._records if r.client_id == client_id and r.created_at >= since
            ]
        return UsageTotals(
            requests=len(matching),
            tokens=sum(r.total_tokens for r in matching),
            cost_cents=sum(r.estimated_cost_cents for r in matching),
        )


class InMemoryPlanTierStore:
    def __init__(self, tiers: dict[int, str] | None = None):
        self.tiers = dict(tiers or {})

    def get_plan_tier(self, client_id: int) -> str | None:
        return self.tiers.get(client_id)
