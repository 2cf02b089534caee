"""Candidate resolution: which providers to try, in which order.

Order for a feature:
1. The provider bound to the feature by a routing rule, if it is enabled
2. Every other enabled provider, priority descending, id ascending
No provider appears twice. The order depends only on stored configuration,
so repeated calls with unchanged configuration return identical lists.
"""

from collections.abc import Collection

from starlette.concurrency import run_in_threadpool

from llmgate.logging import get_logger
from llmgate.services.llm.errors import NoEmbeddingProviderConfigured, NoProviderConfigured
from llmgate.services.llm.registry import EMBEDDING_VENDORS
from llmgate.services.llm.stores import ProviderConfigStore
from llmgate.services.llm.types import Capability, ProviderConfig, VendorKind
from llmgate.services.redact import safe_kv

logger = get_logger(__name__)


def priority_order(providers: list[ProviderConfig]) -> list[ProviderConfig]:
    """Sort by priority descending, ties broken by id ascending."""
    return sorted(providers, key=lambda p: (-p.priority, p.id))


class CandidateResolver:
    def __init__(
        self,
        store: ProviderConfigStore,
        embedding_vendors: Collection[VendorKind] = EMBEDDING_VENDORS,
    ):
        self._store = store
        self._embedding_vendors = frozenset(embedding_vendors)

    async def resolve(self, feature: str | None = None) -> list[ProviderConfig]:
        """Ordered candidate list for one request.

        Raises:
            NoProviderConfigured: If no provider is enabled.
        """
        enabled = await run_in_threadpool(self._store.list_enabled_providers)
        enabled = [p for p in enabled if p.enabled]
        if not enabled:
            raise NoProviderConfigured()

        ordered = priority_order(enabled)

        if feature:
            rule = await run_in_threadpool(self._store.find_rule_for_feature, feature)
            if rule is not None and rule.provider_id is not None:
                preferred = next((p for p in ordered if p.id == rule.provider_id), None)
                if preferred is not None:
                    ordered = [preferred] + [p for p in ordered if p.id != preferred.id]
                else:
                    logger.info(
                        "llm.routing_rule.skipped",
                        **safe_kv(feature=feature, provider_id=rule.provider_id),
                    )

        return ordered

    async def resolve_embedding_provider(self) -> ProviderConfig:
        """Pick the single provider used for embeddings.

        Only vendor kinds with an embeddings endpoint qualify, whatever the
        provider row claims. OpenAI-compatible providers are preferred, then
        priority descending, then id ascending.

        Raises:
            NoEmbeddingProviderConfigured: If no enabled provider supports embeddings.
        """
        candidates = await run_in_threadpool(
            self._store.find_providers_supporting, Capability.EMBEDDINGS
        )
        candidates = [
            p
            for p in candidates
            if p.enabled
            and p.supports(Capability.EMBEDDINGS)
            and p.vendor in self._embedding_vendors
        ]
        if not candidates:
            raise NoEmbeddingProviderConfigured()

        return min(
            candidates,
            key=lambda p: (p.vendor != VendorKind.OPENAI, -p.priority, p.id),
        )
