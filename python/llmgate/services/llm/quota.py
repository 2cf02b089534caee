"""Per-client quota enforcement over fixed windows.

Windows:
- Hourly: trailing 60 minutes from now
- Daily: the current calendar day, starting 00:00 UTC

Dimensions are evaluated in a fixed order and the first one at or over its
limit denies the request:
1. requests per hour
2. requests per day
3. tokens per day
4. cost per day (cents)

Failure policy:
- Unknown or unresolvable plan tier → free limits (restrictive)
- Usage store unreachable → allowed, zeroed usage, free limits reported (permissive)
Each case logs its own event (quota.tier_lookup_failed / quota.usage_store_unavailable).

Calls without a client id (system and background jobs) are not metered.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from starlette.concurrency import run_in_threadpool

from llmgate.logging import get_logger
from llmgate.services.llm.errors import QuotaExceededError
from llmgate.services.llm.stores import PlanTierStore, UsageStore
from llmgate.services.llm.usage import utc_now
from llmgate.services.redact import safe_kv

logger = get_logger(__name__)

HOURLY_WINDOW = timedelta(minutes=60)


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: str | None, default: "PlanTier") -> "PlanTier":
        """Map a stored tier string to a known tier; anything else is the default."""
        normalized = (value or "").strip().lower()
        for tier in cls:
            if tier.value == normalized:
                return tier
        return default


class QuotaDimension(str, Enum):
    REQUESTS_PER_HOUR = "requests_per_hour"
    REQUESTS_PER_DAY = "requests_per_day"
    TOKENS_PER_DAY = "tokens_per_day"
    COST_PER_DAY_CENTS = "cost_per_day_cents"


@dataclass(frozen=True)
class PlanLimits:
    requests_per_hour: int
    requests_per_day: int
    tokens_per_day: int
    cost_per_day_cents: int


PLAN_LIMITS: dict[PlanTier, PlanLimits] = {
    PlanTier.FREE: PlanLimits(
        requests_per_hour=20,
        requests_per_day=100,
        tokens_per_day=100_000,
        cost_per_day_cents=100,
    ),
    PlanTier.PRO: PlanLimits(
        requests_per_hour=200,
        requests_per_day=2_000,
        tokens_per_day=2_000_000,
        cost_per_day_cents=2_000,
    ),
    PlanTier.ENTERPRISE: PlanLimits(
        requests_per_hour=2_000,
        requests_per_day=20_000,
        tokens_per_day=20_000_000,
        cost_per_day_cents=20_000,
    ),
}


@dataclass(frozen=True)
class QuotaUsage:
    requests_last_hour: int = 0
    requests_today: int = 0
    tokens_today: int = 0
    cost_today_cents: int = 0


@dataclass(frozen=True)
class QuotaStatus:
    """Outcome of one quota check.

    Attributes:
        allowed: Whether the request may proceed
        reason: Human-readable denial reason naming the exceeded limit
        dimension: The exceeded dimension, when denied
        usage: Counters observed for this check
        limits: Limits the counters were compared against
        tier: Plan tier the limits belong to
    """

    allowed: bool
    usage: QuotaUsage
    limits: PlanLimits
    tier: PlanTier = PlanTier.FREE
    reason: str | None = None
    dimension: QuotaDimension | None = None

    @property
    def limit(self) -> int | None:
        """Numeric threshold of the exceeded dimension."""
        if self.dimension is None:
            return None
        return getattr(self.limits, self.dimension.value)

    @property
    def current(self) -> int | None:
        """Observed value of the exceeded dimension."""
        if self.dimension is None:
            return None
        return _current_value(self.usage, self.dimension)


def _current_value(usage: QuotaUsage, dimension: QuotaDimension) -> int:
    return {
        QuotaDimension.REQUESTS_PER_HOUR: usage.requests_last_hour,
        QuotaDimension.REQUESTS_PER_DAY: usage.requests_today,
        QuotaDimension.TOKENS_PER_DAY: usage.tokens_today,
        QuotaDimension.COST_PER_DAY_CENTS: usage.cost_today_cents,
    }[dimension]


_DENIAL_REASONS: dict[QuotaDimension, str] = {
    QuotaDimension.REQUESTS_PER_HOUR: "Hourly request limit reached ({current}/{limit} requests)",
    QuotaDimension.REQUESTS_PER_DAY: "Daily request limit reached ({current}/{limit} requests)",
    QuotaDimension.TOKENS_PER_DAY: "Daily token budget exhausted ({current}/{limit} tokens)",
    QuotaDimension.COST_PER_DAY_CENTS: "Daily cost cap reached ({current}/{limit} cents)",
}

# Fixed evaluation order
_EVALUATION_ORDER = (
    QuotaDimension.REQUESTS_PER_HOUR,
    QuotaDimension.REQUESTS_PER_DAY,
    QuotaDimension.TOKENS_PER_DAY,
    QuotaDimension.COST_PER_DAY_CENTS,
)


def start_of_day(now: datetime) -> datetime:
    """00:00 UTC of the day containing now."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def evaluate(usage: QuotaUsage, limits: PlanLimits, tier: PlanTier) -> QuotaStatus:
    """Compare counters against limits in the fixed order. Pure."""
    for dimension in _EVALUATION_ORDER:
        limit = getattr(limits, dimension.value)
        current = _current_value(usage, dimension)
        if current >= limit:
            return QuotaStatus(
                allowed=False,
                usage=usage,
                limits=limits,
                tier=tier,
                reason=_DENIAL_REASONS[dimension].format(current=current, limit=limit),
                dimension=dimension,
            )
    return QuotaStatus(allowed=True, usage=usage, limits=limits, tier=tier)


class QuotaEnforcer:
    """Decides whether a client may make another request."""

    def __init__(
        self,
        usage_store: UsageStore,
        plan_tiers: PlanTierStore,
        *,
        default_tier: PlanTier = PlanTier.FREE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._usage_store = usage_store
        self._plan_tiers = plan_tiers
        self._default_tier = default_tier
        self._clock = clock

    async def resolve_tier(self, client_id: int) -> PlanTier:
        try:
            stored = await run_in_threadpool(self._plan_tiers.get_plan_tier, client_id)
        except Exception as e:
            logger.warning(
                "quota.tier_lookup_failed",
                **safe_kv(
                    client_id=client_id,
                    error_type=type(e).__name__,
                    fallback_tier=self._default_tier.value,
                ),
            )
            return self._default_tier
        return PlanTier.parse(stored, self._default_tier)

    async def current_usage(self, client_id: int, now: datetime) -> QuotaUsage:
        requests_last_hour = await run_in_threadpool(
            self._usage_store.count_requests_since, client_id, now - HOURLY_WINDOW
        )
        today = await run_in_threadpool(
            self._usage_store.sum_tokens_and_cost_since, client_id, start_of_day(now)
        )
        return QuotaUsage(
            requests_last_hour=requests_last_hour,
            requests_today=today.requests,
            tokens_today=today.tokens,
            cost_today_cents=today.cost_cents,
        )

    async def check(self, client_id: int | None, endpoint: str = "generate") -> QuotaStatus:
        """Evaluate the client's quota. Reads usage history exactly once.

        Args:
            client_id: Metered client; None means unmetered.
            endpoint: Endpoint label, for logging only.
        """
        if client_id is None:
            return QuotaStatus(
                allowed=True,
                usage=QuotaUsage(),
                limits=PLAN_LIMITS[self._default_tier],
                tier=self._default_tier,
            )

        tier = await self.resolve_tier(client_id)
        limits = PLAN_LIMITS[tier]
        now = self._clock()

        try:
            usage = await self.current_usage(client_id, now)
        except Exception as e:
            logger.error(
                "quota.usage_store_unavailable",
                **safe_kv(client_id=client_id, endpoint=endpoint, error_type=type(e).__name__),
            )
            return QuotaStatus(
                allowed=True,
                usage=QuotaUsage(),
                limits=PLAN_LIMITS[PlanTier.FREE],
                tier=PlanTier.FREE,
            )

        status = evaluate(usage, limits, tier)
        if not status.allowed:
            logger.info(
                "quota.denied",
                **safe_kv(
                    client_id=client_id,
                    endpoint=endpoint,
                    tier=tier.value,
                    dimension=status.dimension.value,
                    limit=status.limit,
                    current=status.current,
                ),
            )
        return status

    async def enforce(self, client_id: int | None, endpoint: str = "generate") -> QuotaStatus:
        """check(), raising when denied.

        Raises:
            QuotaExceededError: If any limit is reached.
        """
        status = await self.check(client_id, endpoint)
        if not status.allowed:
            raise QuotaExceededError(status)
        return status
