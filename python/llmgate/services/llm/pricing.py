"""Static cost table and usage estimation helpers.

Pure functions shared by every adapter and the usage tracker. Rates are USD
per million tokens, matched by case-insensitive substring against the model
name. Entries are checked most-specific first so "gpt-4-turbo" and
"gpt-4o" are not priced as "gpt-4".
"""

from decimal import ROUND_CEILING, Decimal

from llmgate.services.llm.types import VendorKind, estimate_tokens

DEFAULT_COST_PER_MILLION_TOKENS = Decimal("1")

COST_PER_MILLION_TOKENS: tuple[tuple[str, Decimal], ...] = (
    ("gpt-4o-mini", Decimal("0.6")),
    ("gpt-4o", Decimal("5")),
    ("gpt-4-turbo", Decimal("10")),
    ("gpt-4", Decimal("30")),
    ("gpt-3.5-turbo", Decimal("0.5")),
    ("claude-3-5-sonnet", Decimal("3")),
    ("claude-3-opus", Decimal("15")),
    ("claude-3-sonnet", Decimal("3")),
    ("claude-3-haiku", Decimal("0.25")),
    ("gemini-1.5-flash", Decimal("0.35")),
    ("gemini-1.5-pro", Decimal("3.5")),
    ("gemini-pro", Decimal("0.5")),
)

_ONE_MILLION = Decimal(1_000_000)
_CENTS_PER_DOLLAR = Decimal(100)

__all__ = [
    "COST_PER_MILLION_TOKENS",
    "DEFAULT_COST_PER_MILLION_TOKENS",
    "cost_per_million_tokens",
    "estimate_cost_cents",
    "estimate_tokens",
]


def cost_per_million_tokens(vendor: VendorKind | str, model: str) -> Decimal:
    """USD per million tokens for a model; the default rate when nothing matches.

    The vendor kind is accepted for call-site symmetry; the table is keyed by
    model name because OpenAI-compatible endpoints host many vendors' models.
    """
    key = (model or "").lower()
    for model_fragment, rate in COST_PER_MILLION_TOKENS:
        if model_fragment in key:
            return rate
    return DEFAULT_COST_PER_MILLION_TOKENS


def estimate_cost_cents(vendor: VendorKind | str, model: str, total_tokens: int) -> int:
    """Estimated cost in whole cents, rounded up. Zero tokens cost zero."""
    if total_tokens <= 0:
        return 0
    rate = cost_per_million_tokens(vendor, model)
    cents = Decimal(total_tokens) / _ONE_MILLION * rate * _CENTS_PER_DOLLAR
    return int(cents.to_integral_value(rounding=ROUND_CEILING))

