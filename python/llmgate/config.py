"""Application settings loaded from environment variables.

Environment Configuration:
    LLMGATE_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: PostgreSQL connection string (required)
    LLMGATE_INTERNAL_SECRET: Shared secret for callers (required in staging/prod)

Provider credentials:
    LLMGATE_KEY_ENCRYPTION_KEY: Base64-encoded 32-byte key used to decrypt the
        provider credentials stored in llm_providers.api_key

Provider calls:
    LLM_TIMEOUT_S: Per-call timeout for a single provider attempt
    LLM_CONNECT_TIMEOUT_S: Connect timeout for a single provider attempt
    HTTP_MAX_CONNECTIONS: Pool size of the shared httpx client

Quota:
    DEFAULT_PLAN_TIER: Tier applied to clients without a resolvable plan
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - LLMGATE_INTERNAL_SECRET is required in staging and prod only
    - Timeouts must be positive
    """

    llmgate_env: Environment = Field(default=Environment.LOCAL, alias="LLMGATE_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    llmgate_internal_secret: str | None = Field(default=None, alias="LLMGATE_INTERNAL_SECRET")

    # Base64-encoded 32-byte key for XSalsa20-Poly1305 credential decryption
    llmgate_key_encryption_key: str | None = Field(
        default=None, alias="LLMGATE_KEY_ENCRYPTION_KEY"
    )

    # Provider call tuning
    llm_timeout_s: int = Field(default=45, alias="LLM_TIMEOUT_S")
    llm_connect_timeout_s: float = Field(default=10.0, alias="LLM_CONNECT_TIMEOUT_S")
    http_max_connections: int = Field(default=100, alias="HTTP_MAX_CONNECTIONS")
    http_max_keepalive_connections: int = Field(
        default=20, alias="HTTP_MAX_KEEPALIVE_CONNECTIONS"
    )

    # Feature flags
    enable_streaming: bool = Field(default=True, alias="ENABLE_STREAMING")

    # Quota
    default_plan_tier: str = Field(default="free", alias="DEFAULT_PLAN_TIER")

    # Logging
    log_json: bool = Field(default=True, alias="LOG_JSON")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure environment-dependent settings are present and sane."""
        if self.llmgate_env in (Environment.STAGING, Environment.PROD):
            if not self.llmgate_internal_secret:
                raise ValueError(
                    f"LLMGATE_INTERNAL_SECRET is required for LLMGATE_ENV={self.llmgate_env.value}"
                )
            if not self.llmgate_key_encryption_key:
                raise ValueError(
                    "LLMGATE_KEY_ENCRYPTION_KEY is required for "
                    f"LLMGATE_ENV={self.llmgate_env.value}"
                )

        if self.llm_timeout_s <= 0:
            raise ValueError("LLM_TIMEOUT_S must be positive")
        if self.llm_connect_timeout_s <= 0:
            raise ValueError("LLM_CONNECT_TIMEOUT_S must be positive")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"LOG_LEVEL must be a standard level name (got {self.log_level!r})")

        if self.default_plan_tier not in ("free", "pro", "enterprise"):
            raise ValueError(
                f"DEFAULT_PLAN_TIER must be one of free, pro, enterprise "
                f"(got {self.default_plan_tier!r})"
            )

        return self

    @property
    def requires_internal_header(self) -> bool:
        """Whether API requests must include the internal secret header."""
        return self.llmgate_internal_secret is not None or self.llmgate_env in (
            Environment.STAGING,
            Environment.PROD,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
