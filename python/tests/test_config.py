"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from llmgate.config import Environment, Settings


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "LLMGATE_ENV": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestDefaults:
    def test_defaults(self):
        s = _make_settings()
        assert s.llmgate_env == Environment.TEST
        assert s.llm_timeout_s == 45
        assert s.llm_connect_timeout_s == 10.0
        assert s.enable_streaming is True
        assert s.default_plan_tier == "free"
        assert s.log_level == "INFO"
        assert s.requires_internal_header is False

    def test_secret_turns_on_header_check(self):
        s = _make_settings(LLMGATE_INTERNAL_SECRET="s3cret")
        assert s.requires_internal_header is True


class TestValidation:
    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_secret_required_in_deployed_envs(self, env):
        with pytest.raises(ValidationError, match="LLMGATE_INTERNAL_SECRET"):
            _make_settings(LLMGATE_ENV=env, LLMGATE_KEY_ENCRYPTION_KEY="k")

    def test_encryption_key_required_in_prod(self):
        with pytest.raises(ValidationError, match="LLMGATE_KEY_ENCRYPTION_KEY"):
            _make_settings(LLMGATE_ENV="prod", LLMGATE_INTERNAL_SECRET="s")

    def test_prod_with_both_secrets(self):
        s = _make_settings(
            LLMGATE_ENV="prod", LLMGATE_INTERNAL_SECRET="s", LLMGATE_KEY_ENCRYPTION_KEY="k"
        )
        assert s.requires_internal_header is True

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError, match="LLM_TIMEOUT_S"):
            _make_settings(LLM_TIMEOUT_S=0)

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError, match="LOG_LEVEL"):
            _make_settings(LOG_LEVEL="verbose")

    def test_unknown_plan_tier_rejected(self):
        with pytest.raises(ValidationError, match="DEFAULT_PLAN_TIER"):
            _make_settings(DEFAULT_PLAN_TIER="platinum")

    def test_database_url_required(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
