"""Pytest configuration and fixtures for gateway tests.

Test isolation strategy:
- No test needs a running database; SQL store tests use in-memory SQLite
- Provider HTTP traffic is mocked with respx, never sent
- Settings are rebuilt from the environment for every test
"""

import os
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

os.environ["LLMGATE_ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest

from llmgate.config import clear_settings_cache


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Fresh settings per test, without an internal secret unless a test sets one."""
    monkeypatch.delenv("LLMGATE_INTERNAL_SECRET", raising=False)
    monkeypatch.setenv("LOG_JSON", "false")
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
async def httpx_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Shared client, as the gateway uses in production."""
    async with httpx.AsyncClient() as client:
        yield client
