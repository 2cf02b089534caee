"""Database module for the gateway.

Provides engine creation, session management, and ORM models.
"""

from llmgate.db.engine import create_db_engine, get_engine
from llmgate.db.models import AiUsageMetric, Base, Client, LlmProvider, LlmRouterRule
from llmgate.db.session import create_session_factory, transaction

__all__ = [
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "transaction",
    "Base",
    "LlmProvider",
    "LlmRouterRule",
    "AiUsageMetric",
    "Client",
]
