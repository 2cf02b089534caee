#!/usr/bin/env python
"""Seed the development database with one client and one provider.

Constraints:
- Refuses to run in staging or prod (LLMGATE_ENV check)
- Idempotent via ON CONFLICT DO NOTHING
- Never runs automatically (manual invocation only)

The provider credential is read from SEED_PROVIDER_API_KEY and stored
encrypted with LLMGATE_KEY_ENCRYPTION_KEY, the same way the settings UI
stores it.

Usage:
    cd python && DATABASE_URL=... LLMGATE_KEY_ENCRYPTION_KEY=... \
        SEED_PROVIDER_API_KEY=sk-... python ../scripts/seed_dev.py
"""

import os
import sys

SEED_CLIENT_ID = 1
SEED_PROVIDER_ID = 1


def main():
    # 1. Environment check (hard fail in staging/prod)
    llmgate_env = os.getenv("LLMGATE_ENV", "local")
    if llmgate_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in LLMGATE_ENV={llmgate_env}")
        sys.exit(1)

    # 2. Check required variables
    database_url = os.getenv("DATABASE_URL")
    api_key = os.getenv("SEED_PROVIDER_API_KEY")
    if not database_url or not api_key:
        print("ERROR: DATABASE_URL and SEED_PROVIDER_API_KEY must be set")
        sys.exit(1)

    from sqlalchemy import text

    from llmgate.db.engine import create_db_engine
    from llmgate.services.crypto import encrypt_credential

    engine = create_db_engine(database_url)

    with engine.begin() as conn:
        # 3. Idempotent seeding
        conn.execute(
            text("""
                INSERT INTO clients (id, name, plan_tier)
                VALUES (:id, 'Local Dev Client', 'pro')
                ON CONFLICT (id) DO NOTHING
            """),
            {"id": SEED_CLIENT_ID},
        )
        result = conn.execute(
            text("""
                INSERT INTO llm_providers
                    (id, name, provider, model, api_key, priority, is_enabled, supports_embeddings)
                VALUES (:id, 'Local OpenAI', 'openai', :model, :api_key, 10, true, true)
                ON CONFLICT (id) DO NOTHING
                RETURNING id
            """),
            {
                "id": SEED_PROVIDER_ID,
                "model": os.getenv("SEED_PROVIDER_MODEL", "gpt-4o-mini"),
                "api_key": encrypt_credential(api_key),
            },
        )
        inserted = result.fetchone() is not None

    if inserted:
        print(f"Seeded client {SEED_CLIENT_ID} and provider {SEED_PROVIDER_ID}")
    else:
        print("Seed data already present, nothing to do")


if __name__ == "__main__":
    main()
