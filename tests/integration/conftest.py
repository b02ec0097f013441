from __future__ import annotations

import pytest
from sqlalchemy import text

from ispsync.core.integration_db_safety import require_test_database
from ispsync.db.models import Base
from ispsync.db.session import engine

TRUNCATE_TABLES = (
    "agent_sales",
    "ledger_entries",
    "hotspot_vouchers",
    "hotspot_profiles",
    "agents",
    "invoices",
    "pppoe_users",
    "pppoe_profiles",
    "reminder_settings",
    "message_templates",
    "companies",
    "job_runs",
    "radacct",
    "radcheck",
    "radreply",
    "radusergroup",
    "nas",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} RESTART IDENTITY CASCADE"


@pytest.fixture(scope="session", autouse=True)
def guard_integration_db_target() -> None:
    require_test_database(str(engine.url))


@pytest.fixture(autouse=True)
async def cleanup_db() -> None:
    # Dispose pooled connections between tests to avoid cross-event-loop asyncpg reuse.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
