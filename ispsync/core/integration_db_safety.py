from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy.engine import make_url

TEST_DB_NAME_RE = re.compile(r"test", re.IGNORECASE)
LOCAL_TEST_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "postgres", "isp_postgres"})


@dataclass(frozen=True, slots=True)
class TestDbCheck:
    is_safe: bool
    reason: str
    database_name: str
    host: str


def check_test_database(database_url: str) -> TestDbCheck:
    url = make_url(database_url)
    database_name = (url.database or "").strip()
    host = (url.host or "").strip().lower()

    if url.get_backend_name() != "postgresql":
        reason = "only PostgreSQL test databases are supported"
    elif not database_name:
        reason = "database name is empty"
    elif TEST_DB_NAME_RE.search(database_name) is None:
        reason = "database name must contain 'test'"
    elif host not in LOCAL_TEST_HOSTS:
        reason = f"host '{host}' is not a local test host"
    else:
        reason = "ok"

    return TestDbCheck(
        is_safe=reason == "ok",
        reason=reason,
        database_name=database_name,
        host=host,
    )


def require_test_database(database_url: str) -> None:
    check = check_test_database(database_url)
    if check.is_safe:
        return

    raise RuntimeError(
        "Refusing to reset tables on a non-test database: "
        f"{check.reason} (db='{check.database_name}' host='{check.host}'). "
        "Point DATABASE_URL at a dedicated local database such as 'isp_reconciler_test'."
    )
