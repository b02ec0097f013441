from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

from fastapi.testclient import TestClient

from ispsync.api.routes import internal_jobs
from ispsync.main import app
from tests.fakes import FakeSessionLocal

UTC = timezone.utc
HEADERS = {"X-Internal-Token": "internal-secret"}


def _allow_local_caller(monkeypatch, *, client_ip: str = "127.0.0.1", allowlist: str = "127.0.0.1/32") -> None:
    monkeypatch.setattr(
        internal_jobs,
        "get_settings",
        lambda: SimpleNamespace(
            internal_api_token="internal-secret",
            internal_api_allowlist=allowlist,
            internal_api_trusted_proxies="",
        ),
    )
    monkeypatch.setattr(internal_jobs, "extract_client_ip", lambda request, trusted_proxies="": client_ip)


class _FakeRunner:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def run(self, job_type: str) -> dict[str, Any]:
        self.calls.append(job_type)
        return {"job_type": job_type, "status": "success", "run_id": 7, "synced": 2}


def test_run_now_rejects_missing_token(monkeypatch) -> None:
    _allow_local_caller(monkeypatch)

    client = TestClient(app)
    response = client.post("/internal/jobs/voucher_sync/run")

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_run_now_rejects_disallowed_ip(monkeypatch) -> None:
    _allow_local_caller(monkeypatch, client_ip="10.0.0.25", allowlist="192.168.0.0/16")

    client = TestClient(app)
    response = client.post("/internal/jobs/voucher_sync/run", headers=HEADERS)

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_run_now_rejects_unknown_job(monkeypatch) -> None:
    _allow_local_caller(monkeypatch)

    client = TestClient(app)
    response = client.post("/internal/jobs/not_a_job/run", headers=HEADERS)

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "E_UNKNOWN_JOB"}}


def test_run_now_returns_runner_result(monkeypatch) -> None:
    _allow_local_caller(monkeypatch)
    runner = _FakeRunner()
    monkeypatch.setattr(internal_jobs, "job_runner", runner)

    client = TestClient(app)
    response = client.post("/internal/jobs/voucher_sync/run", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"job_type": "voucher_sync", "status": "success", "run_id": 7, "synced": 2}
    assert runner.calls == ["voucher_sync"]


def test_run_history_lists_recent_runs(monkeypatch) -> None:
    _allow_local_caller(monkeypatch)
    queries: list[dict[str, Any]] = []

    class _FakeJobRunsRepo:
        @staticmethod
        async def list_recent(session, *, limit: int, job_type: str | None):  # noqa: ARG004
            queries.append({"limit": limit, "job_type": job_type})
            return [
                SimpleNamespace(
                    id=3,
                    job_type="auto_isolir",
                    status="error",
                    started_at=datetime(2024, 3, 5, 2, 0, tzinfo=UTC),
                    finished_at=datetime(2024, 3, 5, 2, 0, 1, tzinfo=UTC),
                    duration_ms=1000,
                    result="Isolated 0/1 expired users",
                    error="disconnect failed: user42: timeout",
                )
            ]

    monkeypatch.setattr(internal_jobs, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_jobs, "JobRunsRepo", _FakeJobRunsRepo)

    client = TestClient(app)
    response = client.get("/internal/jobs/runs?limit=10&job_type=auto_isolir", headers=HEADERS)

    assert response.status_code == 200
    assert queries == [{"limit": 10, "job_type": "auto_isolir"}]
    runs = response.json()["runs"]
    assert len(runs) == 1
    assert runs[0]["status"] == "error"
    assert runs[0]["error"] == "disconnect failed: user42: timeout"


def test_run_history_validates_limit(monkeypatch) -> None:
    _allow_local_caller(monkeypatch)

    client = TestClient(app)
    response = client.get("/internal/jobs/runs?limit=0", headers=HEADERS)

    assert response.status_code == 422


def test_configured_trusted_proxies_reach_client_ip_resolution(monkeypatch) -> None:
    seen: list[str] = []
    monkeypatch.setattr(
        internal_jobs,
        "get_settings",
        lambda: SimpleNamespace(
            internal_api_token="internal-secret",
            internal_api_allowlist="203.0.113.0/24",
            internal_api_trusted_proxies="10.0.0.1/32",
        ),
    )

    def fake_extract(request, trusted_proxies: str = "") -> str:  # noqa: ARG001
        seen.append(trusted_proxies)
        return "203.0.113.9"

    monkeypatch.setattr(internal_jobs, "extract_client_ip", fake_extract)
    runner = _FakeRunner()
    monkeypatch.setattr(internal_jobs, "job_runner", runner)

    client = TestClient(app)
    response = client.post("/internal/jobs/agent_sales/run", headers=HEADERS)

    assert response.status_code == 200
    assert seen == ["10.0.0.1/32"]


def test_run_now_shares_guards_with_scheduled_workers() -> None:
    from ispsync.workers.job_runner import RedisJobGuards
    from ispsync.workers.jobs import job_runner

    assert internal_jobs.job_runner is job_runner
    assert isinstance(internal_jobs.job_runner.guards, RedisJobGuards)
