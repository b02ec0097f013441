from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from ispsync.core.config import get_settings
from ispsync.db.repo.job_runs_repo import JobRunsRepo
from ispsync.db.session import SessionLocal
from ispsync.workers.celery_app import celery_app
from ispsync.workers.job_runner import JobRunner, Trigger
from ispsync.workers.jobs import build_shared_guards, job_runner

router = APIRouter(tags=["health"])

RECONCILE_QUEUE = "q_reconcile"
STALE_INTERVAL_MULTIPLIER = 3
DAILY_JOB_MAX_AGE = timedelta(hours=26)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _failed(error: str, **extra: Any) -> dict[str, Any]:
    return {"status": "failed", "error": error, **extra}


async def _check_database() -> dict[str, Any]:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return _failed(str(exc))
    return {"status": "ok"}


async def _check_job_guards() -> dict[str, Any]:
    """The single-flight flags live in redis; report which jobs currently hold one."""
    guards = build_shared_guards()
    client = Redis.from_url(get_settings().redis_url)
    try:
        held = [
            job_type
            for job_type in job_runner.jobs
            if await client.exists(guards.key_for(job_type))
        ]
    except Exception as exc:
        return _failed(str(exc))
    finally:
        await client.aclose()
    return {"status": "ok", "running": held}


def _reconcile_consumers() -> dict[str, Any]:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        active_queues = inspector.active_queues() or {}
    except Exception as exc:
        return _failed(str(exc))

    consumers = sorted(
        worker
        for worker, queues in active_queues.items()
        if any(queue.get("name") == RECONCILE_QUEUE for queue in queues or [])
    )
    if not consumers:
        return _failed(f"no worker consumes {RECONCILE_QUEUE}")
    return {"status": "ok", "workers": consumers}


async def _check_reconcile_worker() -> dict[str, Any]:
    return await asyncio.to_thread(_reconcile_consumers)


def max_run_age(trigger: Trigger) -> timedelta:
    if trigger.interval_seconds is not None:
        return timedelta(seconds=trigger.interval_seconds * STALE_INTERVAL_MULTIPLIER)
    return DAILY_JOB_MAX_AGE


async def _check_job_runs(runner: JobRunner | None = None) -> dict[str, Any]:
    runner = runner or job_runner
    try:
        async with SessionLocal() as session:
            latest = await JobRunsRepo.latest_by_job_type(session)
    except Exception as exc:
        return _failed(str(exc))

    now_utc = _utc_now()
    jobs: dict[str, dict[str, Any]] = {}
    stale: list[str] = []
    for job_type, spec in runner.jobs.items():
        run = latest.get(job_type)
        if run is None:
            # No history yet.
            jobs[job_type] = {"last_status": None, "last_started_at": None}
            continue
        jobs[job_type] = {
            "last_status": run.status,
            "last_started_at": run.started_at.isoformat(),
        }
        if now_utc - run.started_at > max_run_age(spec.trigger):
            stale.append(job_type)

    if stale:
        return _failed(f"no recent run for: {', '.join(stale)}", jobs=jobs)
    return {"status": "ok", "jobs": jobs}


@router.get("/health")
async def health() -> JSONResponse:
    database, job_guards, worker, job_runs = await asyncio.gather(
        _check_database(),
        _check_job_guards(),
        _check_reconcile_worker(),
        _check_job_runs(),
    )
    checks = {
        "database": database,
        "job_guards": job_guards,
        "reconcile_worker": worker,
        "job_runs": job_runs,
    }
    healthy = all(check["status"] == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if healthy else "degraded", "checks": checks},
    )


@router.get("/ready")
async def ready() -> JSONResponse:
    database = await _check_database()
    is_ready = database["status"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if is_ready else "not_ready", "checks": {"database": database}},
    )
