from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ispsync.core.config import get_settings
from ispsync.db.repo.job_runs_repo import JobRunsRepo
from ispsync.db.session import SessionLocal
from ispsync.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_valid_internal_token,
)
from ispsync.workers.errors import UnknownJobTypeError
from ispsync.workers.jobs import job_runner

router = APIRouter(tags=["internal", "jobs"])
logger = structlog.get_logger(__name__)


class JobRunResponse(BaseModel):
    id: int
    job_type: str
    status: str
    started_at: datetime
    finished_at: datetime | None
    duration_ms: int | None = Field(default=None, ge=0)
    result: str | None
    error: str | None


class JobRunsListResponse(BaseModel):
    runs: list[JobRunResponse]


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    client_ip = extract_client_ip(
        request,
        trusted_proxies=settings.internal_api_trusted_proxies,
    )
    token = request.headers.get("X-Internal-Token")

    if not is_valid_internal_token(
        expected_token=settings.internal_api_token,
        received_token=token,
    ):
        logger.warning("internal_jobs_auth_failed", reason="invalid_token", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning("internal_jobs_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


@router.get("/internal/jobs/runs", response_model=JobRunsListResponse)
async def list_job_runs(
    request: Request,
    limit: int = Query(default=50, ge=1, le=500),
    job_type: str | None = Query(default=None, max_length=32),
) -> JobRunsListResponse:
    _assert_internal_access(request)
    async with SessionLocal() as session:
        runs = await JobRunsRepo.list_recent(session, limit=limit, job_type=job_type)
    return JobRunsListResponse(
        runs=[
            JobRunResponse(
                id=run.id,
                job_type=run.job_type,
                status=run.status,
                started_at=run.started_at,
                finished_at=run.finished_at,
                duration_ms=run.duration_ms,
                result=run.result,
                error=run.error,
            )
            for run in runs
        ]
    )


@router.post("/internal/jobs/{job_type}/run")
async def run_job_now(request: Request, job_type: str) -> dict[str, Any]:
    _assert_internal_access(request)
    try:
        result = await job_runner.run(job_type)
    except UnknownJobTypeError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_UNKNOWN_JOB"}) from exc

    logger.info("internal_job_run_requested", job_type=job_type, status=result.get("status"))
    return result
