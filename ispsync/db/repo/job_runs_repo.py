from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.job_runs import JobRun


class JobRunsRepo:
    @staticmethod
    async def create_running(session: AsyncSession, *, job_type: str, started_at: datetime) -> JobRun:
        run = JobRun(job_type=job_type, status="running", started_at=started_at)
        session.add(run)
        await session.flush()
        return run

    @staticmethod
    async def close(
        session: AsyncSession,
        *,
        run_id: int,
        status: str,
        finished_at: datetime,
        duration_ms: int,
        result: str | None,
        error: str | None,
    ) -> None:
        run = await session.get(JobRun, run_id)
        if run is None or run.status != "running":
            return
        run.status = status
        run.finished_at = finished_at
        run.duration_ms = duration_ms
        run.result = result
        run.error = error
        await session.flush()

    @staticmethod
    async def list_recent(
        session: AsyncSession,
        *,
        limit: int = 50,
        job_type: str | None = None,
    ) -> list[JobRun]:
        stmt = select(JobRun).order_by(JobRun.started_at.desc(), JobRun.id.desc()).limit(limit)
        if job_type is not None:
            stmt = stmt.where(JobRun.job_type == job_type)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def latest_by_job_type(session: AsyncSession) -> dict[str, JobRun]:
        stmt = (
            select(JobRun)
            .distinct(JobRun.job_type)
            .order_by(JobRun.job_type, JobRun.started_at.desc(), JobRun.id.desc())
        )
        result = await session.execute(stmt)
        return {run.job_type: run for run in result.scalars().all()}
