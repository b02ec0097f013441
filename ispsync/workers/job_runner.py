from __future__ import annotations

import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from celery.schedules import crontab
from redis.asyncio import Redis
from redis.asyncio.lock import Lock
from redis.exceptions import LockError

from ispsync.db.repo.job_runs_repo import JobRunsRepo
from ispsync.db.session import SessionLocal
from ispsync.workers.errors import DuplicateJobTypeError, UnknownJobTypeError

logger = structlog.get_logger(__name__)

JobFn = Callable[[], Awaitable[dict[str, Any]]]
DescribeFn = Callable[[dict[str, Any]], str]

RUN_STATUS_RUNNING = "running"
RUN_STATUS_SUCCESS = "success"
RUN_STATUS_ERROR = "error"
RUN_STATUS_SKIPPED = "skipped"
MAX_ERROR_TEXT_LENGTH = 4000


@dataclass(frozen=True, slots=True)
class Trigger:
    interval_seconds: float | None = None
    hour: int | None = None
    minute: int = 0

    def to_schedule(self) -> float | crontab:
        if self.interval_seconds is not None:
            return float(self.interval_seconds)
        return crontab(hour=self.hour, minute=self.minute)

    @property
    def label(self) -> str:
        if self.interval_seconds is not None:
            return f"every-{int(self.interval_seconds)}s"
        return f"daily-{self.hour:02d}{self.minute:02d}"


def every(seconds: float) -> Trigger:
    if seconds <= 0:
        raise ValueError("interval must be positive")
    return Trigger(interval_seconds=seconds)


def daily_at(hour: int, minute: int = 0) -> Trigger:
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise ValueError("invalid time of day")
    return Trigger(hour=hour, minute=minute)


class JobGuards:
    """In-process single-flight flags, one per job type.

    Only jobs sharing this object see each other; the deployed runner uses
    :class:`RedisJobGuards` so worker processes and the API share one flag.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, job_type: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(job_type)
            if lock is None:
                lock = threading.Lock()
                self._locks[job_type] = lock
            return lock

    async def try_acquire(self, job_type: str) -> bool:
        return self._lock_for(job_type).acquire(blocking=False)

    async def release(self, job_type: str) -> None:
        lock = self._lock_for(job_type)
        if lock.locked():
            lock.release()

    def is_held(self, job_type: str) -> bool:
        return self._lock_for(job_type).locked()


class RedisJobGuards:
    """Single-flight flags stored in redis, shared by every process of the deployment.

    Each flag is a redis lock with a TTL so a worker killed mid-run cannot block its
    job forever. A client is opened per acquisition because Celery tasks run each job
    on a fresh event loop.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        ttl_seconds: int,
        key_prefix: str = "ispsync:job-guard:",
    ) -> None:
        self._redis_url = redis_url
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix
        self._held: dict[str, tuple[Redis, Lock]] = {}

    def key_for(self, job_type: str) -> str:
        return f"{self._key_prefix}{job_type}"

    async def try_acquire(self, job_type: str) -> bool:
        client = Redis.from_url(self._redis_url)
        lock = client.lock(self.key_for(job_type), timeout=self._ttl_seconds, blocking=False)
        try:
            acquired = await lock.acquire()
        except Exception:
            await client.aclose()
            raise
        if not acquired:
            await client.aclose()
            return False
        self._held[job_type] = (client, lock)
        return True

    async def release(self, job_type: str) -> None:
        held = self._held.pop(job_type, None)
        if held is None:
            return
        client, lock = held
        try:
            await lock.release()
        except LockError:
            logger.warning("job_guard_lock_lost", job_type=job_type, ttl_seconds=self._ttl_seconds)
        finally:
            await client.aclose()

    def is_held(self, job_type: str) -> bool:
        return job_type in self._held


Guards = JobGuards | RedisJobGuards


@dataclass(frozen=True, slots=True)
class JobSpec:
    job_type: str
    trigger: Trigger
    fn: JobFn
    describe: DescribeFn


def _default_describe(summary: dict[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in summary.items() if key != "errors")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobRunner:
    """Runs registered jobs with a single-flight guard and a durable run record.

    A job function returns a summary dict. Two keys are interpreted: ``errors``
    (list of per-item failure texts, stored on the run record) and ``all_failed``
    (marks the run as ``error`` even though the body returned normally).
    """

    def __init__(
        self,
        *,
        guards: Guards | None = None,
        now_fn: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._guards = guards or JobGuards()
        self._now = now_fn
        self._jobs: dict[str, JobSpec] = {}

    @property
    def guards(self) -> Guards:
        return self._guards

    @property
    def jobs(self) -> dict[str, JobSpec]:
        return dict(self._jobs)

    def register(
        self,
        job_type: str,
        trigger: Trigger,
        fn: JobFn,
        *,
        describe: DescribeFn | None = None,
    ) -> None:
        if job_type in self._jobs:
            raise DuplicateJobTypeError(job_type)
        self._jobs[job_type] = JobSpec(
            job_type=job_type,
            trigger=trigger,
            fn=fn,
            describe=describe or _default_describe,
        )

    def get(self, job_type: str) -> JobSpec:
        spec = self._jobs.get(job_type)
        if spec is None:
            raise UnknownJobTypeError(job_type)
        return spec

    async def run(self, job_type: str) -> dict[str, Any]:
        spec = self.get(job_type)
        try:
            acquired = await self._guards.try_acquire(job_type)
        except Exception as exc:
            logger.exception("job_guard_unavailable", job_type=job_type)
            return {"job_type": job_type, "status": RUN_STATUS_ERROR, "error": f"guard unavailable: {exc}"}
        if not acquired:
            logger.info("job_run_skipped_already_running", job_type=job_type)
            return {"job_type": job_type, "status": RUN_STATUS_SKIPPED}

        try:
            return await self._run_guarded(spec)
        finally:
            await self._guards.release(job_type)

    async def _run_guarded(self, spec: JobSpec) -> dict[str, Any]:
        started_at = self._now()
        try:
            async with SessionLocal.begin() as session:
                run = await JobRunsRepo.create_running(
                    session,
                    job_type=spec.job_type,
                    started_at=started_at,
                )
                run_id = run.id
        except Exception as exc:
            logger.exception("job_run_record_open_failed", job_type=spec.job_type)
            return {"job_type": spec.job_type, "status": RUN_STATUS_ERROR, "error": str(exc)}

        summary: dict[str, Any] = {}
        result_text: str | None = None
        error_text: str | None = None
        try:
            summary = await spec.fn()
            result_text = spec.describe(summary)
            item_errors = summary.get("errors") or []
            error_text = "; ".join(str(item) for item in item_errors) or None
            status = RUN_STATUS_ERROR if summary.get("all_failed") else RUN_STATUS_SUCCESS
        except Exception as exc:
            logger.exception("job_run_failed", job_type=spec.job_type, run_id=run_id)
            status = RUN_STATUS_ERROR
            error_text = str(exc) or type(exc).__name__

        finished_at = self._now()
        duration_ms = max(0, int((finished_at - started_at).total_seconds() * 1000))
        if error_text is not None:
            error_text = error_text[:MAX_ERROR_TEXT_LENGTH]
        try:
            async with SessionLocal.begin() as session:
                await JobRunsRepo.close(
                    session,
                    run_id=run_id,
                    status=status,
                    finished_at=finished_at,
                    duration_ms=duration_ms,
                    result=result_text,
                    error=error_text,
                )
        except Exception:
            logger.exception("job_run_record_close_failed", job_type=spec.job_type, run_id=run_id)

        log_fields = {
            "job_type": spec.job_type,
            "run_id": run_id,
            "status": status,
            "duration_ms": duration_ms,
        }
        if status == RUN_STATUS_ERROR:
            logger.warning("job_run_finished", error=error_text, **log_fields)
        else:
            logger.info("job_run_finished", result=result_text, **log_fields)

        response: dict[str, Any] = {
            **summary,
            "job_type": spec.job_type,
            "status": status,
            "run_id": run_id,
            "duration_ms": duration_ms,
        }
        if result_text is not None:
            response["result"] = result_text
        if error_text is not None:
            response["error"] = error_text
        return response
