from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from ispsync.db.session import dispose_engine

T = TypeVar("T")


async def _run_job_on_fresh_loop(awaitable: Awaitable[T], job_type: str | None) -> T:
    # The engine pool is bound to the loop that created it, and every task gets a new loop.
    structlog.contextvars.clear_contextvars()
    if job_type is not None:
        structlog.contextvars.bind_contextvars(job_type=job_type)
    await dispose_engine()
    try:
        return await awaitable
    finally:
        await dispose_engine()
        structlog.contextvars.clear_contextvars()


def run_async_job(awaitable: Awaitable[T], *, job_type: str | None = None) -> T:
    """Runs a job coroutine from a synchronous Celery task, tagging its log lines with ``job_type``."""
    return asyncio.run(_run_job_on_fresh_loop(awaitable, job_type))
