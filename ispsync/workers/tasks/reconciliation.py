from __future__ import annotations

from typing import Any

from ispsync.workers.asyncio_runner import run_async_job
from ispsync.workers.celery_app import celery_app
from ispsync.workers.jobs import (
    JOB_AGENT_SALES,
    JOB_AUTO_ISOLIR,
    JOB_INVOICE_GENERATE,
    JOB_INVOICE_REMINDER,
    JOB_VOUCHER_SYNC,
    job_runner,
)
from ispsync.workers.tasks.reconciliation_schedule import configure_reconciliation_schedule

__all__ = [
    "run_agent_sales",
    "run_auto_isolir",
    "run_invoice_generate",
    "run_invoice_reminder",
    "run_voucher_sync",
]


@celery_app.task(name="ispsync.workers.tasks.reconciliation.run_voucher_sync")
def run_voucher_sync() -> dict[str, Any]:
    return run_async_job(job_runner.run(JOB_VOUCHER_SYNC), job_type=JOB_VOUCHER_SYNC)


@celery_app.task(name="ispsync.workers.tasks.reconciliation.run_agent_sales")
def run_agent_sales() -> dict[str, Any]:
    return run_async_job(job_runner.run(JOB_AGENT_SALES), job_type=JOB_AGENT_SALES)


@celery_app.task(name="ispsync.workers.tasks.reconciliation.run_auto_isolir")
def run_auto_isolir() -> dict[str, Any]:
    return run_async_job(job_runner.run(JOB_AUTO_ISOLIR), job_type=JOB_AUTO_ISOLIR)


@celery_app.task(name="ispsync.workers.tasks.reconciliation.run_invoice_reminder")
def run_invoice_reminder() -> dict[str, Any]:
    return run_async_job(job_runner.run(JOB_INVOICE_REMINDER), job_type=JOB_INVOICE_REMINDER)


@celery_app.task(name="ispsync.workers.tasks.reconciliation.run_invoice_generate")
def run_invoice_generate() -> dict[str, Any]:
    return run_async_job(job_runner.run(JOB_INVOICE_GENERATE), job_type=JOB_INVOICE_GENERATE)


configure_reconciliation_schedule(celery_app, job_runner)
