from __future__ import annotations

from ispsync.core.config import get_settings
from ispsync.workers.job_runner import Guards, JobRunner, RedisJobGuards, daily_at, every
from ispsync.workers.tasks.agent_sales_async import describe_agent_sales, record_agent_sales
from ispsync.workers.tasks.auto_isolir_async import describe_auto_isolir, isolate_expired_subscribers
from ispsync.workers.tasks.invoice_generation_async import describe_invoice_generation, generate_invoices
from ispsync.workers.tasks.invoice_reminders_async import (
    describe_invoice_reminders,
    dispatch_invoice_reminders,
)
from ispsync.workers.tasks.reconciliation_config import (
    AGENT_SALES_INTERVAL_SECONDS,
    AUTO_ISOLIR_INTERVAL_SECONDS,
    INVOICE_GENERATE_HOUR,
    INVOICE_GENERATE_MINUTE,
    INVOICE_REMINDER_INTERVAL_SECONDS,
    VOUCHER_SYNC_INTERVAL_SECONDS,
)
from ispsync.workers.tasks.voucher_sync_async import describe_voucher_sync, reconcile_vouchers

JOB_VOUCHER_SYNC = "voucher_sync"
JOB_AGENT_SALES = "agent_sales"
JOB_AUTO_ISOLIR = "auto_isolir"
JOB_INVOICE_REMINDER = "invoice_reminder"
JOB_INVOICE_GENERATE = "invoice_generate"

JOB_TYPES = (
    JOB_VOUCHER_SYNC,
    JOB_AGENT_SALES,
    JOB_AUTO_ISOLIR,
    JOB_INVOICE_REMINDER,
    JOB_INVOICE_GENERATE,
)


def build_shared_guards() -> RedisJobGuards:
    settings = get_settings()
    return RedisJobGuards(
        settings.redis_url,
        ttl_seconds=settings.job_lock_ttl_seconds,
        key_prefix=settings.job_lock_key_prefix,
    )


def build_job_runner(*, guards: Guards | None = None) -> JobRunner:
    if guards is None:
        guards = build_shared_guards()
    runner = JobRunner(guards=guards)
    runner.register(
        JOB_VOUCHER_SYNC,
        every(VOUCHER_SYNC_INTERVAL_SECONDS),
        reconcile_vouchers,
        describe=describe_voucher_sync,
    )
    runner.register(
        JOB_AGENT_SALES,
        every(AGENT_SALES_INTERVAL_SECONDS),
        record_agent_sales,
        describe=describe_agent_sales,
    )
    runner.register(
        JOB_AUTO_ISOLIR,
        every(AUTO_ISOLIR_INTERVAL_SECONDS),
        isolate_expired_subscribers,
        describe=describe_auto_isolir,
    )
    runner.register(
        JOB_INVOICE_REMINDER,
        every(INVOICE_REMINDER_INTERVAL_SECONDS),
        dispatch_invoice_reminders,
        describe=describe_invoice_reminders,
    )
    runner.register(
        JOB_INVOICE_GENERATE,
        daily_at(INVOICE_GENERATE_HOUR, INVOICE_GENERATE_MINUTE),
        generate_invoices,
        describe=describe_invoice_generation,
    )
    return runner


job_runner = build_job_runner()
