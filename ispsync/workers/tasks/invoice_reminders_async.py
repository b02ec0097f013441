from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from ispsync.core.clock import business_day_bounds_utc, business_local_now
from ispsync.core.config import get_settings
from ispsync.db.repo.invoices_repo import InvoicesRepo
from ispsync.db.session import SessionLocal
from ispsync.services.rate_limiter import (
    RateLimitConfig,
    SendProgress,
    estimate_send_time,
    format_estimated_time,
    send_with_rate_limit,
)
from ispsync.services.reminder_messages import (
    INVOICE_REMINDER_TEMPLATE_KEY,
    build_invoice_reminder_message,
)
from ispsync.services.whatsapp import send_message
from ispsync.workers.tasks.reconciliation_config import REMINDER_MESSAGES_PER_BATCH

logger = structlog.get_logger("ispsync.workers.tasks.invoice_reminders")

STATE_DISABLED = "disabled"
STATE_NOT_TIME_YET = "not_time_yet"
STATE_PROCESSED = "processed"


@dataclass(frozen=True, slots=True)
class ReminderItem:
    invoice_id: int
    invoice_number: str
    phone: str
    customer_name: str
    username: str
    amount: int
    due_date: datetime
    payment_link: str
    offset: int


@dataclass(frozen=True, slots=True)
class ReminderContext:
    template: str | None
    company_name: str
    company_phone: str
    tz_name: str
    send_timeout_seconds: float


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_reminder_hour(reminder_time: str) -> int:
    hour_text, _, _ = reminder_time.strip().partition(":")
    hour = int(hour_text)
    if not 0 <= hour <= 23:
        raise ValueError(f"invalid reminder time: {reminder_time!r}")
    return hour


def parse_reminder_offsets(raw_offsets: object) -> list[int]:
    if not isinstance(raw_offsets, list):
        return []
    offsets: list[int] = []
    for value in raw_offsets:
        offset = int(value)
        if offset not in offsets:
            offsets.append(offset)
    return offsets


def _rate_limit_config() -> RateLimitConfig:
    settings = get_settings()
    return RateLimitConfig(
        messages_per_batch=REMINDER_MESSAGES_PER_BATCH,
        batch_delay_seconds=settings.reminder_batch_delay_seconds,
        message_delay_seconds=settings.reminder_message_delay_seconds,
        item_timeout_seconds=None,
    )


async def _send_reminder(item: ReminderItem, *, context: ReminderContext) -> None:
    message = build_invoice_reminder_message(
        template=context.template,
        customer_name=item.customer_name,
        username=item.username,
        invoice_number=item.invoice_number,
        amount=item.amount,
        due_date=item.due_date,
        payment_link=item.payment_link,
        company_name=context.company_name,
        company_phone=context.company_phone,
        now_utc=_utc_now(),
        tz_name=context.tz_name,
    )
    # Only the gateway call is time-bounded; once it is confirmed the offset must be recorded.
    await asyncio.wait_for(send_message(item.phone, message), timeout=context.send_timeout_seconds)

    try:
        async with SessionLocal.begin() as session:
            await InvoicesRepo.append_sent_reminder(session, invoice_id=item.invoice_id, offset=item.offset)
    except Exception:
        logger.exception(
            "invoice_reminder_mark_failed",
            invoice_number=item.invoice_number,
            offset=item.offset,
        )
        raise


def _log_progress(progress: SendProgress) -> None:
    logger.info(
        "invoice_reminder_progress",
        current=progress.current,
        total=progress.total,
        batch=progress.batch,
        total_batches=progress.total_batches,
    )


async def dispatch_invoice_reminders() -> dict[str, Any]:
    settings = get_settings()
    tz_name = settings.business_timezone
    now_utc = _utc_now()
    summary: dict[str, Any] = {"state": STATE_PROCESSED, "sent": 0, "skipped": 0, "failed": 0}

    async with SessionLocal() as session:
        reminder_settings = await InvoicesRepo.get_reminder_settings(session)
        if reminder_settings is None or not reminder_settings.enabled:
            summary["state"] = STATE_DISABLED
            logger.info("invoice_reminders_disabled")
            return summary

        target_hour = parse_reminder_hour(reminder_settings.reminder_time)
        local_now = business_local_now(now_utc, tz_name=tz_name)
        if local_now.hour != target_hour:
            summary["state"] = STATE_NOT_TIME_YET
            summary["current_hour"] = local_now.hour
            summary["target_hour"] = target_hour
            return summary

        offsets = parse_reminder_offsets(reminder_settings.reminder_days)
        company = await InvoicesRepo.get_company(session)
        template = await InvoicesRepo.get_active_template(session, key=INVOICE_REMINDER_TEMPLATE_KEY)

    context = (
        ReminderContext(
            template=template,
            company_name=company.name,
            company_phone=company.phone or "",
            tz_name=tz_name,
            send_timeout_seconds=settings.reminder_send_timeout_seconds,
        )
        if company is not None
        else None
    )
    config = _rate_limit_config()

    for offset in offsets:
        # A negative offset -N targets invoices due N days from today.
        target_date = local_now.date() - timedelta(days=offset)
        start_utc, end_utc = business_day_bounds_utc(target_date, tz_name=tz_name)
        async with SessionLocal() as session:
            invoices = await InvoicesRepo.list_pending_due_between(
                session,
                start_utc=start_utc,
                end_utc=end_utc,
            )
        logger.info(
            "invoice_reminder_offset_checked",
            offset=offset,
            due_date=target_date.isoformat(),
            invoices=len(invoices),
        )

        if context is None:
            logger.warning("invoice_reminder_company_missing", offset=offset, invoices=len(invoices))
            summary["skipped"] += len(invoices)
            continue

        batch: list[ReminderItem] = []
        for invoice in invoices:
            sent_offsets = {int(value) for value in (invoice.sent_reminders or [])}
            if offset in sent_offsets:
                summary["skipped"] += 1
                continue
            if not invoice.customer_phone:
                summary["skipped"] += 1
                logger.info("invoice_reminder_no_phone", invoice_number=invoice.invoice_number)
                continue
            batch.append(
                ReminderItem(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    phone=invoice.customer_phone,
                    customer_name=invoice.customer_name or "Customer",
                    username=invoice.customer_username or "-",
                    amount=invoice.amount,
                    due_date=invoice.due_date,
                    payment_link=invoice.payment_link or "",
                    offset=offset,
                )
            )

        if not batch:
            continue

        logger.info(
            "invoice_reminder_batch_started",
            offset=offset,
            messages=len(batch),
            estimated=format_estimated_time(estimate_send_time(len(batch), config)),
        )

        async def _send(item: ReminderItem) -> None:
            await _send_reminder(item, context=context)

        result = await send_with_rate_limit(batch, _send, config, _log_progress)
        summary["sent"] += result.sent
        summary["failed"] += result.failed

    logger.info("invoice_reminders_finished", **summary)
    return summary


def describe_invoice_reminders(summary: dict[str, Any]) -> str:
    state = summary.get("state")
    if state == STATE_DISABLED:
        return "Reminder disabled, skipped"
    if state == STATE_NOT_TIME_YET:
        return (
            f"Not time yet (current hour: {summary.get('current_hour')}, "
            f"target hour: {summary.get('target_hour')})"
        )
    return (
        f"Sent {summary.get('sent', 0)} reminders, skipped {summary.get('skipped', 0)}, "
        f"failed {summary.get('failed', 0)}"
    )
