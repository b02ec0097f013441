from __future__ import annotations

from ispsync.core.config import get_settings

settings = get_settings()


def _clamp_hour(value: int) -> int:
    return max(0, min(23, int(value)))


def _clamp_minute(value: int) -> int:
    return max(0, min(59, int(value)))


def _clamp_interval(value: int) -> int:
    return max(30, min(86400, int(value)))


def _clamp_batch_size(value: int) -> int:
    return max(1, min(100, int(value)))


VOUCHER_SYNC_INTERVAL_SECONDS = _clamp_interval(settings.voucher_sync_interval_seconds)
AGENT_SALES_INTERVAL_SECONDS = _clamp_interval(settings.agent_sales_interval_seconds)
AUTO_ISOLIR_INTERVAL_SECONDS = _clamp_interval(settings.auto_isolir_interval_seconds)
INVOICE_REMINDER_INTERVAL_SECONDS = _clamp_interval(settings.invoice_reminder_interval_seconds)
INVOICE_GENERATE_HOUR = _clamp_hour(settings.invoice_generate_hour)
INVOICE_GENERATE_MINUTE = _clamp_minute(settings.invoice_generate_minute)
REMINDER_MESSAGES_PER_BATCH = _clamp_batch_size(settings.reminder_messages_per_batch)

__all__ = [
    "AGENT_SALES_INTERVAL_SECONDS",
    "AUTO_ISOLIR_INTERVAL_SECONDS",
    "INVOICE_GENERATE_HOUR",
    "INVOICE_GENERATE_MINUTE",
    "INVOICE_REMINDER_INTERVAL_SECONDS",
    "REMINDER_MESSAGES_PER_BATCH",
    "VOUCHER_SYNC_INTERVAL_SECONDS",
]
