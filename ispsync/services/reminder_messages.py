from __future__ import annotations

import math
import re
from datetime import datetime
from zoneinfo import ZoneInfo

INVOICE_REMINDER_TEMPLATE_KEY = "invoice-reminder"
DEFAULT_INVOICE_REMINDER_TEMPLATE = (
    "Hello {{customerName}},\n\n"
    "This is a reminder that invoice {{invoiceNumber}} for account {{username}} "
    "of {{amount}} is due on {{dueDate}} ({{daysRemaining}} day(s) left).\n\n"
    "Pay here: {{paymentLink}}\n\n"
    "{{companyName}} - {{companyPhone}}"
)
PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def render_template(template: str, variables: dict[str, str]) -> str:
    # Unknown placeholders are left untouched so template typos stay visible.
    return PLACEHOLDER_RE.sub(lambda match: variables.get(match.group(1), match.group(0)), template)


def format_rupiah(amount: int) -> str:
    return "Rp " + f"{amount:,}".replace(",", ".")


def format_due_date(due_date: datetime, *, tz_name: str) -> str:
    local = due_date.astimezone(ZoneInfo(tz_name))
    return f"{local.day} {MONTH_NAMES[local.month - 1]} {local.year}"


def days_remaining(due_date: datetime, *, now_utc: datetime) -> int:
    return math.ceil((due_date - now_utc).total_seconds() / 86400)


def build_invoice_reminder_message(
    *,
    template: str | None,
    customer_name: str,
    username: str,
    invoice_number: str,
    amount: int,
    due_date: datetime,
    payment_link: str,
    company_name: str,
    company_phone: str,
    now_utc: datetime,
    tz_name: str,
) -> str:
    variables = {
        "customerName": customer_name,
        "username": username,
        "invoiceNumber": invoice_number,
        "amount": format_rupiah(amount),
        "dueDate": format_due_date(due_date, tz_name=tz_name),
        "daysRemaining": str(days_remaining(due_date, now_utc=now_utc)),
        "paymentLink": payment_link,
        "companyName": company_name,
        "companyPhone": company_phone,
    }
    return render_template(template or DEFAULT_INVOICE_REMINDER_TEMPLATE, variables)
