from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from ispsync.services.errors import WhatsAppSendError
from ispsync.workers.tasks import invoice_reminders_async
from tests.fakes import FakeSessionLocal, settings

UTC = timezone.utc
# 09:30 on 2024-03-05 in Jakarta.
AT_REMINDER_HOUR = datetime(2024, 3, 5, 2, 30, tzinfo=UTC)


class _FakeInvoicesRepo:
    def __init__(
        self,
        *,
        reminder_settings: SimpleNamespace | None,
        invoices: list[SimpleNamespace],
        company: SimpleNamespace | None = None,
        template: str | None = None,
    ) -> None:
        self.reminder_settings = reminder_settings
        self.invoices = {invoice.id: invoice for invoice in invoices}
        self.company = company
        self.template = template
        self.template_keys: list[str] = []

    async def get_reminder_settings(self, session) -> SimpleNamespace | None:  # noqa: ARG002
        return self.reminder_settings

    async def get_company(self, session) -> SimpleNamespace | None:  # noqa: ARG002
        return self.company

    async def get_active_template(self, session, *, key: str) -> str | None:  # noqa: ARG002
        self.template_keys.append(key)
        return self.template

    async def list_pending_due_between(self, session, *, start_utc: datetime, end_utc: datetime):  # noqa: ARG002
        return [
            invoice
            for invoice in self.invoices.values()
            if invoice.status == "PENDING" and start_utc <= invoice.due_date < end_utc
        ]

    async def append_sent_reminder(self, session, *, invoice_id: int, offset: int) -> bool:  # noqa: ARG002
        invoice = self.invoices[invoice_id]
        if offset in invoice.sent_reminders:
            return False
        invoice.sent_reminders = [*invoice.sent_reminders, offset]
        return True


def _invoice(invoice_id: int, *, due_date: datetime, **overrides: object) -> SimpleNamespace:
    base: dict[str, object] = {
        "id": invoice_id,
        "invoice_number": f"INV-{invoice_id:04d}",
        "customer_name": "Siti",
        "customer_phone": "081234567890",
        "customer_username": "siti01",
        "amount": 150000,
        "due_date": due_date,
        "status": "PENDING",
        "payment_link": "https://pay.example/INV",
        "sent_reminders": [],
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def _reminder_settings(**overrides: object) -> SimpleNamespace:
    base: dict[str, object] = {"enabled": True, "reminder_days": [-3, 0], "reminder_time": "09:00"}
    base.update(overrides)
    return SimpleNamespace(**base)


def _install(monkeypatch, repo: _FakeInvoicesRepo, *, now: datetime = AT_REMINDER_HOUR, fail_phones=()) -> list[dict[str, Any]]:
    sent: list[dict[str, Any]] = []

    async def fake_send(phone: str, message: str) -> None:
        if phone in fail_phones:
            raise WhatsAppSendError("gateway rejected")
        sent.append({"phone": phone, "message": message})

    monkeypatch.setattr(invoice_reminders_async, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(invoice_reminders_async, "InvoicesRepo", repo)
    monkeypatch.setattr(invoice_reminders_async, "send_message", fake_send)
    monkeypatch.setattr(invoice_reminders_async, "get_settings", lambda: settings())
    monkeypatch.setattr(invoice_reminders_async, "_utc_now", lambda: now)
    return sent


@pytest.mark.asyncio
async def test_due_invoices_get_one_reminder_per_offset(monkeypatch) -> None:
    due_in_three_days = _invoice(1, due_date=datetime(2024, 3, 8, 3, 0, tzinfo=UTC))
    due_today_already_sent = _invoice(2, due_date=datetime(2024, 3, 5, 10, 0, tzinfo=UTC), sent_reminders=[0])
    no_phone = _invoice(3, due_date=datetime(2024, 3, 8, 4, 0, tzinfo=UTC), customer_phone=None)
    repo = _FakeInvoicesRepo(
        reminder_settings=_reminder_settings(),
        invoices=[due_in_three_days, due_today_already_sent, no_phone],
        company=SimpleNamespace(name="NetKita", phone="0211234"),
    )
    sent = _install(monkeypatch, repo)

    first = await invoice_reminders_async.dispatch_invoice_reminders()
    second = await invoice_reminders_async.dispatch_invoice_reminders()

    assert first == {"state": "processed", "sent": 1, "skipped": 2, "failed": 0}
    assert second == {"state": "processed", "sent": 0, "skipped": 3, "failed": 0}
    assert len(sent) == 1
    assert sent[0]["phone"] == "081234567890"
    assert "INV-0001" in sent[0]["message"]
    assert "Rp 150.000" in sent[0]["message"]
    assert "8 March 2024" in sent[0]["message"]
    assert "NetKita - 0211234" in sent[0]["message"]
    assert due_in_three_days.sent_reminders == [-3]
    assert repo.template_keys == ["invoice-reminder", "invoice-reminder"]


@pytest.mark.asyncio
async def test_custom_template_is_rendered(monkeypatch) -> None:
    repo = _FakeInvoicesRepo(
        reminder_settings=_reminder_settings(reminder_days=[0]),
        invoices=[_invoice(1, due_date=datetime(2024, 3, 5, 10, 0, tzinfo=UTC))],
        company=SimpleNamespace(name="NetKita", phone=None),
        template="Hi {{customerName}}, pay {{amount}} for {{invoiceNumber}}",
    )
    sent = _install(monkeypatch, repo)

    await invoice_reminders_async.dispatch_invoice_reminders()

    assert sent == [{"phone": "081234567890", "message": "Hi Siti, pay Rp 150.000 for INV-0001"}]


@pytest.mark.asyncio
async def test_outside_reminder_hour_reports_not_time_yet(monkeypatch) -> None:
    repo = _FakeInvoicesRepo(
        reminder_settings=_reminder_settings(),
        invoices=[_invoice(1, due_date=datetime(2024, 3, 8, 3, 0, tzinfo=UTC))],
        company=SimpleNamespace(name="NetKita", phone="0211234"),
    )
    sent = _install(monkeypatch, repo, now=datetime(2024, 3, 5, 1, 30, tzinfo=UTC))

    summary = await invoice_reminders_async.dispatch_invoice_reminders()

    assert summary["state"] == "not_time_yet"
    assert summary["current_hour"] == 8
    assert summary["target_hour"] == 9
    assert sent == []
    assert invoice_reminders_async.describe_invoice_reminders(summary) == (
        "Not time yet (current hour: 8, target hour: 9)"
    )


@pytest.mark.parametrize("reminder_settings", [None, _reminder_settings(enabled=False)])
@pytest.mark.asyncio
async def test_disabled_reminders_send_nothing(monkeypatch, reminder_settings) -> None:
    repo = _FakeInvoicesRepo(
        reminder_settings=reminder_settings,
        invoices=[_invoice(1, due_date=datetime(2024, 3, 8, 3, 0, tzinfo=UTC))],
        company=SimpleNamespace(name="NetKita", phone="0211234"),
    )
    sent = _install(monkeypatch, repo)

    summary = await invoice_reminders_async.dispatch_invoice_reminders()

    assert summary["state"] == "disabled"
    assert sent == []
    assert invoice_reminders_async.describe_invoice_reminders(summary) == "Reminder disabled, skipped"


@pytest.mark.asyncio
async def test_missing_company_skips_every_matched_invoice(monkeypatch) -> None:
    repo = _FakeInvoicesRepo(
        reminder_settings=_reminder_settings(),
        invoices=[
            _invoice(1, due_date=datetime(2024, 3, 8, 3, 0, tzinfo=UTC)),
            _invoice(2, due_date=datetime(2024, 3, 5, 10, 0, tzinfo=UTC)),
        ],
        company=None,
    )
    sent = _install(monkeypatch, repo)

    summary = await invoice_reminders_async.dispatch_invoice_reminders()

    assert summary["skipped"] == 2
    assert summary["sent"] == 0
    assert sent == []


@pytest.mark.asyncio
async def test_failed_send_leaves_offset_unmarked(monkeypatch) -> None:
    failing = _invoice(1, due_date=datetime(2024, 3, 8, 3, 0, tzinfo=UTC), customer_phone="0899")
    working = _invoice(2, due_date=datetime(2024, 3, 8, 5, 0, tzinfo=UTC))
    repo = _FakeInvoicesRepo(
        reminder_settings=_reminder_settings(reminder_days=[-3]),
        invoices=[failing, working],
        company=SimpleNamespace(name="NetKita", phone="0211234"),
    )
    sent = _install(monkeypatch, repo, fail_phones={"0899"})

    summary = await invoice_reminders_async.dispatch_invoice_reminders()

    assert summary == {"state": "processed", "sent": 1, "skipped": 0, "failed": 1}
    assert failing.sent_reminders == []
    assert working.sent_reminders == [-3]
    assert [item["phone"] for item in sent] == ["081234567890"]


def test_parse_reminder_settings_values() -> None:
    assert invoice_reminders_async.parse_reminder_hour("09:00") == 9
    assert invoice_reminders_async.parse_reminder_offsets([-3, -1, 0, -1]) == [-3, -1, 0]
    assert invoice_reminders_async.parse_reminder_offsets(None) == []
    with pytest.raises(ValueError):
        invoice_reminders_async.parse_reminder_hour("25:00")


class _SlowMarkInvoicesRepo(_FakeInvoicesRepo):
    async def append_sent_reminder(self, session, *, invoice_id: int, offset: int) -> bool:
        await asyncio.sleep(0.2)
        return await super().append_sent_reminder(session, invoice_id=invoice_id, offset=offset)


@pytest.mark.asyncio
async def test_slow_offset_write_after_confirmed_send_is_not_cut_off(monkeypatch) -> None:
    invoice = _invoice(1, due_date=datetime(2024, 3, 8, 3, 0, tzinfo=UTC))
    repo = _SlowMarkInvoicesRepo(
        reminder_settings=_reminder_settings(reminder_days=[-3]),
        invoices=[invoice],
        company=SimpleNamespace(name="NetKita", phone="0211234"),
    )
    sent = _install(monkeypatch, repo)
    monkeypatch.setattr(
        invoice_reminders_async,
        "get_settings",
        lambda: settings(reminder_send_timeout_seconds=0.1),
    )

    first = await invoice_reminders_async.dispatch_invoice_reminders()
    second = await invoice_reminders_async.dispatch_invoice_reminders()

    assert first == {"state": "processed", "sent": 1, "skipped": 0, "failed": 0}
    assert second == {"state": "processed", "sent": 0, "skipped": 1, "failed": 0}
    assert invoice.sent_reminders == [-3]
    assert len(sent) == 1


@pytest.mark.asyncio
async def test_hung_gateway_times_out_and_leaves_offset_unmarked(monkeypatch) -> None:
    invoice = _invoice(1, due_date=datetime(2024, 3, 8, 3, 0, tzinfo=UTC))
    repo = _FakeInvoicesRepo(
        reminder_settings=_reminder_settings(reminder_days=[-3]),
        invoices=[invoice],
        company=SimpleNamespace(name="NetKita", phone="0211234"),
    )
    _install(monkeypatch, repo)

    async def hung_send(phone: str, message: str) -> None:  # noqa: ARG001
        await asyncio.sleep(1)

    monkeypatch.setattr(invoice_reminders_async, "send_message", hung_send)
    monkeypatch.setattr(
        invoice_reminders_async,
        "get_settings",
        lambda: settings(reminder_send_timeout_seconds=0.05),
    )

    summary = await invoice_reminders_async.dispatch_invoice_reminders()

    assert summary == {"state": "processed", "sent": 0, "skipped": 0, "failed": 1}
    assert invoice.sent_reminders == []
