from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.invoices import Company, Invoice, MessageTemplate, ReminderSettings


class InvoicesRepo:
    @staticmethod
    async def list_pending_due_between(
        session: AsyncSession,
        *,
        start_utc: datetime,
        end_utc: datetime,
    ) -> list[Invoice]:
        stmt = (
            select(Invoice)
            .where(
                Invoice.status == "PENDING",
                Invoice.due_date >= start_utc,
                Invoice.due_date < end_utc,
            )
            .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def append_sent_reminder(session: AsyncSession, *, invoice_id: int, offset: int) -> bool:
        stmt = select(Invoice).where(Invoice.id == invoice_id).with_for_update()
        result = await session.execute(stmt)
        invoice = result.scalar_one_or_none()
        if invoice is None:
            return False
        sent = [int(value) for value in (invoice.sent_reminders or [])]
        if offset in sent:
            return False
        invoice.sent_reminders = [*sent, offset]
        await session.flush()
        return True

    @staticmethod
    async def get_reminder_settings(session: AsyncSession) -> ReminderSettings | None:
        stmt = select(ReminderSettings).order_by(ReminderSettings.id.asc()).limit(1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_template(session: AsyncSession, *, key: str) -> str | None:
        stmt = select(MessageTemplate.content).where(
            MessageTemplate.key == key,
            MessageTemplate.is_active.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_company(session: AsyncSession) -> Company | None:
        stmt = select(Company).order_by(Company.id.asc()).limit(1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
