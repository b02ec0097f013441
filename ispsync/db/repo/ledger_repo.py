from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.ledger_entries import LedgerEntry


class LedgerRepo:
    @staticmethod
    async def get_by_reference(session: AsyncSession, reference: str) -> LedgerEntry | None:
        stmt = select(LedgerEntry).where(LedgerEntry.reference == reference)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_once(
        session: AsyncSession,
        *,
        category: str,
        direction: str,
        amount: int,
        description: str,
        reference: str,
        occurred_at: datetime,
        notes: str | None = None,
    ) -> bool:
        stmt = (
            insert(LedgerEntry)
            .values(
                category=category,
                direction=direction,
                amount=amount,
                description=description,
                reference=reference,
                notes=notes,
                occurred_at=occurred_at,
            )
            .on_conflict_do_nothing(index_elements=[LedgerEntry.reference])
            .returning(LedgerEntry.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None
