from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.subscribers import PppoeUser


class SubscribersRepo:
    @staticmethod
    async def list_expired_active_ids(session: AsyncSession, *, before_utc: datetime) -> list[int]:
        stmt = (
            select(PppoeUser.id)
            .where(
                PppoeUser.status == "active",
                PppoeUser.expired_at.is_not(None),
                PppoeUser.expired_at < before_utc,
            )
            .order_by(PppoeUser.expired_at.asc(), PppoeUser.id.asc())
        )
        result = await session.execute(stmt)
        return [int(user_id) for user_id in result.scalars().all()]

    @staticmethod
    async def get_active_for_update(session: AsyncSession, user_id: int) -> PppoeUser | None:
        stmt = (
            select(PppoeUser)
            .where(
                PppoeUser.id == user_id,
                PppoeUser.status == "active",
            )
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
