from __future__ import annotations

from datetime import datetime

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.hotspot import Agent, AgentSale, HotspotProfile, HotspotVoucher


class VouchersRepo:
    @staticmethod
    async def list_waiting_ids(session: AsyncSession) -> list[int]:
        stmt = select(HotspotVoucher.id).where(HotspotVoucher.status == "WAITING").order_by(HotspotVoucher.id)
        result = await session.execute(stmt)
        return [int(voucher_id) for voucher_id in result.scalars().all()]

    @staticmethod
    async def get_waiting_for_update(session: AsyncSession, voucher_id: int) -> HotspotVoucher | None:
        stmt = (
            select(HotspotVoucher)
            .where(
                HotspotVoucher.id == voucher_id,
                HotspotVoucher.status == "WAITING",
            )
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_profile(session: AsyncSession, profile_id: int) -> HotspotProfile | None:
        return await session.get(HotspotProfile, profile_id)

    @staticmethod
    async def get_agent(session: AsyncSession, agent_id: int) -> Agent | None:
        return await session.get(Agent, agent_id)

    @staticmethod
    async def find_expired_active_vouchers(session: AsyncSession, *, now_utc: datetime) -> list[str]:
        stmt = (
            select(HotspotVoucher.code)
            .where(
                HotspotVoucher.status == "ACTIVE",
                HotspotVoucher.expires_at.is_not(None),
                HotspotVoucher.expires_at < now_utc,
            )
            .order_by(HotspotVoucher.expires_at.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def mark_expired(session: AsyncSession, *, codes: list[str], now_utc: datetime) -> int:
        if not codes:
            return 0
        stmt = (
            update(HotspotVoucher)
            .where(
                HotspotVoucher.code.in_(codes),
                HotspotVoucher.status == "ACTIVE",
                HotspotVoucher.expires_at < now_utc,
            )
            .values(status="EXPIRED")
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def list_agent_sale_candidates(
        session: AsyncSession,
        *,
        limit: int = 500,
    ) -> list[tuple[HotspotVoucher, HotspotProfile]]:
        already_recorded = exists().where(AgentSale.voucher_code == HotspotVoucher.code)
        stmt = (
            select(HotspotVoucher, HotspotProfile)
            .join(HotspotProfile, HotspotProfile.id == HotspotVoucher.profile_id)
            .where(
                HotspotVoucher.status.in_(("ACTIVE", "EXPIRED")),
                HotspotVoucher.origin == "AGENT",
                HotspotVoucher.agent_id.is_not(None),
                HotspotVoucher.first_login_at.is_not(None),
                ~already_recorded,
            )
            .order_by(HotspotVoucher.first_login_at.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return [(voucher, profile) for voucher, profile in result.all()]
