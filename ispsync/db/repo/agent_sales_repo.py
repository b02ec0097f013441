from __future__ import annotations

from datetime import datetime

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.hotspot import AgentSale


class AgentSalesRepo:
    @staticmethod
    async def create_once(
        session: AsyncSession,
        *,
        agent_id: int,
        voucher_code: str,
        profile_name: str,
        amount: int,
        created_at: datetime,
    ) -> bool:
        stmt = (
            insert(AgentSale)
            .values(
                agent_id=agent_id,
                voucher_code=voucher_code,
                profile_name=profile_name,
                amount=amount,
                created_at=created_at,
            )
            .on_conflict_do_nothing(index_elements=[AgentSale.voucher_code])
            .returning(AgentSale.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None
