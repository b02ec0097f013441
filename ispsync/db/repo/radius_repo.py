from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.hotspot import HotspotVoucher
from ispsync.db.models.radius import Nas, RadAcct, RadCheck, RadReply, RadUserGroup

PASSWORD_ATTRIBUTE = "Cleartext-Password"
STATIC_IP_ATTRIBUTE = "Framed-IP-Address"


class RadiusRepo:
    @staticmethod
    async def get_first_session_start(session: AsyncSession, *, username: str) -> datetime | None:
        stmt = select(func.min(RadAcct.acctstarttime)).where(
            RadAcct.username == username,
            RadAcct.acctstarttime.is_not(None),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def purge_credentials(session: AsyncSession, *, username: str) -> None:
        await session.execute(delete(RadCheck).where(RadCheck.username == username))
        await session.execute(delete(RadUserGroup).where(RadUserGroup.username == username))

    @staticmethod
    async def upsert_password(session: AsyncSession, *, username: str, password: str) -> None:
        stmt = (
            insert(RadCheck)
            .values(
                username=username,
                attribute=PASSWORD_ATTRIBUTE,
                op=":=",
                value=password,
            )
            .on_conflict_do_update(
                constraint="uq_radcheck_username_attribute",
                set_={"op": ":=", "value": password},
            )
        )
        await session.execute(stmt)

    @staticmethod
    async def replace_group(
        session: AsyncSession,
        *,
        username: str,
        groupname: str,
        priority: int,
    ) -> None:
        await session.execute(delete(RadUserGroup).where(RadUserGroup.username == username))
        session.add(RadUserGroup(username=username, groupname=groupname, priority=priority))
        await session.flush()

    @staticmethod
    async def delete_reply_attribute(session: AsyncSession, *, username: str, attribute: str) -> int:
        stmt = delete(RadReply).where(
            RadReply.username == username,
            RadReply.attribute == attribute,
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def get_latest_open_session(session: AsyncSession, *, username: str) -> RadAcct | None:
        stmt = (
            select(RadAcct)
            .where(
                RadAcct.username == username,
                RadAcct.acctstoptime.is_(None),
            )
            .order_by(RadAcct.acctstarttime.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_open_sessions_for_expired_vouchers(session: AsyncSession) -> list[RadAcct]:
        stmt = (
            select(RadAcct)
            .join(HotspotVoucher, HotspotVoucher.code == RadAcct.username)
            .where(
                RadAcct.acctstoptime.is_(None),
                HotspotVoucher.status == "EXPIRED",
            )
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_nas(session: AsyncSession, *, nasname: str) -> Nas | None:
        stmt = select(Nas).where(Nas.nasname == nasname)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
