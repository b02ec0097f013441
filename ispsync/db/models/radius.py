from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from ispsync.db.models.base import Base

# FreeRADIUS tables. Timestamps in radacct are naive and written in the NAS/business timezone.


class RadAcct(Base):
    __tablename__ = "radacct"
    __table_args__ = (
        Index("idx_radacct_username_start", "username", "acctstarttime"),
        Index("idx_radacct_open_sessions", "acctstoptime"),
    )

    radacctid: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    acctsessionid: Mapped[str] = mapped_column(String(64), nullable=False)
    acctuniqueid: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    nasipaddress: Mapped[str] = mapped_column(String(45), nullable=False)
    framedipaddress: Mapped[str | None] = mapped_column(String(45), nullable=True)
    acctstarttime: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    acctstoptime: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)


class RadCheck(Base):
    __tablename__ = "radcheck"
    __table_args__ = (
        UniqueConstraint("username", "attribute", name="uq_radcheck_username_attribute"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    attribute: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    op: Mapped[str] = mapped_column(String(2), nullable=False, server_default=text("'=='"))
    value: Mapped[str] = mapped_column(String(253), nullable=False, server_default=text("''"))


class RadReply(Base):
    __tablename__ = "radreply"
    __table_args__ = (
        Index("idx_radreply_username", "username"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    attribute: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    op: Mapped[str] = mapped_column(String(2), nullable=False, server_default=text("'='"))
    value: Mapped[str] = mapped_column(String(253), nullable=False, server_default=text("''"))


class RadUserGroup(Base):
    __tablename__ = "radusergroup"
    __table_args__ = (
        Index("idx_radusergroup_username", "username"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    groupname: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))


class Nas(Base):
    __tablename__ = "nas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nasname: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    shortname: Mapped[str | None] = mapped_column(String(32), nullable=True)
    secret: Mapped[str] = mapped_column(String(60), nullable=False)
