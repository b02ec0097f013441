from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from ispsync.db.models.base import Base


class HotspotProfile(Base):
    __tablename__ = "hotspot_profiles"
    __table_args__ = (
        CheckConstraint(
            "validity_unit IN ('MINUTES','HOURS','DAYS','MONTHS')",
            name="ck_hotspot_profiles_validity_unit",
        ),
        CheckConstraint("validity_value > 0", name="ck_hotspot_profiles_validity_positive"),
        CheckConstraint("cost_price >= 0", name="ck_hotspot_profiles_cost_non_negative"),
        CheckConstraint("reseller_fee >= 0", name="ck_hotspot_profiles_fee_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    group_name: Mapped[str] = mapped_column(String(64), nullable=False)
    cost_price: Mapped[int] = mapped_column(Integer, nullable=False)
    selling_price: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    reseller_fee: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    validity_value: Mapped[int] = mapped_column(Integer, nullable=False)
    validity_unit: Mapped[str] = mapped_column(String(16), nullable=False)


class HotspotVoucher(Base):
    __tablename__ = "hotspot_vouchers"
    __table_args__ = (
        CheckConstraint(
            "status IN ('WAITING','ACTIVE','EXPIRED')",
            name="ck_hotspot_vouchers_status",
        ),
        CheckConstraint(
            "origin IN ('SELF_SERVICE','MANUAL','AGENT')",
            name="ck_hotspot_vouchers_origin",
        ),
        CheckConstraint(
            "(origin = 'AGENT') = (agent_id IS NOT NULL)",
            name="ck_hotspot_vouchers_agent_origin",
        ),
        CheckConstraint(
            "(first_login_at IS NULL) = (expires_at IS NULL)",
            name="ck_hotspot_vouchers_activation_pair",
        ),
        Index("idx_hotspot_vouchers_status_expires", "status", "expires_at"),
        Index("idx_hotspot_vouchers_agent", "agent_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    profile_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("hotspot_profiles.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'WAITING'"))
    origin: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'MANUAL'"))
    agent_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("agents.id"), nullable=True)
    batch_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    first_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )


class Agent(Base):
    __tablename__ = "agents"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))


class AgentSale(Base):
    __tablename__ = "agent_sales"
    __table_args__ = (
        Index("idx_agent_sales_agent_created", "agent_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    agent_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("agents.id"), nullable=False)
    voucher_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    profile_name: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
