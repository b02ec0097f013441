from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ispsync.db.models.hotspot import HotspotProfile, HotspotVoucher
from ispsync.db.repo.ledger_repo import LedgerRepo
from ispsync.db.repo.vouchers_repo import VouchersRepo

logger = structlog.get_logger(__name__)

HOTSPOT_SALES_CATEGORY = "HOTSPOT_SALES"
AGENT_COMMISSION_CATEGORY = "AGENT_COMMISSION"


@dataclass(slots=True)
class LedgerSyncResult:
    income_posted: bool = False
    commission_posted: bool = False


def voucher_income_reference(code: str) -> str:
    return f"VOUCHER-{code}"


def voucher_commission_reference(code: str) -> str:
    return f"COMMISSION-{code}"


def is_ledgered_here(voucher: HotspotVoucher) -> bool:
    # Order-linked vouchers are booked by the payment flow.
    return voucher.order_id is None


def earns_commission(voucher: HotspotVoucher, profile: HotspotProfile) -> bool:
    return voucher.origin == "AGENT" and voucher.agent_id is not None and profile.reseller_fee > 0


async def _post_once(
    session: AsyncSession,
    *,
    reference: str,
    category: str,
    direction: str,
    amount: int,
    description: str,
    occurred_at: datetime,
    notes: str | None,
) -> bool:
    if await LedgerRepo.get_by_reference(session, reference) is not None:
        return False
    return await LedgerRepo.create_once(
        session,
        category=category,
        direction=direction,
        amount=amount,
        description=description,
        reference=reference,
        occurred_at=occurred_at,
        notes=notes,
    )


async def sync_voucher_ledger(
    session: AsyncSession,
    *,
    voucher: HotspotVoucher,
    profile: HotspotProfile,
) -> LedgerSyncResult:
    """Books the income and, for agent vouchers, the commission of an activated voucher.

    Both legs are keyed by a reference derived from the voucher code, so repeated or
    overlapping calls for the same voucher post each leg at most once.
    """
    result = LedgerSyncResult()
    if not is_ledgered_here(voucher) or voucher.first_login_at is None:
        return result

    if profile.cost_price > 0:
        result.income_posted = await _post_once(
            session,
            reference=voucher_income_reference(voucher.code),
            category=HOTSPOT_SALES_CATEGORY,
            direction="INCOME",
            amount=profile.cost_price,
            description=f"Voucher {profile.name} - {voucher.code} (Agent/Manual)",
            occurred_at=voucher.first_login_at,
            notes=f"Auto-synced from voucher activation (cost price: {profile.cost_price})",
        )
    else:
        # ledger_entries.amount must be positive, so a free profile has no income row.
        logger.info(
            "voucher_ledger_income_skipped_zero_cost",
            voucher_code=voucher.code,
            profile_name=profile.name,
        )

    if earns_commission(voucher, profile):
        agent = await VouchersRepo.get_agent(session, voucher.agent_id)
        agent_name = agent.name if agent is not None else f"#{voucher.agent_id}"
        result.commission_posted = await _post_once(
            session,
            reference=voucher_commission_reference(voucher.code),
            category=AGENT_COMMISSION_CATEGORY,
            direction="EXPENSE",
            amount=profile.reseller_fee,
            description=f"Agent commission {agent_name} - Voucher {voucher.code}",
            occurred_at=voucher.first_login_at,
            notes=f"Agent commission for voucher profile {profile.name}",
        )

    if result.income_posted or result.commission_posted:
        logger.info(
            "voucher_ledger_synced",
            voucher_code=voucher.code,
            income_posted=result.income_posted,
            commission_posted=result.commission_posted,
        )
    return result
