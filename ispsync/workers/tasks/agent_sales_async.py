from __future__ import annotations

from typing import Any

import structlog

from ispsync.db.repo.agent_sales_repo import AgentSalesRepo
from ispsync.db.repo.vouchers_repo import VouchersRepo
from ispsync.db.session import SessionLocal

logger = structlog.get_logger("ispsync.workers.tasks.agent_sales")

AGENT_SALES_BATCH_SIZE = 500


async def record_agent_sales(*, batch_size: int = AGENT_SALES_BATCH_SIZE) -> dict[str, Any]:
    async with SessionLocal() as session:
        candidates = await VouchersRepo.list_agent_sale_candidates(session, limit=max(1, int(batch_size)))

    summary: dict[str, Any] = {"examined": len(candidates), "recorded": 0, "errors": []}
    for voucher, profile in candidates:
        try:
            async with SessionLocal.begin() as session:
                created = await AgentSalesRepo.create_once(
                    session,
                    agent_id=voucher.agent_id,
                    voucher_code=voucher.code,
                    profile_name=profile.name,
                    amount=profile.reseller_fee,
                    created_at=voucher.first_login_at,
                )
        except Exception:
            summary["errors"].append(f"{voucher.code}: agent sale not recorded")
            logger.exception("agent_sale_record_failed", voucher_code=voucher.code)
            continue

        if created:
            summary["recorded"] += 1

    logger.info(
        "agent_sales_recording_finished",
        examined=summary["examined"],
        recorded=summary["recorded"],
        error_count=len(summary["errors"]),
    )
    return summary


def describe_agent_sales(summary: dict[str, Any]) -> str:
    return f"Recorded {summary.get('recorded', 0)} agent sales"
