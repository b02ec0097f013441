from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from ispsync.core.clock import local_naive_to_utc
from ispsync.core.config import get_settings
from ispsync.db.repo.radius_repo import RadiusRepo
from ispsync.db.repo.vouchers_repo import VouchersRepo
from ispsync.db.session import SessionLocal
from ispsync.services.coa import disconnect_expired_sessions
from ispsync.services.ledger_sync import sync_voucher_ledger
from ispsync.services.validity import compute_expires_at

logger = structlog.get_logger("ispsync.workers.tasks.voucher_sync")

OUTCOME_ACTIVATED = "activated"
OUTCOME_LEDGER_FAILED = "ledger_failed"
OUTCOME_PENDING = "pending"
OUTCOME_SKIPPED = "skipped"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def _activate_waiting_voucher(voucher_id: int, *, tz_name: str) -> str:
    async with SessionLocal.begin() as session:
        voucher = await VouchersRepo.get_waiting_for_update(session, voucher_id)
        if voucher is None:
            return OUTCOME_SKIPPED

        first_start_local = await RadiusRepo.get_first_session_start(session, username=voucher.code)
        if first_start_local is None:
            return OUTCOME_PENDING

        profile = await VouchersRepo.get_profile(session, voucher.profile_id)
        if profile is None:
            raise LookupError(f"hotspot profile {voucher.profile_id} not found")

        first_login_at = local_naive_to_utc(first_start_local, tz_name=tz_name)
        expires_at = compute_expires_at(
            first_login_at,
            validity_value=profile.validity_value,
            validity_unit=profile.validity_unit,
            tz_name=tz_name,
        )
        voucher_code = voucher.code
        voucher.status = "ACTIVE"
        voucher.first_login_at = first_login_at
        voucher.expires_at = expires_at
        await session.flush()
        logger.info(
            "voucher_activated",
            voucher_code=voucher_code,
            first_login_at=first_login_at.isoformat(),
            expires_at=expires_at.isoformat(),
        )

        try:
            async with session.begin_nested():
                await sync_voucher_ledger(session, voucher=voucher, profile=profile)
        except Exception:
            logger.exception("voucher_ledger_sync_failed", voucher_code=voucher_code)
            return OUTCOME_LEDGER_FAILED

    return OUTCOME_ACTIVATED


async def _expire_voucher(code: str, *, now_utc: datetime) -> bool:
    async with SessionLocal.begin() as session:
        await RadiusRepo.purge_credentials(session, username=code)
        expired = await VouchersRepo.mark_expired(session, codes=[code], now_utc=now_utc)
    return expired > 0


async def _expire_due_vouchers(summary: dict[str, Any]) -> None:
    now_utc = _utc_now()
    async with SessionLocal() as session:
        codes = await VouchersRepo.find_expired_active_vouchers(session, now_utc=now_utc)

    for code in codes:
        try:
            if await _expire_voucher(code, now_utc=now_utc):
                summary["expired"] += 1
                logger.info("voucher_expired", voucher_code=code)
        except Exception:
            summary["errors"].append(f"{code}: expiry failed")
            logger.exception("voucher_expiry_failed", voucher_code=code)


async def reconcile_vouchers() -> dict[str, Any]:
    """WAITING -> ACTIVE from first accounting record, then ACTIVE -> EXPIRED past expiry."""
    settings = get_settings()
    summary: dict[str, Any] = {
        "examined": 0,
        "synced": 0,
        "pending": 0,
        "ledger_failures": 0,
        "expired": 0,
        "disconnected": 0,
        "errors": [],
    }

    async with SessionLocal() as session:
        waiting_ids = await VouchersRepo.list_waiting_ids(session)
    summary["examined"] = len(waiting_ids)

    for voucher_id in waiting_ids:
        try:
            outcome = await _activate_waiting_voucher(voucher_id, tz_name=settings.business_timezone)
        except Exception as exc:
            summary["errors"].append(f"voucher#{voucher_id}: {exc}")
            logger.exception("voucher_activation_failed", voucher_id=voucher_id)
            continue

        if outcome in (OUTCOME_ACTIVATED, OUTCOME_LEDGER_FAILED):
            summary["synced"] += 1
        if outcome == OUTCOME_LEDGER_FAILED:
            summary["ledger_failures"] += 1
        elif outcome == OUTCOME_PENDING:
            summary["pending"] += 1

    # Expiry runs only after every activation of this tick had its ledger attempt.
    await _expire_due_vouchers(summary)

    try:
        coa_summary = await disconnect_expired_sessions()
        summary["disconnected"] = int(coa_summary.get("disconnected", 0))
    except Exception:
        logger.exception("voucher_expired_sessions_disconnect_failed")

    logger.info(
        "voucher_sync_finished",
        **{key: value for key, value in summary.items() if key != "errors"},
        error_count=len(summary["errors"]),
    )
    return summary


def describe_voucher_sync(summary: dict[str, Any]) -> str:
    return (
        f"Synced {summary.get('synced', 0)} vouchers, expired {summary.get('expired', 0)}, "
        f"disconnected {summary.get('disconnected', 0)} sessions"
    )
