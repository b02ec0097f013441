from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from ispsync.core.clock import business_day_start_utc, business_local_date
from ispsync.core.config import get_settings
from ispsync.db.repo.radius_repo import STATIC_IP_ATTRIBUTE, RadiusRepo
from ispsync.db.repo.subscribers_repo import SubscribersRepo
from ispsync.db.session import SessionLocal
from ispsync.services.coa import ensure_disconnected
from ispsync.services.errors import CoADisconnectError

logger = structlog.get_logger("ispsync.workers.tasks.auto_isolir")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def _move_to_isolir(user_id: int, *, group_name: str, group_priority: int) -> str | None:
    """Applies the isolated status and all RADIUS changes in one transaction.

    Returns the RADIUS username, or None when the subscriber is no longer active.
    """
    async with SessionLocal.begin() as session:
        user = await SubscribersRepo.get_active_for_update(session, user_id)
        if user is None:
            return None
        username = user.username
        user.status = "isolated"
        await RadiusRepo.upsert_password(session, username=username, password=user.password)
        await RadiusRepo.replace_group(
            session,
            username=username,
            groupname=group_name,
            priority=group_priority,
        )
        await RadiusRepo.delete_reply_attribute(
            session,
            username=username,
            attribute=STATIC_IP_ATTRIBUTE,
        )
    return username


async def isolate_expired_subscribers() -> dict[str, Any]:
    settings = get_settings()
    now_utc = _utc_now()
    today_local = business_local_date(now_utc, tz_name=settings.business_timezone)
    # Date-only semantics: a subscriber expiring today stays active until the day rolls over.
    cutoff_utc = business_day_start_utc(today_local, tz_name=settings.business_timezone)

    async with SessionLocal() as session:
        user_ids = await SubscribersRepo.list_expired_active_ids(session, before_utc=cutoff_utc)

    summary: dict[str, Any] = {
        "candidates": len(user_ids),
        "isolated": 0,
        "disconnect_failed": 0,
        "errors": [],
        "all_failed": False,
    }
    if not user_ids:
        logger.info("auto_isolir_no_expired_users", today_local=today_local.isoformat())
        return summary

    for user_id in user_ids:
        try:
            username = await _move_to_isolir(
                user_id,
                group_name=settings.isolir_group_name,
                group_priority=settings.isolir_group_priority,
            )
        except Exception as exc:
            summary["errors"].append(f"user#{user_id}: {exc}")
            logger.exception("auto_isolir_user_failed", user_id=user_id)
            continue

        if username is None:
            continue

        try:
            await ensure_disconnected(username)
        except CoADisconnectError as exc:
            summary["disconnect_failed"] += 1
            summary["errors"].append(f"disconnect failed: {exc}")
            logger.warning("auto_isolir_disconnect_failed", username=username, detail=str(exc))
            continue
        except Exception as exc:
            summary["disconnect_failed"] += 1
            summary["errors"].append(f"{username}: disconnect failed: {exc}")
            logger.exception("auto_isolir_disconnect_failed", username=username)
            continue

        summary["isolated"] += 1
        logger.info("auto_isolir_user_isolated", username=username)

    summary["all_failed"] = summary["isolated"] == 0 and len(summary["errors"]) == len(user_ids)
    logger.info(
        "auto_isolir_finished",
        candidates=summary["candidates"],
        isolated=summary["isolated"],
        disconnect_failed=summary["disconnect_failed"],
        error_count=len(summary["errors"]),
    )
    return summary


def describe_auto_isolir(summary: dict[str, Any]) -> str:
    if not summary.get("candidates"):
        return "No expired users found"
    return f"Isolated {summary.get('isolated', 0)}/{summary.get('candidates', 0)} expired users"
