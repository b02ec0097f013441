from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from ispsync.core.config import get_settings
from ispsync.db.repo.radius_repo import RadiusRepo
from ispsync.db.session import SessionLocal
from ispsync.services.errors import CoADisconnectError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DisconnectResult:
    success: bool
    detail: str


def build_disconnect_attributes(
    *,
    username: str,
    session_id: str | None = None,
    framed_ip: str | None = None,
) -> str:
    lines = [f'User-Name = "{username}"']
    if framed_ip:
        lines.append(f"Framed-IP-Address = {framed_ip}")
    if session_id:
        lines.append(f'Acct-Session-Id = "{session_id}"')
    return "\n".join(lines) + "\n"


async def send_disconnect(
    *,
    username: str,
    nas_ip: str,
    nas_secret: str,
    session_id: str | None = None,
    framed_ip: str | None = None,
) -> DisconnectResult:
    """Sends a Disconnect-Request to the NAS through radclient."""
    settings = get_settings()
    attributes = build_disconnect_attributes(
        username=username,
        session_id=session_id,
        framed_ip=framed_ip,
    )
    try:
        process = await asyncio.create_subprocess_exec(
            settings.radclient_path,
            "-x",
            f"{nas_ip}:{settings.coa_port}",
            "disconnect",
            nas_secret,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.error("coa_radclient_unavailable", username=username, error=str(exc))
        return DisconnectResult(success=False, detail=str(exc))

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(attributes.encode("utf-8")),
            timeout=settings.coa_timeout_seconds,
        )
    except TimeoutError:
        process.kill()
        await process.wait()
        logger.warning(
            "coa_disconnect_timeout",
            username=username,
            nas_ip=nas_ip,
            timeout_seconds=settings.coa_timeout_seconds,
        )
        return DisconnectResult(success=False, detail="timeout")

    if process.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip() or f"exit code {process.returncode}"
        logger.warning("coa_disconnect_failed", username=username, nas_ip=nas_ip, detail=detail)
        return DisconnectResult(success=False, detail=detail)

    logger.info("coa_disconnect_sent", username=username, nas_ip=nas_ip)
    return DisconnectResult(success=True, detail=stdout.decode("utf-8", errors="replace").strip())


async def disconnect_user(username: str) -> DisconnectResult:
    async with SessionLocal() as session:
        open_session = await RadiusRepo.get_latest_open_session(session, username=username)
        if open_session is None:
            return DisconnectResult(success=True, detail="no active session")
        nas = await RadiusRepo.get_nas(session, nasname=open_session.nasipaddress)

    if nas is None:
        logger.warning("coa_nas_not_configured", username=username, nas_ip=open_session.nasipaddress)
        return DisconnectResult(success=False, detail="nas not configured")

    return await send_disconnect(
        username=open_session.username,
        nas_ip=open_session.nasipaddress,
        nas_secret=nas.secret,
        session_id=open_session.acctsessionid,
        framed_ip=open_session.framedipaddress,
    )


async def ensure_disconnected(username: str) -> DisconnectResult:
    result = await disconnect_user(username)
    if not result.success:
        raise CoADisconnectError(f"{username}: {result.detail}")
    return result


async def disconnect_expired_sessions() -> dict[str, int]:
    async with SessionLocal() as session:
        open_sessions = await RadiusRepo.list_open_sessions_for_expired_vouchers(session)
        nas_secrets: dict[str, str | None] = {}
        for open_session in open_sessions:
            if open_session.nasipaddress not in nas_secrets:
                nas = await RadiusRepo.get_nas(session, nasname=open_session.nasipaddress)
                nas_secrets[open_session.nasipaddress] = nas.secret if nas is not None else None

    summary = {"checked": len(open_sessions), "disconnected": 0, "failed": 0}
    for open_session in open_sessions:
        secret = nas_secrets.get(open_session.nasipaddress)
        if secret is None:
            logger.warning(
                "coa_nas_not_configured",
                username=open_session.username,
                nas_ip=open_session.nasipaddress,
            )
            summary["failed"] += 1
            continue
        result = await send_disconnect(
            username=open_session.username,
            nas_ip=open_session.nasipaddress,
            nas_secret=secret,
            session_id=open_session.acctsessionid,
            framed_ip=open_session.framedipaddress,
        )
        if result.success:
            summary["disconnected"] += 1
        else:
            summary["failed"] += 1

    if summary["checked"]:
        logger.info("coa_expired_sessions_processed", **summary)
    return summary
