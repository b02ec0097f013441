from __future__ import annotations

from typing import Any

import httpx
import structlog

from ispsync.core.config import get_settings
from ispsync.services.errors import InvoiceGenerationError

logger = structlog.get_logger("ispsync.workers.tasks.invoice_generation")


async def generate_invoices() -> dict[str, Any]:
    settings = get_settings()
    url = settings.invoice_generate_url.strip()
    if not url:
        logger.info("invoice_generation_not_configured")
        return {"configured": False, "generated": 0, "skipped": 0}

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        try:
            response = await client.post(
                url,
                json={},
                headers={"X-Internal-Token": settings.internal_api_token},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise InvoiceGenerationError(f"invoice generation request failed: {exc}") from exc

    payload = response.json()
    if not isinstance(payload, dict) or not payload.get("success"):
        error = payload.get("error") if isinstance(payload, dict) else None
        raise InvoiceGenerationError(error or "invoice generation failed")

    result = {
        "configured": True,
        "generated": int(payload.get("generated") or 0),
        "skipped": int(payload.get("skipped") or 0),
    }
    logger.info("invoice_generation_finished", **result)
    return result


def describe_invoice_generation(summary: dict[str, Any]) -> str:
    if not summary.get("configured"):
        return "Invoice generation not configured"
    return f"Generated {summary.get('generated', 0)} invoices, skipped {summary.get('skipped', 0)}"
