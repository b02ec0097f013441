from __future__ import annotations

import re

import httpx
import structlog

from ispsync.core.config import get_settings
from ispsync.services.errors import WhatsAppNotConfiguredError, WhatsAppSendError

logger = structlog.get_logger(__name__)

NON_DIGIT_RE = re.compile(r"[^0-9]")
DEFAULT_COUNTRY_CODE = "62"


def normalize_phone(phone: str, *, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    digits = NON_DIGIT_RE.sub("", phone)
    if digits.startswith("0"):
        digits = country_code + digits[1:]
    if not digits.startswith(country_code):
        digits = country_code + digits
    return digits


async def send_message(phone: str, message: str) -> None:
    """Posts one message to the configured WhatsApp gateway; raises on any delivery failure."""
    settings = get_settings()
    api_url = settings.whatsapp_api_url.strip()
    if not api_url:
        raise WhatsAppNotConfiguredError("WHATSAPP_API_URL is not set")

    headers = {}
    if settings.whatsapp_api_token:
        headers["Authorization"] = f"Bearer {settings.whatsapp_api_token}"
    target = normalize_phone(phone)

    async with httpx.AsyncClient(timeout=settings.whatsapp_timeout_seconds) as client:
        try:
            response = await client.post(
                api_url,
                json={"phone": target, "message": message},
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("whatsapp_send_failed", phone=target, error=str(exc))
            raise WhatsAppSendError(str(exc)) from exc

    logger.info("whatsapp_message_sent", phone=target)
