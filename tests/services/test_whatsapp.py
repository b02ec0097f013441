from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from ispsync.services import whatsapp
from ispsync.services.errors import WhatsAppNotConfiguredError, WhatsAppSendError


class _Response:
    def raise_for_status(self) -> None:
        return None


class _Client:
    def __init__(self, calls: list[dict[str, Any]], *, fail: bool = False) -> None:
        self._calls = calls
        self._fail = fail

    async def __aenter__(self) -> "_Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        return None

    async def post(self, url: str, json: dict[str, object], headers: dict[str, str]) -> _Response:
        self._calls.append({"url": url, "json": json, "headers": headers})
        if self._fail:
            raise httpx.ConnectError("gateway unreachable")
        return _Response()


def _settings(**overrides: object) -> SimpleNamespace:
    base = {
        "whatsapp_api_url": "https://wa.example/send",
        "whatsapp_api_token": "wa-token",
        "whatsapp_timeout_seconds": 15.0,
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def _patch_http_client(monkeypatch, calls: list[dict[str, Any]], *, fail: bool = False) -> None:
    def factory(timeout: float) -> _Client:  # noqa: ARG001
        return _Client(calls, fail=fail)

    monkeypatch.setattr(whatsapp.httpx, "AsyncClient", factory)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("0812-3456-7890", "6281234567890"), ("+62 812 3456", "628123456"), ("8123456", "628123456")],
)
def test_normalize_phone(raw: str, expected: str) -> None:
    assert whatsapp.normalize_phone(raw) == expected


@pytest.mark.asyncio
async def test_send_message_posts_normalized_phone_with_token(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(whatsapp, "get_settings", lambda: _settings())
    _patch_http_client(monkeypatch, calls)

    await whatsapp.send_message("081234567890", "hello")

    assert calls == [
        {
            "url": "https://wa.example/send",
            "json": {"phone": "6281234567890", "message": "hello"},
            "headers": {"Authorization": "Bearer wa-token"},
        }
    ]


@pytest.mark.asyncio
async def test_send_message_requires_gateway_url(monkeypatch) -> None:
    monkeypatch.setattr(whatsapp, "get_settings", lambda: _settings(whatsapp_api_url=""))

    with pytest.raises(WhatsAppNotConfiguredError):
        await whatsapp.send_message("0812", "hello")


@pytest.mark.asyncio
async def test_send_message_wraps_transport_errors(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(whatsapp, "get_settings", lambda: _settings())
    _patch_http_client(monkeypatch, calls, fail=True)

    with pytest.raises(WhatsAppSendError):
        await whatsapp.send_message("0812", "hello")
