from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from ispsync.services.errors import InvoiceGenerationError
from ispsync.workers.tasks import invoice_generation_async


class _Response:
    def __init__(self, payload: Any) -> None:
        self._payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self) -> Any:
        return self._payload


class _Client:
    def __init__(self, calls: list[dict[str, Any]], outcome: Any) -> None:
        self._calls = calls
        self._outcome = outcome

    async def __aenter__(self) -> "_Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        return None

    async def post(self, url: str, json: dict[str, object], headers: dict[str, str]) -> _Response:
        self._calls.append({"url": url, "headers": headers})
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return _Response(self._outcome)


def _install(monkeypatch, *, url: str, outcome: Any = None) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        invoice_generation_async,
        "get_settings",
        lambda: SimpleNamespace(
            invoice_generate_url=url,
            internal_api_token="billing-secret",
            http_timeout_seconds=30.0,
        ),
    )

    def factory(timeout: float) -> _Client:  # noqa: ARG001
        return _Client(calls, outcome)

    monkeypatch.setattr(invoice_generation_async.httpx, "AsyncClient", factory)
    return calls


@pytest.mark.asyncio
async def test_generation_is_skipped_when_not_configured(monkeypatch) -> None:
    calls = _install(monkeypatch, url="")

    summary = await invoice_generation_async.generate_invoices()

    assert summary == {"configured": False, "generated": 0, "skipped": 0}
    assert calls == []
    assert invoice_generation_async.describe_invoice_generation(summary) == "Invoice generation not configured"


@pytest.mark.asyncio
async def test_generation_reports_counts(monkeypatch) -> None:
    calls = _install(
        monkeypatch,
        url="https://billing.local/api/invoices/generate",
        outcome={"success": True, "generated": 12, "skipped": 3},
    )

    summary = await invoice_generation_async.generate_invoices()

    assert summary == {"configured": True, "generated": 12, "skipped": 3}
    assert calls[0]["headers"] == {"X-Internal-Token": "billing-secret"}
    assert invoice_generation_async.describe_invoice_generation(summary) == "Generated 12 invoices, skipped 3"


@pytest.mark.asyncio
async def test_unsuccessful_payload_raises(monkeypatch) -> None:
    _install(monkeypatch, url="https://billing.local/gen", outcome={"success": False, "error": "no active users"})

    with pytest.raises(InvoiceGenerationError, match="no active users"):
        await invoice_generation_async.generate_invoices()


@pytest.mark.asyncio
async def test_transport_error_raises(monkeypatch) -> None:
    _install(monkeypatch, url="https://billing.local/gen", outcome=httpx.ConnectError("refused"))

    with pytest.raises(InvoiceGenerationError, match="request failed"):
        await invoice_generation_async.generate_invoices()
