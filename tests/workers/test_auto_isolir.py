from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from ispsync.services.errors import CoADisconnectError
from ispsync.workers.tasks import auto_isolir_async
from tests.fakes import FakeSessionLocal, settings

UTC = timezone.utc
# 09:00 on 2024-03-05 in Jakarta.
NOW = datetime(2024, 3, 5, 2, 0, tzinfo=UTC)


class _FakeSubscribersRepo:
    def __init__(self, users: list[SimpleNamespace]) -> None:
        self.users = {user.id: user for user in users}
        self.cutoffs: list[datetime] = []

    async def list_expired_active_ids(self, session, *, before_utc: datetime) -> list[int]:  # noqa: ARG002
        self.cutoffs.append(before_utc)
        return [
            user.id
            for user in self.users.values()
            if user.status == "active" and user.expired_at is not None and user.expired_at < before_utc
        ]

    async def get_active_for_update(self, session, user_id: int) -> SimpleNamespace | None:  # noqa: ARG002
        user = self.users.get(user_id)
        return user if user is not None and user.status == "active" else None


class _FakeRadiusRepo:
    def __init__(self) -> None:
        self.passwords: dict[str, str] = {}
        self.groups: dict[str, tuple[str, int]] = {}
        self.deleted_replies: list[tuple[str, str]] = []

    async def upsert_password(self, session, *, username: str, password: str) -> None:  # noqa: ARG002
        self.passwords[username] = password

    async def replace_group(self, session, *, username: str, groupname: str, priority: int) -> None:  # noqa: ARG002
        self.groups[username] = (groupname, priority)

    async def delete_reply_attribute(self, session, *, username: str, attribute: str) -> int:  # noqa: ARG002
        self.deleted_replies.append((username, attribute))
        return 1


def _user(user_id: int, username: str, expired_at: datetime) -> SimpleNamespace:
    return SimpleNamespace(
        id=user_id,
        username=username,
        password=f"secret{user_id}",
        status="active",
        expired_at=expired_at,
    )


def _install(monkeypatch, users: list[SimpleNamespace], disconnect) -> tuple[_FakeSubscribersRepo, _FakeRadiusRepo]:
    subscribers = _FakeSubscribersRepo(users)
    radius = _FakeRadiusRepo()
    monkeypatch.setattr(auto_isolir_async, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(auto_isolir_async, "SubscribersRepo", subscribers)
    monkeypatch.setattr(auto_isolir_async, "RadiusRepo", radius)
    monkeypatch.setattr(auto_isolir_async, "ensure_disconnected", disconnect)
    monkeypatch.setattr(auto_isolir_async, "get_settings", lambda: settings())
    monkeypatch.setattr(auto_isolir_async, "_utc_now", lambda: NOW)
    return subscribers, radius


@pytest.mark.asyncio
async def test_expired_subscriber_is_moved_to_isolir_and_disconnected(monkeypatch) -> None:
    disconnected: list[str] = []

    async def fake_disconnect(username: str) -> None:
        disconnected.append(username)

    expired = _user(42, "user42", datetime(2024, 3, 4, 10, 0, tzinfo=UTC))
    expiring_today = _user(43, "user43", datetime(2024, 3, 5, 1, 0, tzinfo=UTC))
    subscribers, radius = _install(monkeypatch, [expired, expiring_today], fake_disconnect)

    summary = await auto_isolir_async.isolate_expired_subscribers()

    assert subscribers.cutoffs == [datetime(2024, 3, 4, 17, 0, tzinfo=UTC)]
    assert expired.status == "isolated"
    assert expiring_today.status == "active"
    assert radius.passwords == {"user42": "secret42"}
    assert radius.groups == {"user42": ("isolir", 1)}
    assert radius.deleted_replies == [("user42", "Framed-IP-Address")]
    assert disconnected == ["user42"]
    assert summary == {
        "candidates": 1,
        "isolated": 1,
        "disconnect_failed": 0,
        "errors": [],
        "all_failed": False,
    }
    assert auto_isolir_async.describe_auto_isolir(summary) == "Isolated 1/1 expired users"


@pytest.mark.asyncio
async def test_disconnect_failure_keeps_isolation_and_fails_run(monkeypatch) -> None:
    async def failing_disconnect(username: str) -> None:
        raise CoADisconnectError(f"{username}: timeout")

    user = _user(42, "user42", datetime(2024, 3, 4, 10, 0, tzinfo=UTC))
    _, radius = _install(monkeypatch, [user], failing_disconnect)

    summary = await auto_isolir_async.isolate_expired_subscribers()

    assert user.status == "isolated"
    assert radius.groups == {"user42": ("isolir", 1)}
    assert summary["isolated"] == 0
    assert summary["disconnect_failed"] == 1
    assert summary["errors"] == ["disconnect failed: user42: timeout"]
    assert summary["all_failed"] is True


@pytest.mark.asyncio
async def test_no_expired_subscribers(monkeypatch) -> None:
    async def fake_disconnect(username: str) -> None:  # noqa: ARG001
        raise AssertionError("must not disconnect")

    _install(monkeypatch, [], fake_disconnect)

    summary = await auto_isolir_async.isolate_expired_subscribers()

    assert summary["candidates"] == 0
    assert auto_isolir_async.describe_auto_isolir(summary) == "No expired users found"


@pytest.mark.asyncio
async def test_second_run_selects_nobody_after_isolation(monkeypatch) -> None:
    disconnected: list[str] = []

    async def fake_disconnect(username: str) -> None:
        disconnected.append(username)

    user = _user(42, "user42", datetime(2024, 3, 4, 10, 0, tzinfo=UTC))
    _, radius = _install(monkeypatch, [user], fake_disconnect)

    first = await auto_isolir_async.isolate_expired_subscribers()
    second = await auto_isolir_async.isolate_expired_subscribers()

    assert first["isolated"] == 1
    assert second["candidates"] == 0
    assert second["isolated"] == 0
    assert disconnected == ["user42"]
    assert radius.deleted_replies == [("user42", "Framed-IP-Address")]


@pytest.mark.asyncio
async def test_one_subscriber_failing_does_not_abort_the_batch(monkeypatch) -> None:
    disconnected: list[str] = []

    async def fake_disconnect(username: str) -> None:
        disconnected.append(username)

    broken = _user(41, "user41", datetime(2024, 3, 3, 10, 0, tzinfo=UTC))
    healthy = _user(42, "user42", datetime(2024, 3, 4, 10, 0, tzinfo=UTC))
    _, radius = _install(monkeypatch, [broken, healthy], fake_disconnect)
    original_replace_group = radius.replace_group

    async def replace_group(session, *, username: str, groupname: str, priority: int) -> None:
        if username == "user41":
            raise RuntimeError("radusergroup locked")
        await original_replace_group(session, username=username, groupname=groupname, priority=priority)

    radius.replace_group = replace_group  # type: ignore[method-assign]

    summary = await auto_isolir_async.isolate_expired_subscribers()

    assert summary["candidates"] == 2
    assert summary["isolated"] == 1
    assert summary["errors"] == ["user#41: radusergroup locked"]
    assert summary["all_failed"] is False
    assert healthy.status == "isolated"
    assert radius.groups == {"user42": ("isolir", 1)}
    assert disconnected == ["user42"]
