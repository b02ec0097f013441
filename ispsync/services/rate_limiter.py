from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    messages_per_batch: int = 5
    batch_delay_seconds: float = 10.0
    message_delay_seconds: float = 0.5
    # None leaves timing to send_fn itself.
    item_timeout_seconds: float | None = 30.0


@dataclass(frozen=True, slots=True)
class SendProgress:
    current: int
    total: int
    batch: int
    total_batches: int


@dataclass(slots=True)
class SendOutcome(Generic[T]):
    item: T
    success: bool
    error: str | None = None


@dataclass(slots=True)
class RateLimitResult(Generic[T]):
    total: int
    sent: int = 0
    failed: int = 0
    results: list[SendOutcome[T]] = field(default_factory=list)


async def send_with_rate_limit(
    items: Sequence[T],
    send_fn: Callable[[T], Awaitable[object]],
    config: RateLimitConfig | None = None,
    on_progress: Callable[[SendProgress], None] | None = None,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> RateLimitResult[T]:
    """Runs ``send_fn`` over ``items`` in fixed-size batches with pauses between them.

    A failing or timed-out item is recorded and the remaining items still go out.
    """
    resolved = config or RateLimitConfig()
    batch_size = max(1, resolved.messages_per_batch)
    total_batches = math.ceil(len(items) / batch_size)
    result: RateLimitResult[T] = RateLimitResult(total=len(items))

    for batch_index in range(total_batches):
        start = batch_index * batch_size
        batch = items[start : start + batch_size]

        for position, item in enumerate(batch):
            current = start + position + 1
            try:
                await asyncio.wait_for(send_fn(item), timeout=resolved.item_timeout_seconds)
            except Exception as exc:
                result.failed += 1
                result.results.append(SendOutcome(item=item, success=False, error=str(exc) or type(exc).__name__))
                logger.warning(
                    "rate_limited_send_failed",
                    current=current,
                    total=len(items),
                    error=str(exc) or type(exc).__name__,
                )
                continue

            result.sent += 1
            result.results.append(SendOutcome(item=item, success=True))
            if on_progress is not None:
                on_progress(
                    SendProgress(
                        current=current,
                        total=len(items),
                        batch=batch_index + 1,
                        total_batches=total_batches,
                    )
                )
            if position < len(batch) - 1:
                await sleep(resolved.message_delay_seconds)

        if batch_index < total_batches - 1:
            await sleep(resolved.batch_delay_seconds)

    logger.info(
        "rate_limited_send_finished",
        total=result.total,
        sent=result.sent,
        failed=result.failed,
    )
    return result


def estimate_send_time(message_count: int, config: RateLimitConfig | None = None) -> int:
    if message_count <= 0:
        return 0
    resolved = config or RateLimitConfig()
    total_batches = math.ceil(message_count / max(1, resolved.messages_per_batch))
    total_seconds = (total_batches - 1) * resolved.batch_delay_seconds + (
        message_count - 1
    ) * resolved.message_delay_seconds
    return math.ceil(total_seconds)


def format_estimated_time(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    minutes, remaining_seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s" if remaining_seconds else f"{minutes}m"
    hours, remaining_minutes = divmod(minutes, 60)
    return f"{hours}h {remaining_minutes}m" if remaining_minutes else f"{hours}h"
