from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def business_zone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def local_naive_to_utc(value: datetime, *, tz_name: str) -> datetime:
    """Interprets a tz-less AAA timestamp as business-local time and returns it in UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc)
    return value.replace(tzinfo=business_zone(tz_name)).astimezone(timezone.utc)


def business_local_now(now_utc: datetime, *, tz_name: str) -> datetime:
    return now_utc.astimezone(business_zone(tz_name))


def business_local_date(now_utc: datetime, *, tz_name: str) -> date:
    return business_local_now(now_utc, tz_name=tz_name).date()


def business_day_start_utc(local_date: date, *, tz_name: str) -> datetime:
    local_start = datetime.combine(local_date, time.min, tzinfo=business_zone(tz_name))
    return local_start.astimezone(timezone.utc)


def business_day_bounds_utc(local_date: date, *, tz_name: str) -> tuple[datetime, datetime]:
    return (
        business_day_start_utc(local_date, tz_name=tz_name),
        business_day_start_utc(local_date + timedelta(days=1), tz_name=tz_name),
    )
