from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from ispsync.services.errors import UnsupportedValidityUnitError

FIXED_VALIDITY_UNITS = {
    "MINUTES": timedelta(minutes=1),
    "HOURS": timedelta(hours=1),
    "DAYS": timedelta(days=1),
}
CALENDAR_VALIDITY_UNITS = {"MONTHS"}


def add_months(value: datetime, months: int) -> datetime:
    """Shifts by calendar months, clamping the day to the target month's length (Jan 31 + 1 -> Feb 28/29)."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_expires_at(
    first_login_at: datetime,
    *,
    validity_value: int,
    validity_unit: str,
    tz_name: str,
) -> datetime:
    if first_login_at.tzinfo is None:
        raise ValueError("first_login_at must be timezone-aware")

    unit = validity_unit.upper()
    fixed_step = FIXED_VALIDITY_UNITS.get(unit)
    if fixed_step is not None:
        return first_login_at + fixed_step * validity_value

    if unit in CALENDAR_VALIDITY_UNITS:
        # Month boundaries follow the business calendar, not UTC.
        local_start = first_login_at.astimezone(ZoneInfo(tz_name))
        return add_months(local_start, validity_value).astimezone(timezone.utc)

    raise UnsupportedValidityUnitError(validity_unit)
