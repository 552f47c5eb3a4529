import calendar
from datetime import datetime, timedelta

from ..config import POOL_FREQUENCIES


def is_valid_frequency(frequency: str | None) -> bool:
    return frequency in POOL_FREQUENCIES


def _add_month(value: datetime) -> datetime:
    year = value.year + (1 if value.month == 12 else 0)
    month = 1 if value.month == 12 else value.month + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_scheduled_date(frequency: str, from_: datetime) -> datetime:
    if frequency == "biweekly":
        return from_ + timedelta(days=14)
    if frequency == "monthly":
        return _add_month(from_)
    # weekly, and anything unrecognized
    return from_ + timedelta(days=7)


def new_round_id(from_: datetime) -> str:
    iso_year, iso_week, _ = from_.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"
