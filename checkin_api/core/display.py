from datetime import datetime, timezone
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from checkin_api.core.ranges import Bucket

Instant = Union[str, datetime]


def _localize(value: Instant, tz_name: str) -> datetime:
    if isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        dt = value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(tz_name))


def _raw(value: Instant) -> str:
    return value if isinstance(value, str) else value.isoformat()


def format_instant(value: Instant, tz_name: str) -> str:
    try:
        local = _localize(value, tz_name)
    except (ValueError, TypeError, OverflowError, ZoneInfoNotFoundError):
        return _raw(value)
    return local.strftime("%d/%m/%Y, %H:%M:%S")


def format_bucket_label(value: Instant, bucket: Bucket, tz_name: str) -> str:
    try:
        local = _localize(value, tz_name)
    except (ValueError, TypeError, OverflowError, ZoneInfoNotFoundError):
        return _raw(value)

    if bucket is Bucket.DAY:
        return local.strftime("%d/%m/%Y")

    hour = local.hour % 12 or 12
    suffix = "am" if local.hour < 12 else "pm"
    return f"{local.strftime('%d/%m')}, {hour} {suffix}"
