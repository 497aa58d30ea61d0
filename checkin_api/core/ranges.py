import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from checkin_api.core.errors import InvalidBucket, InvalidRange

WINDOW_PATTERN = re.compile(r"(\d+)(m|h|d)", re.IGNORECASE | re.ASCII)
WINDOW_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}
DEFAULT_WINDOW = timedelta(hours=24)


class Bucket(str, Enum):
    HOUR = "hour"
    DAY = "day"


def to_utc_iso(dt: datetime) -> str:
    """Fixed-width UTC rendering shared by stored events and range bounds."""
    dt = dt.astimezone(timezone.utc)
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond // 1000:03d}Z"
    )


def _to_millis(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(microsecond=dt.microsecond // 1000 * 1000)


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidRange("Invalid from/to")

    @property
    def from_utc(self) -> str:
        return to_utc_iso(self.start)

    @property
    def to_utc(self) -> str:
        return to_utc_iso(self.end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return _to_millis(dt)
    except (ValueError, OverflowError):
        return None


def parse_window(value: Optional[str]) -> Optional[timedelta]:
    if not value:
        return None

    match = WINDOW_PATTERN.fullmatch(value.strip())
    if not match:
        return None

    try:
        amount = int(match.group(1))
    except ValueError:
        # Digit runs past the int conversion limit.
        return None
    if amount <= 0:
        return None

    try:
        return amount * WINDOW_UNITS[match.group(2).lower()]
    except OverflowError:
        return None


def resolve_range(
        window: Optional[str] = None,
        from_: Optional[str] = None,
        to: Optional[str] = None,
        now: Optional[datetime] = None
) -> TimeRange:
    """Resolve query parameters into an absolute UTC range.

    A usable ``window`` wins over ``from``/``to``; an unusable one is ignored.
    ``from`` and ``to`` only count when both are given, and then must parse
    and be strictly ordered. With nothing usable the last 24 hours are used.
    """
    now = _to_millis(now or datetime.now(timezone.utc))

    duration = parse_window(window)
    if duration is not None:
        try:
            return TimeRange(now - duration, now)
        except OverflowError:
            pass

    if from_ and to:
        start = parse_timestamp(from_)
        end = parse_timestamp(to)
        if start is None or end is None:
            raise InvalidRange("Invalid from/to")
        return TimeRange(start, end)

    return TimeRange(now - DEFAULT_WINDOW, now)


def parse_bucket(value: Optional[str]) -> Bucket:
    try:
        return Bucket((value or Bucket.HOUR.value).lower())
    except ValueError:
        raise InvalidBucket("bucket must be hour or day")


def parse_bucket_key(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
    except ValueError:
        return None
