from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import String, func, insert, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession

from checkin_api.core.ranges import Bucket, TimeRange, to_utc_iso
from checkin_api.db.database import CheckinEvent, Quote

# Stored timestamps are fixed-width ISO strings, so a bucket key is a prefix
# of the timestamp plus a constant suffix. Both are inlined so GROUP BY repeats
# the selected expression exactly.
BUCKET_PREFIXES = {
    Bucket.HOUR: (13, ":00:00Z"),
    Bucket.DAY: (10, "T00:00:00Z"),
}


def bucket_expression(bucket: Bucket):
    length, suffix = BUCKET_PREFIXES[bucket]
    prefix = func.substr(
        CheckinEvent.created_at_utc, literal_column("1"), literal_column(str(length)), type_=String
    )
    return prefix.concat(literal_column(f"'{suffix}'", String))


def _in_range(statement, time_range: TimeRange):
    return statement.where(
        CheckinEvent.created_at_utc >= time_range.from_utc,
        CheckinEvent.created_at_utc <= time_range.to_utc
    )


async def insert_checkin(session: AsyncSession, name: str, created_at: Optional[datetime] = None) -> CheckinEvent:
    event = CheckinEvent(
        name=name,
        created_at_utc=to_utc_iso(created_at or datetime.now(timezone.utc))
    )
    session.add(event)
    await session.commit()
    return event


async def random_quote(session: AsyncSession) -> Optional[str]:
    result = await session.execute(select(Quote.text).order_by(func.random()).limit(1))
    return result.scalar()


async def insert_quotes(session: AsyncSession, texts: Sequence[str]) -> int:
    existing = await session.execute(select(Quote.text).where(Quote.text.in_(texts)))
    known = set(existing.scalars())
    fresh = [text for text in dict.fromkeys(texts) if text not in known]

    if fresh:
        await session.execute(insert(Quote), [{"text": text} for text in fresh])
        await session.commit()

    return len(fresh)


async def count_events(session: AsyncSession, time_range: Optional[TimeRange] = None) -> int:
    statement = select(func.count()).select_from(CheckinEvent)
    if time_range is not None:
        statement = _in_range(statement, time_range)
    result = await session.execute(statement)
    return result.scalar() or 0


async def count_by_name(session: AsyncSession, time_range: Optional[TimeRange] = None) -> List[dict]:
    count = func.count().label("count")
    statement = select(CheckinEvent.name, count).group_by(CheckinEvent.name)
    if time_range is not None:
        statement = _in_range(statement, time_range)
    statement = statement.order_by(count.desc(), CheckinEvent.name.asc())

    result = await session.execute(statement)
    return [dict(row) for row in result.mappings()]


async def recent_events(session: AsyncSession, time_range: TimeRange, limit: int = 50) -> List[dict]:
    statement = _in_range(
        select(CheckinEvent.name, CheckinEvent.created_at_utc), time_range
    ).order_by(CheckinEvent.id.desc()).limit(limit)

    result = await session.execute(statement)
    return [dict(row) for row in result.mappings()]


async def bucket_counts(session: AsyncSession, time_range: TimeRange, bucket: Bucket) -> List[dict]:
    bucket_utc = bucket_expression(bucket).label("bucket_utc")
    statement = _in_range(
        select(bucket_utc, func.count().label("count")), time_range
    ).group_by(bucket_utc).order_by(bucket_utc.asc())

    result = await session.execute(statement)
    return [dict(row) for row in result.mappings()]


async def top_names(session: AsyncSession, time_range: TimeRange, limit: int = 5) -> List[str]:
    count = func.count().label("count")
    statement = _in_range(
        select(CheckinEvent.name, count), time_range
    ).group_by(CheckinEvent.name).order_by(count.desc()).limit(limit)

    result = await session.execute(statement)
    return [row.name for row in result]


async def bucket_counts_by_name(
        session: AsyncSession,
        time_range: TimeRange,
        bucket: Bucket,
        names: Sequence[str]
) -> List[dict]:
    if not names:
        return []

    bucket_utc = bucket_expression(bucket).label("bucket_utc")
    statement = _in_range(
        select(CheckinEvent.name, bucket_utc, func.count().label("count")), time_range
    ).where(
        CheckinEvent.name.in_(list(names))
    ).group_by(CheckinEvent.name, bucket_utc).order_by(bucket_utc.asc(), CheckinEvent.name.asc())

    result = await session.execute(statement)
    return [dict(row) for row in result.mappings()]
