from sqlalchemy.ext.asyncio import AsyncSession

from checkin_api.core.display import format_bucket_label, format_instant
from checkin_api.core.ranges import Bucket, TimeRange, parse_bucket_key
from checkin_api.db import queries
from checkin_api.models.checkins import (
    BucketCount,
    NameBucketCount,
    NamedCount,
    RangeInfo,
    RecentCheckin,
    StatsResponse,
    TimeseriesResponse,
)


def describe_range(time_range: TimeRange, tz_name: str) -> RangeInfo:
    return RangeInfo(
        from_utc=time_range.from_utc,
        to_utc=time_range.to_utc,
        from_nz=format_instant(time_range.from_utc, tz_name),
        to_nz=format_instant(time_range.to_utc, tz_name)
    )


async def build_aggregate_report(
        session: AsyncSession,
        time_range: TimeRange,
        tz_name: str,
        recent_limit: int = 50
) -> StatsResponse:
    all_time_total = await queries.count_events(session)
    all_time_per_name = await queries.count_by_name(session)
    range_total = await queries.count_events(session, time_range)
    range_per_name = await queries.count_by_name(session, time_range)
    recent = await queries.recent_events(session, time_range, limit=recent_limit)

    return StatsResponse(
        range=describe_range(time_range, tz_name),
        all_time_total=all_time_total,
        all_time_per_name=[NamedCount(**row) for row in all_time_per_name],
        range_total=range_total,
        range_per_name=[NamedCount(**row) for row in range_per_name],
        recent=[
            RecentCheckin(
                name=row["name"],
                created_at_utc=row["created_at_utc"],
                created_at_nz=format_instant(row["created_at_utc"], tz_name)
            )
            for row in recent
        ]
    )


async def build_series_report(
        session: AsyncSession,
        time_range: TimeRange,
        bucket: Bucket,
        tz_name: str,
        top_limit: int = 5
) -> TimeseriesResponse:
    total_rows = await queries.bucket_counts(session, time_range, bucket)
    top = await queries.top_names(session, time_range, limit=top_limit)
    by_name_rows = await queries.bucket_counts_by_name(session, time_range, bucket, top)

    # Rows whose stored timestamp does not parse would show up as a blank bucket.
    total = [
        BucketCount(
            bucket_utc=row["bucket_utc"],
            label_nz=format_bucket_label(row["bucket_utc"], bucket, tz_name),
            count=int(row["count"] or 0)
        )
        for row in total_rows
        if parse_bucket_key(row["bucket_utc"]) is not None
    ]

    return TimeseriesResponse(
        bucket=bucket.value,
        range=describe_range(time_range, tz_name),
        top_names=top,
        total=total,
        by_name=[NameBucketCount(**row) for row in by_name_rows]
    )
