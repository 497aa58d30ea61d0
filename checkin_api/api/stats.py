import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from prometheus_client import Counter, Histogram
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from checkin_api.api.deps import get_settings, require_token
from checkin_api.config import Settings
from checkin_api.core.ranges import parse_bucket, resolve_range
from checkin_api.core.reports import build_aggregate_report, build_series_report
from checkin_api.db.database import get_session
from checkin_api.models.checkins import StatsResponse, TimeseriesResponse

router = APIRouter(dependencies=[Depends(require_token)])
logger = structlog.get_logger()

report_failed_counter = Counter('report_queries_failed_total', 'Report queries that failed', ['report'])
report_duration = Histogram('report_build_seconds', 'Report build duration', ['report'])


@router.get("/api/stats", response_model=StatsResponse)
async def get_stats(
        window: Optional[str] = None,
        from_: Optional[str] = Query(None, alias="from"),
        to: Optional[str] = None,
        session: AsyncSession = Depends(get_session),
        settings: Settings = Depends(get_settings)
):
    time_range = resolve_range(window, from_, to)
    started = time.perf_counter()

    try:
        report = await build_aggregate_report(
            session, time_range, settings.display_timezone, recent_limit=settings.recent_limit
        )

    except SQLAlchemyError as e:
        report_failed_counter.labels(report="stats").inc()
        logger.error("stats_query_failed", from_utc=time_range.from_utc, to_utc=time_range.to_utc, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Query failed")

    report_duration.labels(report="stats").observe(time.perf_counter() - started)
    logger.info(
        "stats_query",
        from_utc=time_range.from_utc,
        to_utc=time_range.to_utc,
        range_total=report.range_total
    )
    return report


@router.get("/api/timeseries", response_model=TimeseriesResponse)
async def get_timeseries(
        bucket: Optional[str] = None,
        window: Optional[str] = None,
        from_: Optional[str] = Query(None, alias="from"),
        to: Optional[str] = None,
        session: AsyncSession = Depends(get_session),
        settings: Settings = Depends(get_settings)
):
    resolved_bucket = parse_bucket(bucket)
    time_range = resolve_range(window, from_, to)
    started = time.perf_counter()

    try:
        report = await build_series_report(
            session,
            time_range,
            resolved_bucket,
            settings.display_timezone,
            top_limit=settings.top_names_limit
        )

    except SQLAlchemyError as e:
        report_failed_counter.labels(report="timeseries").inc()
        logger.error("timeseries_query_failed", bucket=resolved_bucket.value, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "timeseries_failed", "message": str(e)}
        )

    report_duration.labels(report="timeseries").observe(time.perf_counter() - started)
    logger.info(
        "timeseries_query",
        bucket=resolved_bucket.value,
        from_utc=time_range.from_utc,
        to_utc=time_range.to_utc,
        buckets=len(report.total)
    )
    return report
