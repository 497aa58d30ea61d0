import json
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request, status
from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from checkin_api.api.deps import enforce_rate_limit, get_settings, require_token
from checkin_api.config import Settings
from checkin_api.core.display import format_instant
from checkin_api.core.errors import InvalidRequest
from checkin_api.db import queries
from checkin_api.db.database import get_session
from checkin_api.models.checkins import CheckinRequest, CheckinResponse

router = APIRouter(dependencies=[Depends(require_token), Depends(enforce_rate_limit)])
logger = structlog.get_logger()

checkins_counter = Counter('checkins_received_total', 'Total check-ins recorded')
checkins_rejected_counter = Counter('checkins_rejected_total', 'Check-ins rejected by validation', ['reason'])
checkins_failed_counter = Counter('checkins_failed_total', 'Check-ins that failed to store')


def _reject(reason: str, message: str) -> NoReturn:
    checkins_rejected_counter.labels(reason=reason).inc()
    raise InvalidRequest(message)


async def _read_checkin(request: Request, max_name_length: int) -> str:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        _reject("invalid_json", "Invalid JSON body")

    if not isinstance(body, dict):
        body = {}

    name = CheckinRequest.model_validate(body).name
    if not name:
        _reject("missing_name", "Missing name")
    if len(name) > max_name_length:
        _reject("name_too_long", "Name too long")
    return name


@router.post("/api/checkins", response_model=CheckinResponse)
async def ingest_checkin(
        request: Request,
        session: AsyncSession = Depends(get_session),
        settings: Settings = Depends(get_settings)
):
    name = await _read_checkin(request, settings.max_name_length)

    try:
        event = await queries.insert_checkin(session, name)
        quote = await queries.random_quote(session)

    except SQLAlchemyError as e:
        checkins_failed_counter.inc()
        logger.error("checkin_ingest_failed", name=name, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record check-in"
        )

    checkins_counter.inc()
    logger.info("checkin_recorded", id=event.id, name=name, created_at_utc=event.created_at_utc)

    return CheckinResponse(
        name=name,
        created_at_utc=event.created_at_utc,
        created_at_nz=format_instant(event.created_at_utc, settings.display_timezone),
        quote=quote
    )
