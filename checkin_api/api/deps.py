import time

import structlog
from fastapi import HTTPException, Request, status

from checkin_api.config import Settings

logger = structlog.get_logger()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_token(request: Request):
    token = get_settings(request).api_token
    authorization = request.headers.get("Authorization", "")

    if not token or authorization != f"Bearer {token}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def enforce_rate_limit(request: Request):
    """Per-client fixed one-minute window; only counts authenticated calls."""
    settings = get_settings(request)
    redis_client = request.app.state.redis

    if redis_client is None or settings.rate_limit_per_minute <= 0:
        return

    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}:{int(time.time() / 60)}"

    current = await redis_client.incr(key)

    if current == 1:
        await redis_client.expire(key, 60)

    if current > settings.rate_limit_per_minute:
        logger.warning("rate_limit_exceeded", client_ip=client_ip, count=current)
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
