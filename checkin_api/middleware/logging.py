import time

import structlog
from fastapi import Request

logger = structlog.get_logger()


async def logging_middleware(request: Request, call_next):
    started = time.perf_counter()

    response = await call_next(request)

    log = logger.warning if response.status_code >= 500 else logger.info
    log(
        "request_completed",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2)
    )

    return response
