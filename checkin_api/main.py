import logging
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from checkin_api.api import checkins, stats
from checkin_api.config import Settings
from checkin_api.core.errors import InvalidRequest
from checkin_api.db.database import create_engine, create_session_maker, init_db
from checkin_api.db.redis_client import RedisClient
from checkin_api.middleware.cors import cors_middleware
from checkin_api.middleware.logging import logging_middleware

logger = structlog.get_logger()


def configure_logging(level: str):
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper()))
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def invalid_request_handler(request: Request, exc: InvalidRequest):
    logger.info("request_rejected", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=400, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Check-in Events API")

    app.state.settings = settings
    app.state.engine = create_engine(settings.database_url)
    app.state.session_maker = create_session_maker(app.state.engine)
    app.state.redis = RedisClient(settings.redis_url) if settings.redis_url else None

    @app.on_event("startup")
    async def startup():
        if app.state.redis is not None:
            await app.state.redis.connect()
        await init_db(app.state.engine)
        logger.info("startup_completed", display_timezone=settings.display_timezone)

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.redis is not None:
            await app.state.redis.close()
        await app.state.engine.dispose()

    app.middleware("http")(logging_middleware)
    app.middleware("http")(cors_middleware)

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(InvalidRequest, invalid_request_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(checkins.router, tags=["checkins"])
    app.include_router(stats.router, tags=["stats"])

    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()
