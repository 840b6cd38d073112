"""FastAPI application factory for the chat relay server."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import HTTPException, RequestValidationError
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from chatrelay import __version__
from chatrelay.protocol.errors import (
    ChatRelayError,
    InternalFault,
    RateLimitExceeded,
    ValidationError,
)
from chatrelay.relay.config import Settings
from chatrelay.relay.rate_limit import FixedWindowCounter
from chatrelay.relay.reclaimer import ChannelReclaimer
from chatrelay.relay.redaction import install_redaction_filter
from chatrelay.relay.service import RelayService
from chatrelay.relay.store import ChannelStore

logger = logging.getLogger(__name__)


async def _rate_limiter_cleanup_loop(app: FastAPI) -> None:
    """Periodically drop expired rate windows to prevent memory leak."""
    interval = app.state.settings.rate_limit_cleanup_interval
    while True:
        await asyncio.sleep(interval)
        removed = (
            app.state.general_limiter.cleanup()
            + app.state.init_limiter.cleanup()
            + app.state.send_limiter.cleanup()
        )
        if removed:
            logger.debug("Dropped %d expired rate windows", removed)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start and stop the background sweeps across the app lifetime."""
    settings = app.state.settings

    reclaimer = ChannelReclaimer(
        app.state.channel_store,
        interval=settings.reclaim_interval,
        idle_timeout=settings.local_idle_timeout,
    )
    app.state.reclaimer = reclaimer
    await reclaimer.start()

    cleanup_task = asyncio.create_task(_rate_limiter_cleanup_loop(app))
    logger.info(
        "Chat relay started (default channel class: %s)",
        settings.default_channel_class.value,
    )

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await reclaimer.stop()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the chat relay FastAPI application.

    All mutable state (channel store, limiters) is created here and hung on
    ``app.state``, so each app instance is fully independent.
    """
    settings = settings or Settings()

    # Configure logging from settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.debug:
        logging.getLogger("chatrelay").setLevel(logging.DEBUG)
    install_redaction_filter("uvicorn", "uvicorn.access", "uvicorn.error")

    app = FastAPI(
        title="Chat Relay",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.channel_store = ChannelStore(
        global_capacity=settings.global_capacity,
        local_capacity=settings.local_capacity,
        max_limit=settings.max_fetch_limit,
    )
    app.state.relay_service = RelayService(
        app.state.channel_store,
        default_channel_class=settings.default_channel_class,
        max_message_length=settings.max_message_length,
        sanitize_html=settings.sanitize_html,
        default_limit=settings.default_fetch_limit,
        max_limit=settings.max_fetch_limit,
    )
    app.state.general_limiter = FixedWindowCounter(
        limit=settings.general_rate_limit, window_seconds=settings.general_rate_window
    )
    app.state.init_limiter = FixedWindowCounter(
        limit=settings.init_rate_limit, window_seconds=settings.init_rate_window
    )
    app.state.send_limiter = FixedWindowCounter(
        limit=settings.send_rate_limit, window_seconds=settings.send_rate_window
    )

    # Consistent JSON error shape: {"success": false, "error": "<code>", "detail": "<message>"}
    _STATUS_TO_ERROR = {
        400: "bad_request",
        404: "not_found",
        405: "method_not_allowed",
        429: "rate_limited",
        500: "internal_error",
    }

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": _STATUS_TO_ERROR.get(exc.status_code, "error"),
                "detail": exc.detail,
            },
        )

    _ERROR_TO_STATUS = {
        ValidationError: 400,
        RateLimitExceeded: 429,
        InternalFault: 500,
    }

    @app.exception_handler(ChatRelayError)
    async def chatrelay_error_handler(request: Request, exc: ChatRelayError) -> JSONResponse:
        status_code = next(
            (code for cls, code in _ERROR_TO_STATUS.items() if isinstance(exc, cls)),
            500,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "success": False,
                "error": _STATUS_TO_ERROR.get(status_code, "error"),
                "detail": str(exc),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()})
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "validation_error",
                "detail": f"Invalid request fields: {', '.join(fields)}",
            },
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Method and path only: the exception text may carry caller data
        logger.error(
            "Internal error on %s %s (%s)",
            request.method,
            request.url.path,
            type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "internal_error",
                "detail": "Internal server error",
            },
        )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # REST routes with /api/v1 prefix
    from chatrelay.relay.routes.chat import router as chat_router

    app.include_router(chat_router, prefix="/api/v1")

    # Health (no prefix, no rate limit)
    from chatrelay.relay.routes.health import router as health_router

    app.include_router(health_router)

    return app
