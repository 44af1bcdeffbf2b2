"""Application entry-point for the FastAPI backend."""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatrelay.core.config import Settings, get_settings

from .api import router as api_router
from .errors import RelayError, relay_error_handler

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the relay application around one immutable Settings object."""

    settings = settings or get_settings()

    app = FastAPI(
        title="Chat Relay Backend",
        version="1.0.0",
        description="Relays chat requests to an OpenAI-compatible completion API.",
    )
    app.state.settings = settings
    app.state.upstream_transport = upstream_transport

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.is_development:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "%s %s %s %.0fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
            return response

    app.add_exception_handler(RelayError, relay_error_handler)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Not Found",
                    "message": f"Cannot {request.method} {request.url.path}",
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": str(exc) if settings.is_development else "Something went wrong",
            },
        )

    app.include_router(api_router, prefix="/api")

    logger.info("Environment: %s", settings.ENVIRONMENT)
    if settings.api_configured:
        logger.info("Upstream API key: configured")
    else:
        logger.warning("UPSTREAM_API_KEY not found. Please set it in the .env file")

    return app


app = create_app()
