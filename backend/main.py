"""FastAPI backend for personalized song generation."""

import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from songgen.config import Settings, get_settings
from songgen.services import Services, build_services

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMIT_MAX = 30  # max requests per window


class HealthResponse(BaseModel):
    status: str
    data_dir: str
    active_jobs: int


def create_app(
    settings: Optional[Settings] = None,
    services_factory: Optional[Callable[[Settings], Services]] = None,
) -> FastAPI:
    settings = settings or get_settings()
    services_factory = services_factory or (lambda s: build_services(s))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = services_factory(settings)
        app.state.services = services
        resumed = services.orchestrator.resume()
        if resumed:
            logger.info("Resumed %d unfinished tasks", resumed)
        services.supervisor.start_purge_loop(services.task_store, settings.task_purge_interval_s)
        try:
            yield
        finally:
            await services.aclose()

    app = FastAPI(
        title="Song Generation API",
        description="Personalized songs: LLM lyrics, provider audio, free-song quota.",
        version="0.3.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Basic in-memory rate limiter (per IP, 30 requests / 60 s for mutating routes)
    # -----------------------------------------------------------------------
    rate_store: dict[str, list[float]] = defaultdict(list)

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if request.method in ("GET", "HEAD", "OPTIONS"):
            return await call_next(request)
        # Provider callbacks are not user traffic.
        if request.url.path.rstrip("/") == "/api/suno-cover-callback":
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        rate_store[client_ip] = [t for t in rate_store[client_ip] if now - t < RATE_LIMIT_WINDOW]
        if len(rate_store[client_ip]) >= RATE_LIMIT_MAX:
            return Response(
                content='{"success":false,"error":"Rate limit exceeded. Try again later."}',
                status_code=429,
                media_type="application/json",
            )
        rate_store[client_ip].append(now)
        return await call_next(request)

    # -----------------------------------------------------------------------
    # CORS is added last so it is the outermost middleware and 429s carry
    # CORS headers too.
    # -----------------------------------------------------------------------
    logger.info("CORS configured for origins: %s", settings.cors_origin_list)
    cors_kw: dict = {
        "allow_origins": settings.cors_origin_list,
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
        "expose_headers": ["*"],
    }
    if settings.cors_origin_regex:
        logger.info("CORS origin regex: %s", settings.cors_origin_regex)
        cors_kw["allow_origin_regex"] = settings.cors_origin_regex
    app.add_middleware(CORSMiddleware, **cors_kw)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Invalid request to %s: %d errors", request.url.path, len(exc.errors()))
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid request data",
                "code": "BAD_REQUEST",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.get("/health", response_model=HealthResponse)
    @app.get("/api/health", response_model=HealthResponse)
    async def health(request: Request):
        """Health check endpoint."""
        services: Services = request.app.state.services
        return HealthResponse(
            status="ok",
            data_dir=str(settings.data_dir),
            active_jobs=len(services.supervisor),
        )

    from backend.routes import cover_callback, generate

    app.include_router(generate.router, prefix="/api", tags=["generate"])
    app.include_router(cover_callback.router, prefix="/api", tags=["cover"])
    return app


logging.basicConfig(level=logging.INFO)
app = create_app()
