import logging
import time
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from app.api.routes import health, prospects
from app.config import settings
from app.core.database import close_database, init_database
from app.observability.metrics import metrics
from app.services.repositories import reset_prospect_repository

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1,
        environment=settings.environment,
        release=settings.app_version,
    )
    logger.info("sentry.initialized", extra={"environment": settings.environment})


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "app.startup",
        extra={"version": settings.app_version, "discovery_mode": settings.discovery_mode},
    )
    _init_sentry()
    await init_database()
    # The repository backend follows the database state.
    reset_prospect_repository()

    yield

    logger.info("app.shutdown")
    await close_database()
    reset_prospect_repository()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Prospect discovery, fit scoring and clustering service",
    lifespan=lifespan,
    debug=settings.debug,
)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(
    TrustedHostMiddleware, allowed_hosts=["*"] if settings.debug else ["localhost", "127.0.0.1"]
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and latency; streaming bodies are timed to the first byte."""
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "http.request",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_ms": round(elapsed_ms, 2),
        },
    )
    metrics.timing("http.latency_ms", elapsed_ms, tags={"path": request.url.path})
    return response


app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(prospects.router, prefix="/api", tags=["prospects"])


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "discoveryMode": settings.discovery_mode,
    }
