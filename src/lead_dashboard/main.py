"""Lead Dashboard - FastAPI Application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import init_db
from .core.version import get_version
from .notifications import notifier
from .routers import brokers, charts, leads, live, version

logger = logging.getLogger(__name__)


def configure_logging(log_level: str) -> None:
    """Configure logging for the service."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    configure_logging(settings.log_level)
    logger.info(f"Lead Dashboard v{get_version()} starting...")
    logger.info(f"Bucketing days in {settings.display_timezone}")

    await init_db()

    yield

    remaining = notifier.subscriber_count()
    if remaining:
        logger.warning(f"Shutting down with {remaining} live subscription(s) still open")


app = FastAPI(
    title="Lead Dashboard",
    description="Real-time charts over customer leads, brokers and schedules",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(brokers.router)
app.include_router(charts.router)
app.include_router(leads.router)
app.include_router(live.router)
app.include_router(version.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
