# backend/studio/main.py
"""
FastAPI entry point for the studio scheduling API.

Run with:
    uvicorn studio.main:app --app-dir backend
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .core.config import settings
from .database import Base, engine
from .routes.v1 import health as health_v1, schedule as schedule_v1

API_TITLE = "Studio Scheduling API"
API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables outside production, where migrations own the schema."""
    if not settings.is_production:
        Base.metadata.create_all(bind=engine)
    logger.info(
        f"{API_TITLE} starting (environment={settings.environment}, "
        f"timezone={settings.studio_timezone})"
    )
    yield
    logger.info(f"{API_TITLE} shutting down")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(schedule_v1.router, prefix="/schedule")
api_v1.include_router(health_v1.router)

app.include_router(api_v1)
