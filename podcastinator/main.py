from __future__ import annotations
"""Podcastinator: FastAPI application entry point.

Mounts the outline/script/audio routes, configures CORS and serves the
generated audio from the media volume.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from podcastinator import __version__
from podcastinator.api.router import api_router
from podcastinator.config import get_settings
from podcastinator.services.llm_client import close_client

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: prepare the media volume, close the HTTP client on shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    logger.info("Model service: %s", settings.OPENAI_BASE_URL)
    logger.info("Models: outline=%s script=%s tts=%s",
                settings.OUTLINE_MODEL, settings.SCRIPT_MODEL, settings.TTS_MODEL)

    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)

    yield

    await close_client()
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title="Podcastinator API",
    description="Outline → section-by-section verified dialogue script → two-voice audio",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,
)

# CORS: allow frontend dev server (configurable via CORS_ORIGINS env)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router)

# Mount media static files
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": settings.APP_NAME,
        "status": "running",
    }


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "model_service": settings.OPENAI_BASE_URL,
        "api_key_configured": bool(settings.OPENAI_API_KEY),
    }
