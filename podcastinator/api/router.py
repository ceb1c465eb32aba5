from __future__ import annotations
"""Master API router: mounts all sub-routers."""

from fastapi import APIRouter

from podcastinator.api.audio import router as audio_router
from podcastinator.api.outline import router as outline_router
from podcastinator.api.script import router as script_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(outline_router, prefix="/outline", tags=["Outline"])
api_router.include_router(script_router, prefix="/script", tags=["Script"])
api_router.include_router(audio_router, prefix="/audio", tags=["Audio"])
