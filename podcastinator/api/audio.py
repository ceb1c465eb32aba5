"""Audio endpoint: POST /api/audio/generate."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException

from podcastinator.api.deps import ClientFactory, get_client_factory
from podcastinator.schemas.podcast import GenerateAudioRequest, GenerateAudioResponse
from podcastinator.services.llm_client import AuthError, LLMError
from podcastinator.services.tts_service import save_audio, synthesize_script

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", response_model=GenerateAudioResponse)
async def generate_audio(
    req: GenerateAudioRequest,
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Synthesize the script turn by turn and return the saved MP3 location."""
    client = client_factory(None)
    try:
        audio, segments = await synthesize_script(client, req.script, req.brief)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except LLMError as e:
        logger.error("Audio generation failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Audio generation failed: {e}") from e

    rel_path = save_audio(audio, uuid.uuid4().hex)
    return GenerateAudioResponse(
        audio_path=rel_path,
        audio_url=f"/media/{rel_path}",
        segments=segments,
        size_bytes=len(audio),
    )
