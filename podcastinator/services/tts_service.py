from __future__ import annotations
"""TTS service: turns a finished script into one MP3 file.

Each speaker turn is synthesized separately with the speaker's voice via
the model service's /audio/speech endpoint. The MP3 payloads are joined
back to back and saved to media_volume.
"""

import logging
import os
import uuid

from podcastinator.config import get_settings
from podcastinator.schemas.podcast import Character, PodcastBrief

from .llm_client import CompletionClient
from .progress import ProgressAccumulator
from .retry import CancelQuery, raise_if_cancelled
from .script_text import HOST, DialogueSegment, parse_segments

logger = logging.getLogger(__name__)
settings = get_settings()


def _voice_for(segment: DialogueSegment, brief: PodcastBrief) -> tuple[Character, str]:
    if segment.speaker == HOST:
        return brief.host, brief.host.voice or settings.HOST_VOICE
    return brief.guest, brief.guest.voice or settings.GUEST_VOICE


async def synthesize_script(
    client: CompletionClient,
    script: str,
    brief: PodcastBrief,
    *,
    progress: ProgressAccumulator | None = None,
    should_cancel: CancelQuery | None = None,
) -> tuple[bytes, int]:
    """Synthesize every speaker turn and concatenate the MP3 bytes.

    Returns:
        Tuple of (mp3_bytes, segment_count).

    Raises:
        ValueError: If the script has no HOST/GUEST segments.
    """
    segments = parse_segments(script)
    if not segments:
        raise ValueError("No HOST/GUEST segments found in the script")

    if progress is not None:
        progress.reset()
    chunks: list[bytes] = []
    for i, segment in enumerate(segments):
        raise_if_cancelled(should_cancel, f"audio segment {i + 1}")
        character, voice = _voice_for(segment, brief)
        audio = await client.speech(
            segment.text,
            voice=voice,
            speed=character.speech_rate,
            instructions=character.voice_instructions,
        )
        chunks.append(audio)
        logger.info("TTS segment %d/%d (%s, %d bytes)", i + 1, len(segments), segment.speaker, len(audio))
        if progress is not None:
            progress.publish((i + 1) / len(segments) * 100.0)

    return b"".join(chunks), len(segments)


def save_audio(audio_bytes: bytes, run_id: str | None = None) -> str:
    """Save audio bytes to media_volume and return relative path."""
    dir_path = os.path.join(settings.MEDIA_VOLUME, "podcasts")
    os.makedirs(dir_path, exist_ok=True)

    filename = f"{run_id or uuid.uuid4().hex}.mp3"
    with open(os.path.join(dir_path, filename), "wb") as f:
        f.write(audio_bytes)

    rel_path = f"podcasts/{filename}"
    logger.info("Podcast audio saved: %s (%d bytes)", rel_path, len(audio_bytes))
    return rel_path
