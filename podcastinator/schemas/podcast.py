from __future__ import annotations
"""Pydantic v2 schemas for podcast inputs and API payloads."""

from pydantic import BaseModel, Field

from podcastinator.config import get_settings

settings = get_settings()


class Character(BaseModel):
    """A speaker persona (host or guest)."""

    name: str = ""
    personality: str = ""
    speaking_style: str = ""
    backstory: str = ""
    voice: str | None = None
    speech_rate: float | None = Field(None, ge=0.25, le=4.0)
    voice_instructions: str | None = None

    def display_name(self, fallback: str) -> str:
        return self.name.strip() or fallback


class PodcastBrief(BaseModel):
    """Everything a run needs besides the outline: source, focus, personas."""

    document_content: str = ""
    document_name: str = ""
    focus: str = ""
    duration_minutes: int = Field(default_factory=lambda: settings.PODCAST_DURATION, ge=1, le=240)
    language: str = Field(default_factory=lambda: settings.SCRIPT_LANGUAGE)
    style: str = "default"
    host: Character = Field(default_factory=lambda: Character(name="Host"))
    guest: Character = Field(default_factory=lambda: Character(name="Guest"))


# ---------------------------------------------------------------------------
# API requests / responses
# ---------------------------------------------------------------------------

class ParseOutlineRequest(BaseModel):
    outline: str = Field(..., min_length=1)


class SectionRead(BaseModel):
    number: str
    title: str
    duration_minutes: float
    overview: str
    key_facts: str
    unique_focus: str
    carryover: str


class ParseOutlineResponse(BaseModel):
    sections: list[SectionRead]
    total_duration: float


class GenerateOutlineRequest(BaseModel):
    brief: PodcastBrief


class GenerateScriptRequest(BaseModel):
    outline: str = Field(..., min_length=1)
    brief: PodcastBrief


class GenerateAudioRequest(BaseModel):
    script: str = Field(..., min_length=1)
    brief: PodcastBrief = Field(default_factory=PodcastBrief)


class GenerateAudioResponse(BaseModel):
    audio_path: str
    audio_url: str
    segments: int
    size_bytes: int
