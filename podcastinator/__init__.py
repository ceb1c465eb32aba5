"""Podcastinator: outline, script and audio generation for two-voice podcasts."""

__version__ = "0.1.0"
