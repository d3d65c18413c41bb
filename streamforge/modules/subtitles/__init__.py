"""Pluggable speech-to-text subtitle generation."""

from streamforge.modules.subtitles.base import (
    Cue,
    SpeechToTextProvider,
    TranscriptionResult,
    render_webvtt,
    speech_to_text_providers,
)
from streamforge.modules.subtitles.stage import SubtitleStage, subtitle_languages

__all__ = [
    "Cue",
    "SpeechToTextProvider",
    "TranscriptionResult",
    "render_webvtt",
    "speech_to_text_providers",
    "SubtitleStage",
    "subtitle_languages",
]
