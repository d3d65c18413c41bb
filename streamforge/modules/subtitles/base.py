"""Speech-to-text provider contract and WebVTT output."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

from streamforge.core.registry import ProviderRegistry


@dataclass
class Cue:
    """A timed line of subtitle text."""
    start: float  # seconds
    end: float
    text: str


@dataclass
class TranscriptionResult:
    """Result of transcribing one language."""
    success: bool
    language: str
    cues: list[Cue] = field(default_factory=list)
    error_message: Optional[str] = None


class SpeechToTextProvider(ABC):
    """Base class for speech-to-text providers."""

    provider_name: str = "base"

    def __init__(self, api_key: str = ""):
        self.api_key = api_key

    @abstractmethod
    async def transcribe(self, audio_path: str, language: str) -> TranscriptionResult:
        """Transcribe mono 16 kHz FLAC audio.

        Args:
            audio_path: Path to the extracted audio track
            language: Language code, e.g. "en"

        Returns:
            TranscriptionResult with cues on success
        """
        pass

    def _create_failure_result(self, language: str, error: str) -> TranscriptionResult:
        return TranscriptionResult(success=False, language=language, error_message=error)


def format_timestamp(seconds: float) -> str:
    """Format seconds as a WebVTT timestamp, e.g. 00:01:05.250."""
    millis = int(math.floor(max(seconds, 0.0) * 1000 + 0.5))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def render_webvtt(cues: Sequence[Cue]) -> str:
    """Render cues as a WebVTT document."""
    blocks = ["WEBVTT\n"]
    for cue in cues:
        blocks.append(
            f"{format_timestamp(cue.start)} --> {format_timestamp(cue.end)}\n{cue.text}\n"
        )
    return "\n".join(blocks)


speech_to_text_providers: ProviderRegistry[SpeechToTextProvider] = ProviderRegistry("speech-to-text")
