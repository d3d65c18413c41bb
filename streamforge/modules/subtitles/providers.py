"""Speech-to-text provider implementations.

Development placeholders: they check the audio exists and return two
fixed cues naming the service a production provider would call.
"""

import logging
import os

from streamforge.modules.subtitles.base import (
    Cue,
    SpeechToTextProvider,
    TranscriptionResult,
    speech_to_text_providers,
)

logger = logging.getLogger(__name__)


class PlaceholderSpeechToTextProvider(SpeechToTextProvider):
    """Shared behaviour of the development providers."""

    service_name: str = "speech-to-text"

    async def transcribe(self, audio_path: str, language: str) -> TranscriptionResult:
        if not os.path.isfile(audio_path):
            return self._create_failure_result(language, f"Audio not found: {audio_path}")

        logger.info(
            f"{self.service_name} would be used here in production",
            extra={"audio_path": audio_path, "language": language},
        )
        return TranscriptionResult(
            success=True,
            language=language,
            cues=[
                Cue(0.0, 5.0, "This is a placeholder subtitle for development purposes."),
                Cue(
                    5.0,
                    10.0,
                    f"In production, real transcription would be generated using {self.service_name}.",
                ),
            ],
        )


@speech_to_text_providers.register("google")
class GoogleSpeechProvider(PlaceholderSpeechToTextProvider):
    provider_name = "google"
    service_name = "Google Cloud Speech-to-Text"


@speech_to_text_providers.register("aws")
class AWSTranscribeProvider(PlaceholderSpeechToTextProvider):
    provider_name = "aws"
    service_name = "AWS Transcribe"


@speech_to_text_providers.register("azure")
class AzureSpeechProvider(PlaceholderSpeechToTextProvider):
    provider_name = "azure"
    service_name = "Azure Speech Service"
