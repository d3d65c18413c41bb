"""Optional subtitle stage: audio extraction, transcription, WebVTT files."""

import logging
import os
import uuid
from typing import Iterable, Optional

import streamforge.modules.subtitles.providers  # noqa: F401  registers the bundled providers
from streamforge.core.registry import UnknownProviderError
from streamforge.modules.processing.results import StageResult
from streamforge.modules.subtitles.base import (
    SpeechToTextProvider,
    render_webvtt,
    speech_to_text_providers,
)
from streamforge.modules.transcoding.ffmpeg import EncoderGateway
from streamforge.modules.transcoding.storage import MediaStorage

logger = logging.getLogger(__name__)

STAGE_NAME = "subtitles"

AUDIO_EXTRACTION_ARGS = ["-ac", "1", "-ar", "16000", "-vn"]


def subtitle_languages(primary: str, additional: Iterable[str] = ()) -> list[str]:
    """Primary language first, then additional ones, without duplicates."""
    languages = [primary, *additional]
    cleaned = (language.strip().lower() for language in languages)
    return list(dict.fromkeys(language for language in cleaned if language))


class SubtitleStage:
    """Generates one WebVTT file per requested language.

    Languages are independent: one failing does not stop the others. Only
    languages that produced a file are reported.
    """

    def __init__(
        self,
        gateway: EncoderGateway,
        storage: MediaStorage,
        provider_name: str,
        api_key: str = "",
        primary_language: str = "en",
        additional_languages: Iterable[str] = (),
    ):
        self.gateway = gateway
        self.storage = storage
        self.provider_name = provider_name
        self.api_key = api_key
        self.languages = subtitle_languages(primary_language, additional_languages)

    async def generate(self, video_id: uuid.UUID, source_path: str) -> StageResult:
        if not self.api_key:
            logger.warning(f"Speech-to-text API key not configured for video {video_id}")
            return StageResult.failure(STAGE_NAME, "Speech-to-text API key not configured")

        try:
            provider = speech_to_text_providers.create(self.provider_name, api_key=self.api_key)
        except UnknownProviderError as e:
            logger.warning(str(e))
            return StageResult.failure(STAGE_NAME, str(e))

        audio_path = self.storage.temp_audio_path(video_id)
        extraction = await self.gateway.encode(source_path, AUDIO_EXTRACTION_ARGS, audio_path)
        if not extraction.success:
            self.storage.remove_file(audio_path)
            logger.error(f"Failed to extract audio from video {video_id}: {extraction.error_message}")
            return StageResult.failure(
                STAGE_NAME, f"Audio extraction failed: {extraction.error_message}"
            )

        produced = []
        failed = {}
        try:
            os.makedirs(self.storage.subtitle_dir(video_id), exist_ok=True)
        except OSError as e:
            self.storage.remove_file(audio_path)
            return StageResult.failure(STAGE_NAME, f"Could not create subtitle directory: {e}")

        try:
            for language in self.languages:
                error = await self._generate_language(provider, video_id, audio_path, language)
                if error:
                    failed[language] = error
                    logger.warning(f"Subtitles in {language} failed for video {video_id}: {error}")
                else:
                    produced.append(language)
        finally:
            self.storage.remove_file(audio_path)

        if not produced:
            return StageResult.failure(STAGE_NAME, "No subtitles produced", failed=failed)

        return StageResult.success(STAGE_NAME, languages=produced, failed=failed)

    async def _generate_language(
        self,
        provider: SpeechToTextProvider,
        video_id: uuid.UUID,
        audio_path: str,
        language: str,
    ) -> Optional[str]:
        try:
            result = await provider.transcribe(audio_path, language)
        except Exception as e:
            logger.exception(f"Transcription in {language} raised for video {video_id}")
            return str(e) or e.__class__.__name__

        if not result.success:
            return result.error_message or "transcription failed"

        try:
            with open(self.storage.subtitle_path(video_id, language), "w", encoding="utf-8") as f:
                f.write(render_webvtt(result.cues))
        except OSError as e:
            return f"Could not write subtitles: {e}"
        return None
