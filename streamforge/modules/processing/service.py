"""Media processing service.

Turns an uploaded video into streamable assets by running the stages in
order:

1. source validation (fatal when the file is missing or unsupported)
2. adaptive HLS stream, required
3. thumbnails, required
4. protection, optional
5. subtitles, optional

Required stage failures end the run with a retryable or fatal result.
Optional stage failures are logged and never fail the run. Each stage's
output is persisted through the ``VideoRepository`` as soon as it is
produced.
"""

import logging
import os
import time
from typing import Awaitable, Callable, Optional

from streamforge.core.logging import log_info, log_warning
from streamforge.core.metrics import STAGE_DURATION_SECONDS
from streamforge.core.tracing import create_span, mark_span_failed, set_span_attributes
from streamforge.modules.processing.config import ProcessingConfig
from streamforge.modules.processing.results import ProcessingResult, StageResult
from streamforge.modules.protection.stage import ProtectionStage
from streamforge.modules.subtitles.stage import SubtitleStage
from streamforge.modules.transcoding.abr import RenditionPlanner
from streamforge.modules.transcoding.ffmpeg import EncoderGateway, FFmpegTranscoder
from streamforge.modules.transcoding.hls import AdaptiveStreamBuilder
from streamforge.modules.transcoding.storage import MediaStorage
from streamforge.modules.transcoding.thumbnails import ThumbnailExtractor
from streamforge.modules.video.models import Video
from streamforge.modules.video.repository import VideoRepository

logger = logging.getLogger(__name__)

SOURCE_STAGE = "source"


class MediaProcessingService:
    """Runs the processing stages for one video."""

    def __init__(
        self,
        repository: VideoRepository,
        config: Optional[ProcessingConfig] = None,
        gateway: Optional[EncoderGateway] = None,
        storage: Optional[MediaStorage] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.repository = repository
        self.config = config or ProcessingConfig.from_settings()
        self.gateway = gateway or FFmpegTranscoder(
            ffmpeg_path=self.config.ffmpeg_path,
            ffprobe_path=self.config.ffprobe_path,
            threads=self.config.ffmpeg_threads,
        )
        self.storage = storage or MediaStorage(
            self.config.media_root, self.config.media_public_url
        )
        self.clock = clock

        self.planner = RenditionPlanner(
            self.gateway, default_duration=self.config.default_source_duration
        )
        self.stream_builder = AdaptiveStreamBuilder(
            self.gateway,
            self.storage,
            segment_seconds=self.config.segment_seconds,
            audio_bitrate=self.config.audio_bitrate,
        )
        self.thumbnail_extractor = ThumbnailExtractor(self.gateway, self.storage)
        self.protection_stage = ProtectionStage(
            self.storage,
            provider_name=self.config.drm_provider,
            license_server=self.config.drm_license_server,
            content_key=self.config.drm_content_key,
            api_key=self.config.drm_api_key,
        )
        self.subtitle_stage = SubtitleStage(
            self.gateway,
            self.storage,
            provider_name=self.config.speech_to_text_provider,
            api_key=self.config.speech_to_text_api_key,
            primary_language=self.config.primary_language,
            additional_languages=self.config.additional_languages,
        )

    async def process(self, video: Video) -> ProcessingResult:
        """Process a video and report the outcome to the caller.

        A video that is already complete is reported as a success without
        running any stage.
        """
        if video.is_complete():
            logger.info(f"Video {video.id} already processed, nothing to do")
            return ProcessingResult.succeeded(video.processing_duration or 0.0)

        started = self.clock()
        stages: list[StageResult] = []

        with create_span("video.process", {"video.id": str(video.id)}):
            source = self.validate_source(video)
            stages.append(source)
            if not source.ok:
                return self._fail(video, source, stages)

            plan = await self.planner.plan(video.source_path)
            await self.repository.record_source_probe(
                video.id, plan.source.duration, plan.source.degraded
            )
            if plan.source.degraded:
                log_warning(
                    logger,
                    f"Using placeholder duration for video {video.id}",
                    video_id=str(video.id),
                    probe_error=plan.source.probe_error,
                )

            # The builder removes earlier output, so the old manifest goes too
            await self.repository.clear_adaptive_stream(video.id)
            stream = await self._run_stage(
                "adaptive_stream",
                lambda: self.stream_builder.build(video.id, video.source_path, plan.renditions),
            )
            stages.append(stream)
            if not stream.ok:
                return self._fail(video, stream, stages)
            await self.repository.record_adaptive_stream(video.id, stream.data["playback_url"])

            thumbnails = await self._run_stage(
                "thumbnails",
                lambda: self.thumbnail_extractor.extract(
                    video.id, video.source_path, plan.source.duration
                ),
            )
            stages.append(thumbnails)
            if not thumbnails.ok:
                return self._fail(video, thumbnails, stages)
            await self.repository.record_thumbnails(
                video.id, thumbnails.data["default"], thumbnails.data["paths"]
            )

            stages.append(await self._protect(video))
            stages.append(await self._subtitle(video))

            duration = self.clock() - started
            set_span_attributes({"video.processing_duration": duration})

        log_info(
            logger,
            f"Video {video.id} processed in {duration:.1f}s",
            video_id=str(video.id),
            stages={s.stage: s.outcome.value for s in stages},
        )
        return ProcessingResult.succeeded(duration, stages)

    def validate_source(self, video: Video) -> StageResult:
        """Check the source file exists and has a supported container."""
        path = video.source_path
        if not path or not os.path.isfile(path):
            return StageResult.fatal(SOURCE_STAGE, f"Source file not found: {path}")

        extension = os.path.splitext(path)[1].lower().lstrip(".")
        if extension not in self.config.supported_extensions:
            return StageResult.fatal(
                SOURCE_STAGE, f"Unsupported source format: {extension or 'none'}"
            )
        return StageResult.success(SOURCE_STAGE, path=path)

    async def _protect(self, video: Video) -> StageResult:
        if not self.config.drm_enabled:
            return StageResult.skipped("protection", "disabled")

        result = await self._run_stage("protection", lambda: self.protection_stage.apply(video.id))
        if result.ok:
            await self.repository.record_protection(
                video.id, result.data["drm_type"], result.data["key_id"]
            )
        else:
            log_warning(
                logger,
                f"Protection failed for video {video.id}: {result.error}",
                video_id=str(video.id),
            )
        return result

    async def _subtitle(self, video: Video) -> StageResult:
        if not self.config.subtitles_enabled:
            return StageResult.skipped("subtitles", "disabled")

        result = await self._run_stage(
            "subtitles", lambda: self.subtitle_stage.generate(video.id, video.source_path)
        )
        if result.ok:
            await self.repository.record_subtitles(video.id, result.data["languages"])
        else:
            log_warning(
                logger,
                f"Subtitles failed for video {video.id}: {result.error}",
                video_id=str(video.id),
            )
        return result

    async def _run_stage(
        self,
        name: str,
        stage: Callable[[], Awaitable[StageResult]],
    ) -> StageResult:
        started = self.clock()
        with create_span(f"video.stage.{name}", {"stage": name}):
            result = await stage()
            result.duration = self.clock() - started
            if result.failed:
                mark_span_failed(result.error or name)
        STAGE_DURATION_SECONDS.labels(stage=name, outcome=result.outcome.value).observe(
            result.duration
        )
        return result

    def _fail(
        self,
        video: Video,
        result: StageResult,
        stages: list[StageResult],
    ) -> ProcessingResult:
        mark_span_failed(result.error or result.stage)
        log_warning(
            logger,
            f"Processing video {video.id} failed at {result.stage}: {result.error}",
            video_id=str(video.id),
            stage=result.stage,
            outcome=result.outcome.value,
        )
        return ProcessingResult.from_stage_failure(result, stages)
