"""Optional protection stage run after the adaptive stream is built."""

import logging
import uuid

import streamforge.modules.protection.providers  # noqa: F401  registers the bundled providers
from streamforge.core.registry import UnknownProviderError
from streamforge.modules.processing.results import StageResult
from streamforge.modules.protection.base import ProtectionRequest, protection_providers
from streamforge.modules.transcoding.storage import MediaStorage

logger = logging.getLogger(__name__)

STAGE_NAME = "protection"


class ProtectionStage:
    """Protects a video's stream with the configured DRM provider.

    Never fails processing: every problem is reported as a non-fatal
    ``FAILED`` result.
    """

    def __init__(
        self,
        storage: MediaStorage,
        provider_name: str,
        license_server: str = "",
        content_key: str = "",
        api_key: str = "",
    ):
        self.storage = storage
        self.provider_name = provider_name
        self.license_server = license_server
        self.content_key = content_key
        self.api_key = api_key

    async def apply(self, video_id: uuid.UUID) -> StageResult:
        if not self.license_server or not self.content_key:
            logger.warning(f"DRM license server or content key not configured for video {video_id}")
            return StageResult.failure(STAGE_NAME, "DRM license server or content key not configured")

        try:
            provider = protection_providers.create(self.provider_name)
        except UnknownProviderError as e:
            logger.warning(str(e))
            return StageResult.failure(STAGE_NAME, str(e))

        request = ProtectionRequest(
            video_id=video_id,
            manifest_path=self.storage.master_playlist_path(video_id),
            license_server=self.license_server,
            content_key=self.content_key,
            api_key=self.api_key,
        )
        try:
            result = await provider.protect(request)
        except Exception as e:
            logger.exception(f"Protection provider {self.provider_name} raised for video {video_id}")
            return StageResult.failure(STAGE_NAME, str(e) or e.__class__.__name__)
        if not result.success:
            return StageResult.failure(STAGE_NAME, result.error_message or "protection failed")

        return StageResult.success(
            STAGE_NAME,
            drm_type=result.drm_type,
            key_id=result.key_id,
            license_url=result.license_url,
        )
