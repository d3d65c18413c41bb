"""DRM provider implementations.

These providers fulfil the contract without encrypting anything: they
validate the request and hand back a deterministic key id. A production
deployment registers providers that call a packager and a key service.
"""

import logging
import os

from streamforge.modules.protection.base import (
    ProtectionProvider,
    ProtectionRequest,
    ProtectionResult,
    protection_providers,
)

logger = logging.getLogger(__name__)


class PlaceholderProtectionProvider(ProtectionProvider):
    """Shared behaviour of the development providers."""

    def license_url(self, request: ProtectionRequest) -> str:
        return f"{request.license_server.rstrip('/')}/{self.drm_type}"

    async def protect(self, request: ProtectionRequest) -> ProtectionResult:
        if not os.path.isfile(request.manifest_path):
            return self._create_failure_result(
                f"Manifest not found: {request.manifest_path}"
            )

        key_id = self.derive_key_id(request)
        logger.info(
            f"{self.drm_type} protection would be applied here in production",
            extra={"video_id": str(request.video_id), "key_id": key_id},
        )
        return self._create_success_result(key_id, self.license_url(request))


@protection_providers.register("widevine")
class WidevineProvider(PlaceholderProtectionProvider):
    """Google Widevine."""

    drm_type = "widevine"


@protection_providers.register("playready")
class PlayReadyProvider(PlaceholderProtectionProvider):
    """Microsoft PlayReady."""

    drm_type = "playready"


@protection_providers.register("fairplay")
class FairPlayProvider(PlaceholderProtectionProvider):
    """Apple FairPlay. Key delivery uses the ``skd://`` scheme."""

    drm_type = "fairplay"

    def license_url(self, request: ProtectionRequest) -> str:
        return f"skd://{self.derive_key_id(request)}"
