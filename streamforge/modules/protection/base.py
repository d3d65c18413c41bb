"""Protection (DRM) provider contract."""

import hashlib
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from streamforge.core.registry import ProviderRegistry


@dataclass
class ProtectionRequest:
    """Everything a provider needs to protect one video's stream."""
    video_id: uuid.UUID
    manifest_path: str
    license_server: str
    content_key: str
    api_key: str = ""


@dataclass
class ProtectionResult:
    """Result of a protection attempt."""
    success: bool
    drm_type: str
    key_id: Optional[str] = None
    license_url: Optional[str] = None
    error_message: Optional[str] = None


class ProtectionProvider(ABC):
    """Base class for DRM providers."""

    drm_type: str = "base"

    @abstractmethod
    async def protect(self, request: ProtectionRequest) -> ProtectionResult:
        """Protect the stream described by ``request``.

        Args:
            request: Video, manifest and key material

        Returns:
            ProtectionResult with the key id on success
        """
        pass

    def derive_key_id(self, request: ProtectionRequest) -> str:
        """Deterministic key id for a video and content key."""
        digest = hashlib.sha256(
            f"{self.drm_type}:{request.video_id}:{request.content_key}".encode()
        ).hexdigest()
        return str(uuid.UUID(digest[:32]))

    def _create_success_result(
        self,
        key_id: str,
        license_url: Optional[str] = None,
    ) -> ProtectionResult:
        return ProtectionResult(
            success=True,
            drm_type=self.drm_type,
            key_id=key_id,
            license_url=license_url,
        )

    def _create_failure_result(self, error: str) -> ProtectionResult:
        return ProtectionResult(
            success=False,
            drm_type=self.drm_type,
            error_message=error,
        )


protection_providers: ProviderRegistry[ProtectionProvider] = ProviderRegistry("protection")
