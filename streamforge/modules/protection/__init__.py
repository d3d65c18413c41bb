"""Pluggable stream protection (DRM)."""

from streamforge.modules.protection.base import (
    ProtectionProvider,
    ProtectionRequest,
    ProtectionResult,
    protection_providers,
)
from streamforge.modules.protection.stage import ProtectionStage

__all__ = [
    "ProtectionProvider",
    "ProtectionRequest",
    "ProtectionResult",
    "protection_providers",
    "ProtectionStage",
]
