"""Tests for the pluggable protection stage."""

import os
import uuid

import pytest

from streamforge.core.registry import ProviderRegistry, UnknownProviderError
from streamforge.modules.processing.results import StageOutcome
from streamforge.modules.protection import ProtectionStage, protection_providers
from streamforge.modules.protection.base import ProtectionRequest


def write_manifest(storage, video_id) -> str:
    path = storage.master_playlist_path(video_id)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write("#EXTM3U\n")
    return path


class TestRegistry:

    def test_bundled_providers(self):
        assert protection_providers.names() == ["fairplay", "playready", "widevine"]
        assert "Widevine" in protection_providers

    def test_unknown_provider(self):
        registry = ProviderRegistry("example")

        with pytest.raises(UnknownProviderError) as exc_info:
            registry.create("missing")
        assert isinstance(exc_info.value, LookupError)
        assert "available: none" in str(exc_info.value)


class TestProtectionStage:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ["widevine", "playready", "fairplay"])
    async def test_protects_existing_stream(self, storage, provider):
        video_id = uuid.uuid4()
        write_manifest(storage, video_id)
        stage = ProtectionStage(
            storage, provider, license_server="https://drm.example.com/", content_key="k1"
        )

        result = await stage.apply(video_id)

        assert result.outcome == StageOutcome.SUCCESS
        assert result.data["drm_type"] == provider
        assert uuid.UUID(result.data["key_id"])
        if provider == "fairplay":
            assert result.data["license_url"].startswith("skd://")
        else:
            assert result.data["license_url"] == f"https://drm.example.com/{provider}"

    @pytest.mark.asyncio
    async def test_key_id_is_deterministic(self, storage):
        video_id = uuid.uuid4()
        write_manifest(storage, video_id)
        stage = ProtectionStage(storage, "widevine", license_server="https://drm", content_key="k1")

        first = await stage.apply(video_id)
        second = await stage.apply(video_id)

        assert first.data["key_id"] == second.data["key_id"]

    @pytest.mark.asyncio
    async def test_missing_manifest(self, storage):
        stage = ProtectionStage(storage, "widevine", license_server="https://drm", content_key="k1")

        result = await stage.apply(uuid.uuid4())

        assert result.outcome == StageOutcome.FAILED
        assert "Manifest not found" in result.error

    @pytest.mark.asyncio
    async def test_missing_key_material(self, storage):
        result = await ProtectionStage(storage, "widevine").apply(uuid.uuid4())
        assert result.outcome == StageOutcome.FAILED

    def test_key_id_differs_per_drm(self):
        request = ProtectionRequest(
            video_id=uuid.uuid4(), manifest_path="m", license_server="s", content_key="k"
        )
        widevine = protection_providers.create("widevine").derive_key_id(request)
        playready = protection_providers.create("playready").derive_key_id(request)

        assert widevine != playready
