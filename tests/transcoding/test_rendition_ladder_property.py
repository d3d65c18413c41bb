"""Property-based tests for rendition planning and the master playlist."""

import re

import pytest
from hypothesis import given, settings, strategies as st

from streamforge.modules.transcoding.abr import (
    Rendition,
    RenditionPlanner,
    default_ladder,
    parse_bitrate,
    validate_ladder,
)
from streamforge.modules.transcoding.hls import build_master_playlist
from streamforge.modules.transcoding.models import (
    RESOLUTION_BITRATES,
    RESOLUTION_DIMENSIONS,
    Resolution,
)


resolution_strategy = st.sampled_from(list(Resolution))

rendition_strategy = st.builds(
    Rendition,
    name=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=8),
    width=st.integers(min_value=16, max_value=7680),
    height=st.integers(min_value=16, max_value=4320),
    bitrate=st.integers(min_value=1, max_value=50_000).map(lambda kbps: f"{kbps}k"),
)


class TestBitrateParsing:
    """Encoder bitrate strings map to bits per second."""

    @given(kbps=st.integers(min_value=0, max_value=1_000_000))
    @settings(max_examples=100)
    def test_kilobit_suffix(self, kbps: int) -> None:
        assert parse_bitrate(f"{kbps}k") == kbps * 1000
        assert parse_bitrate(f"{kbps}K") == kbps * 1000

    @given(mbps=st.integers(min_value=0, max_value=1000))
    @settings(max_examples=50)
    def test_megabit_suffix(self, mbps: int) -> None:
        assert parse_bitrate(f"{mbps}M") == mbps * 1_000_000

    def test_plain_number_is_bits(self) -> None:
        assert parse_bitrate("1200") == 1200

    @pytest.mark.parametrize("value", ["", "fast", "k", "12x", "-400k"])
    def test_rejects_garbage(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_bitrate(value)


class TestDefaultLadder:
    """The default ladder covers 240p to 1080p in increasing bitrate order."""

    @given(resolution=resolution_strategy)
    @settings(max_examples=20)
    def test_rendition_matches_resolution_table(self, resolution: Resolution) -> None:
        rendition = Rendition.for_resolution(resolution)
        width, height = RESOLUTION_DIMENSIONS[resolution]

        assert rendition.name == resolution.value
        assert (rendition.width, rendition.height) == (width, height)
        assert rendition.bitrate == RESOLUTION_BITRATES[resolution]
        assert rendition.resolution == f"{width}x{height}"

    def test_default_ladder_is_valid(self) -> None:
        ladder = default_ladder()
        is_valid, errors = validate_ladder(ladder)

        assert is_valid, errors
        assert [r.name for r in ladder] == ["240p", "360p", "480p", "720p", "1080p"]
        assert [r.bandwidth for r in ladder] == [400_000, 700_000, 1_200_000, 2_500_000, 5_000_000]

    def test_empty_ladder_is_invalid(self) -> None:
        is_valid, errors = validate_ladder([])
        assert not is_valid
        assert errors

    def test_unordered_ladder_is_invalid(self) -> None:
        ladder = list(reversed(default_ladder()))
        is_valid, errors = validate_ladder(ladder)
        assert not is_valid
        assert any("increasing bitrate" in e for e in errors)

    def test_duplicate_names_are_invalid(self) -> None:
        ladder = [
            Rendition("sd", 640, 360, "700k"),
            Rendition("sd", 1280, 720, "2500k"),
        ]
        is_valid, errors = validate_ladder(ladder)
        assert not is_valid

    def test_planner_rejects_invalid_ladder(self, gateway) -> None:
        with pytest.raises(ValueError):
            RenditionPlanner(gateway, ladder=[Rendition("broken", 0, 0, "100k")])


class TestRenditionPlanner:
    """Probing the source, with a placeholder duration when probing fails."""

    @pytest.mark.asyncio
    async def test_probed_duration_is_used(self, gateway) -> None:
        gateway.duration = 42.5
        plan = await RenditionPlanner(gateway, default_duration=600).plan("/in/video.mp4")

        assert plan.source.duration == 42.5
        assert not plan.source.degraded
        assert (plan.source.width, plan.source.height) == (1920, 1080)
        assert [r.name for r in plan.renditions] == [r.name for r in default_ladder()]
        assert gateway.probes == ["/in/video.mp4"]

    @pytest.mark.asyncio
    async def test_failed_probe_falls_back_to_placeholder(self, gateway) -> None:
        gateway.duration = None
        plan = await RenditionPlanner(gateway, default_duration=600).plan("/in/video.mp4")

        assert plan.source.duration == 600
        assert plan.source.degraded
        assert plan.source.probe_error
        assert len(plan.renditions) == 5


class TestMasterPlaylist:
    """The master playlist lists every variant in increasing bandwidth order."""

    @given(renditions=st.lists(rendition_strategy, min_size=1, max_size=8))
    @settings(max_examples=100)
    def test_variants_are_ordered_by_bandwidth(self, renditions: list[Rendition]) -> None:
        playlist = build_master_playlist(renditions)
        lines = playlist.splitlines()

        assert lines[0] == "#EXTM3U"
        assert lines[1] == "#EXT-X-VERSION:3"

        bandwidths = [
            int(m.group(1))
            for m in (re.match(r"#EXT-X-STREAM-INF:BANDWIDTH=(\d+),", line) for line in lines)
            if m
        ]
        assert len(bandwidths) == len(renditions)
        assert bandwidths == sorted(bandwidths)

    def test_default_ladder_playlist(self) -> None:
        playlist = build_master_playlist(list(reversed(default_ladder())))

        assert playlist == (
            "#EXTM3U\n"
            "#EXT-X-VERSION:3\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=400000,RESOLUTION=426x240\n"
            "240p/playlist.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=700000,RESOLUTION=640x360\n"
            "360p/playlist.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=1200000,RESOLUTION=854x480\n"
            "480p/playlist.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=2500000,RESOLUTION=1280x720\n"
            "720p/playlist.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080\n"
            "1080p/playlist.m3u8\n"
        )
