"""Transcoding: encoder gateway, rendition planning, HLS output and thumbnails."""

from streamforge.modules.transcoding.abr import (
    Rendition,
    RenditionPlan,
    RenditionPlanner,
    SourceInfo,
    default_ladder,
    parse_bitrate,
)
from streamforge.modules.transcoding.ffmpeg import (
    EncodeResult,
    EncoderGateway,
    FFmpegTranscoder,
    ProbeResult,
)
from streamforge.modules.transcoding.hls import AdaptiveStreamBuilder, build_master_playlist
from streamforge.modules.transcoding.storage import MediaStorage
from streamforge.modules.transcoding.thumbnails import ThumbnailExtractor

__all__ = [
    "Rendition",
    "RenditionPlan",
    "RenditionPlanner",
    "SourceInfo",
    "default_ladder",
    "parse_bitrate",
    "EncodeResult",
    "EncoderGateway",
    "FFmpegTranscoder",
    "ProbeResult",
    "AdaptiveStreamBuilder",
    "build_master_playlist",
    "MediaStorage",
    "ThumbnailExtractor",
]
