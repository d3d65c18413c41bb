"""Adaptive bitrate (ABR) rendition planning.

The planner probes the source and returns the rendition ladder to encode.
Ladders are always ordered by increasing bitrate; the stream builder relies
on that order for the variant order of the master playlist.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from streamforge.modules.transcoding.ffmpeg import EncoderGateway
from streamforge.modules.transcoding.models import (
    RESOLUTION_BITRATES,
    RESOLUTION_DIMENSIONS,
    Resolution,
)

logger = logging.getLogger(__name__)

_BITRATE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kKmM]?)\s*$")
_BITRATE_MULTIPLIERS = {"": 1, "k": 1_000, "m": 1_000_000}


def parse_bitrate(value: str) -> int:
    """Convert an encoder bitrate string to bits per second.

    "400k" -> 400000, "5M" -> 5000000, "1200" -> 1200.

    Raises:
        ValueError: If the string is not a bitrate.
    """
    match = _BITRATE_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid bitrate: {value!r}")
    number, suffix = match.groups()
    return int(float(number) * _BITRATE_MULTIPLIERS[suffix.lower()])


@dataclass(frozen=True)
class Rendition:
    """A single variant in an ABR ladder."""
    name: str
    width: int
    height: int
    bitrate: str  # encoder form, e.g. "2500k"

    @property
    def bandwidth(self) -> int:
        """Bitrate in bits per second."""
        return parse_bitrate(self.bitrate)

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def for_resolution(cls, resolution: Resolution) -> "Rendition":
        width, height = RESOLUTION_DIMENSIONS[resolution]
        return cls(
            name=resolution.value,
            width=width,
            height=height,
            bitrate=RESOLUTION_BITRATES[resolution],
        )


def default_ladder() -> list[Rendition]:
    """The standard five-level ladder, 240p to 1080p."""
    return [Rendition.for_resolution(resolution) for resolution in Resolution]


def validate_ladder(renditions: Sequence[Rendition]) -> tuple[bool, list[str]]:
    """Validate a rendition ladder.

    Returns:
        Tuple of (is_valid, error_messages)
    """
    errors = []

    if not renditions:
        errors.append("Ladder must have at least one rendition")

    names = set()
    prev_bandwidth = 0
    for rendition in renditions:
        if rendition.name in names:
            errors.append(f"Duplicate rendition name {rendition.name}")
        names.add(rendition.name)

        if rendition.width <= 0 or rendition.height <= 0:
            errors.append(f"Rendition {rendition.name} must have positive dimensions")

        try:
            bandwidth = rendition.bandwidth
        except ValueError as e:
            errors.append(str(e))
            continue

        if bandwidth <= prev_bandwidth:
            errors.append("Renditions must be ordered by increasing bitrate")
        prev_bandwidth = bandwidth

    return len(errors) == 0, errors


@dataclass
class SourceInfo:
    """Probed properties of the source video."""
    duration: float
    width: Optional[int] = None
    height: Optional[int] = None
    degraded: bool = False  # duration is the placeholder, not a measurement
    probe_error: Optional[str] = None


@dataclass
class RenditionPlan:
    """What to encode for one video."""
    source: SourceInfo
    renditions: list[Rendition] = field(default_factory=list)


class RenditionPlanner:
    """Decides the rendition ladder for a source video."""

    def __init__(
        self,
        gateway: EncoderGateway,
        default_duration: float = 600.0,
        ladder: Optional[Sequence[Rendition]] = None,
    ):
        renditions = list(ladder) if ladder is not None else default_ladder()
        is_valid, errors = validate_ladder(renditions)
        if not is_valid:
            raise ValueError("; ".join(errors))

        self.gateway = gateway
        self.default_duration = default_duration
        self.ladder = renditions

    async def probe_source(self, source_path: str) -> SourceInfo:
        """Probe the source, falling back to the placeholder duration."""
        probe = await self.gateway.probe(source_path)
        if probe.success and probe.duration:
            return SourceInfo(
                duration=probe.duration,
                width=probe.width,
                height=probe.height,
            )

        logger.warning(
            f"Probe failed for {source_path}, using placeholder duration "
            f"{self.default_duration}s: {probe.error_message}"
        )
        return SourceInfo(
            duration=self.default_duration,
            width=probe.width,
            height=probe.height,
            degraded=True,
            probe_error=probe.error_message,
        )

    async def plan(self, source_path: str) -> RenditionPlan:
        source = await self.probe_source(source_path)
        return RenditionPlan(source=source, renditions=list(self.ladder))
