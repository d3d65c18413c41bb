"""Rendition definitions for adaptive streaming output."""

from enum import Enum


class Resolution(str, Enum):
    """Output resolutions of the default rendition ladder."""
    RES_240P = "240p"
    RES_360P = "360p"
    RES_480P = "480p"
    RES_720P = "720p"
    RES_1080P = "1080p"


# Resolution dimensions mapping (width, height)
RESOLUTION_DIMENSIONS = {
    Resolution.RES_240P: (426, 240),
    Resolution.RES_360P: (640, 360),
    Resolution.RES_480P: (854, 480),
    Resolution.RES_720P: (1280, 720),
    Resolution.RES_1080P: (1920, 1080),
}

# Video bitrate per resolution, as passed to the encoder
RESOLUTION_BITRATES = {
    Resolution.RES_240P: "400k",
    Resolution.RES_360P: "700k",
    Resolution.RES_480P: "1200k",
    Resolution.RES_720P: "2500k",
    Resolution.RES_1080P: "5000k",
}
