"""FFmpeg encoder gateway.

Every stage that needs the encoder or the prober goes through an
``EncoderGateway``. The FFmpeg implementation runs the binaries as asyncio
subprocesses; if the awaiting task is cancelled (for example by the job
timeout) the child process is killed before the cancellation propagates.
"""

import asyncio
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from streamforge.core.metrics import ENCODER_INVOCATIONS_TOTAL

logger = logging.getLogger(__name__)

# Bytes of stderr kept in error messages
STDERR_TAIL = 2000


@dataclass
class EncodeResult:
    """Result of an encoder invocation."""
    success: bool
    output_path: str
    returncode: Optional[int] = None
    duration: float = 0.0
    error_message: Optional[str] = None


@dataclass
class ProbeResult:
    """Media information reported by the prober."""
    success: bool
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    error_message: Optional[str] = None


class EncoderGateway(ABC):
    """Uniform interface to the external encoder and prober."""

    @abstractmethod
    async def encode(
        self,
        input_path: str,
        args: Sequence[str],
        output_path: str,
    ) -> EncodeResult:
        """Run the encoder on ``input_path`` with ``args``, writing ``output_path``."""

    @abstractmethod
    async def probe(self, input_path: str) -> ProbeResult:
        """Read duration and dimensions of ``input_path``."""


class FFmpegTranscoder(EncoderGateway):
    """Encoder gateway backed by the ffmpeg and ffprobe binaries."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        threads: Optional[int] = None,
    ):
        """Initialize transcoder.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            ffprobe_path: Path to ffprobe binary
            threads: Encoder thread count, None lets ffmpeg decide
        """
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.threads = threads

    def build_encode_command(
        self,
        input_path: str,
        args: Sequence[str],
        output_path: str,
    ) -> list[str]:
        """Build the ffmpeg command line for an encode.

        Args:
            input_path: Source media
            args: Output options (filters, codecs, muxer settings)
            output_path: Destination file

        Returns:
            FFmpeg command as list of arguments
        """
        cmd = [
            self.ffmpeg_path,
            "-y",  # Overwrite output
            "-hide_banner",
            "-loglevel", "error",
            "-i", input_path,
        ]
        cmd.extend(args)
        if self.threads:
            cmd.extend(["-threads", str(self.threads)])
        cmd.append(output_path)
        return cmd

    def build_probe_command(self, input_path: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            input_path,
        ]

    async def _run(self, cmd: list[str]) -> tuple[int, bytes, bytes]:
        """Run a command, killing it if the caller is cancelled."""
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
            logger.warning(f"Killed {cmd[0]} (pid {process.pid}) after cancellation")
            raise
        return process.returncode, stdout, stderr

    async def encode(
        self,
        input_path: str,
        args: Sequence[str],
        output_path: str,
    ) -> EncodeResult:
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        cmd = self.build_encode_command(input_path, args, output_path)
        logger.debug(f"Running encoder: {' '.join(cmd)}")

        started = time.monotonic()
        try:
            returncode, _, stderr = await self._run(cmd)
        except OSError as e:
            ENCODER_INVOCATIONS_TOTAL.labels(operation="encode", result="error").inc()
            return EncodeResult(
                success=False,
                output_path=output_path,
                error_message=f"Could not start encoder: {e}",
            )
        elapsed = time.monotonic() - started

        if returncode != 0:
            ENCODER_INVOCATIONS_TOTAL.labels(operation="encode", result="failure").inc()
            message = stderr.decode(errors="replace").strip()[-STDERR_TAIL:]
            return EncodeResult(
                success=False,
                output_path=output_path,
                returncode=returncode,
                duration=elapsed,
                error_message=f"Encoder exited with code {returncode}: {message}",
            )

        ENCODER_INVOCATIONS_TOTAL.labels(operation="encode", result="success").inc()
        return EncodeResult(
            success=True,
            output_path=output_path,
            returncode=returncode,
            duration=elapsed,
        )

    async def probe(self, input_path: str) -> ProbeResult:
        cmd = self.build_probe_command(input_path)
        try:
            returncode, stdout, stderr = await self._run(cmd)
        except OSError as e:
            ENCODER_INVOCATIONS_TOTAL.labels(operation="probe", result="error").inc()
            return ProbeResult(success=False, error_message=f"Could not start prober: {e}")

        if returncode != 0:
            ENCODER_INVOCATIONS_TOTAL.labels(operation="probe", result="failure").inc()
            message = stderr.decode(errors="replace").strip()[-STDERR_TAIL:]
            return ProbeResult(
                success=False,
                error_message=f"Prober exited with code {returncode}: {message}",
            )

        result = parse_probe_output(stdout.decode(errors="replace"))
        ENCODER_INVOCATIONS_TOTAL.labels(
            operation="probe", result="success" if result.success else "failure"
        ).inc()
        return result


def parse_probe_output(output: str) -> ProbeResult:
    """Parse ffprobe JSON output into a ``ProbeResult``.

    A missing or non-positive duration counts as a failed probe.
    """
    try:
        info = json.loads(output)
    except json.JSONDecodeError as e:
        return ProbeResult(success=False, error_message=f"Invalid prober output: {e}")

    duration = None
    try:
        duration = float(info.get("format", {}).get("duration"))
    except (TypeError, ValueError):
        pass

    width = height = None
    for stream in info.get("streams", []):
        if stream.get("codec_type") == "video":
            width = stream.get("width")
            height = stream.get("height")
            break

    if duration is None or duration <= 0:
        return ProbeResult(
            success=False,
            width=width,
            height=height,
            error_message="Prober reported no usable duration",
        )

    return ProbeResult(success=True, duration=duration, width=width, height=height)
