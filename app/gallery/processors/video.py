"""
Video poster frame extraction.

Uses FFmpeg via subprocess with an argument list (never a shell string)
and a timeout. Failure modes:
- Corrupted video files or unsupported codecs (non-zero exit)
- Videos shorter than the seek position (no frame written)
- Missing ffmpeg binary or timeout (transient)

The frame is written to a temporary sibling and renamed into place.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile

from gallery.processors.base import (
    VIDEO_FRAME_POSITION,
    VIDEO_FRAME_TIMEOUT,
    ThumbnailSpec,
    TransformResult,
    discard_partial_output,
)

logger = logging.getLogger(__name__)


class VideoFrameExtractor:
    """
    ffmpeg-backed transform producing one scaled JPEG frame.

    Attributes:
        ffmpeg_binary: Executable name or path
        position: Seek position of the extracted frame
        timeout: Seconds before the ffmpeg process is killed
    """

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        position: str = VIDEO_FRAME_POSITION,
        timeout: int = VIDEO_FRAME_TIMEOUT,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.position = position
        self.timeout = timeout

    def build_command(self, input_path: str, output_path: str, spec: ThumbnailSpec) -> list[str]:
        """Argument list for one frame at self.position scaled to spec.width."""
        # ffmpeg's -q:v runs 2 (best) to 31 (worst)
        qscale = max(2, min(31, round(31 - spec.quality * 29 / 100)))
        cmd = [
            self.ffmpeg_binary,
            "-y",  # Overwrite output
            "-ss",
            self.position,
            "-i",
            input_path,
            "-vframes",
            "1",  # Extract single frame
            "-vf",
            f"scale={spec.width}:-1",
            "-q:v",
            str(qscale),
        ]
        if spec.strip:
            cmd += ["-map_metadata", "-1"]
        cmd += ["-f", "image2", "-update", "1", output_path]
        return cmd

    def transform(
        self,
        input_path: str,
        output_path: str,
        spec: ThumbnailSpec,
    ) -> TransformResult:
        """Extract a poster frame from input_path into output_path."""
        output_dir = os.path.dirname(output_path)
        os.makedirs(output_dir, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=output_dir, suffix=".jpg")
        os.close(fd)

        try:
            result = subprocess.run(
                self.build_command(input_path, temp_path, spec),
                capture_output=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            discard_partial_output(temp_path)
            logger.warning(
                "FFmpeg timed out extracting frame",
                extra={"input_path": input_path, "timeout": self.timeout},
            )
            return TransformResult.fail(
                f"FFmpeg timed out after {self.timeout} seconds", transient=True
            )
        except FileNotFoundError:
            discard_partial_output(temp_path)
            logger.error(
                "FFmpeg binary not found",
                extra={"ffmpeg_binary": self.ffmpeg_binary},
            )
            return TransformResult.fail("FFmpeg is not installed", transient=True)

        if result.returncode != 0 or os.path.getsize(temp_path) == 0:
            discard_partial_output(temp_path)
            stderr = result.stderr.decode(errors="replace") if result.stderr else ""
            logger.warning(
                "Failed to extract frame from video",
                extra={
                    "input_path": input_path,
                    "returncode": result.returncode,
                    "stderr": stderr[:500],  # Truncate long errors
                },
            )
            return TransformResult.fail("Failed to extract frame from video")

        os.replace(temp_path, output_path)
        logger.info(
            "Extracted video frame",
            extra={"input_path": input_path, "output_path": output_path},
        )
        return TransformResult.ok(output_path)
