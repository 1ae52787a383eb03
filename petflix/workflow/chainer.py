"""
Continuity Extractor
====================

Handles frame chaining between consecutive clips: the last frame of clip N
becomes the seed image of clip N+1, which keeps the subject and setting
visually continuous across the story.

Requires ``ffmpeg`` and ``ffprobe`` on PATH.
"""

import asyncio
import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Callable, Awaitable, Union

import aiofiles
import httpx

from ..api.base import BaseApiClient, RetryPolicy, SleepFunc
from ..core.config import ContinuityConfig
from ..core.exceptions import ImageLoadError
from ..utils.image_utils import is_remote_ref, local_path, jpeg_data_uri

logger = logging.getLogger(__name__)


CommandRunner = Callable[[List[str], float], Awaitable[subprocess.CompletedProcess]]


@dataclass(frozen=True)
class FrameExtraction:
    """Seed image for the next clip, plus the measured length of this one."""

    image_data_ref: str
    duration_seconds: float


async def run_command(cmd: List[str], timeout: float) -> subprocess.CompletedProcess:
    """Run a command in a worker thread so the event loop keeps running."""
    return await asyncio.to_thread(
        subprocess.run, cmd, capture_output=True, text=True, timeout=timeout
    )


class ContinuityExtractor(BaseApiClient):
    """
    Extracts the last frame and duration of a finished clip.

    Remote clips are downloaded into a private temp directory that is removed
    on every exit path; local files are read in place.
    """

    provider_name = "download"

    def __init__(
        self,
        frame_offset_seconds: float = 0.1,
        jpeg_quality: int = 80,
        max_dimension: int = 1280,
        subprocess_timeout: float = 30.0,
        work_dir: Optional[Union[str, Path]] = None,
        timeout: float = 60.0,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFunc] = None,
        runner: Optional[CommandRunner] = None,
    ):
        super().__init__(timeout=timeout, retry_policy=retry_policy, transport=transport, sleep=sleep)
        self.frame_offset_seconds = frame_offset_seconds
        self.jpeg_quality = jpeg_quality
        self.max_dimension = max_dimension
        self.subprocess_timeout = subprocess_timeout
        self.work_dir = Path(work_dir).expanduser() if work_dir else None
        self._run = runner or run_command

    @classmethod
    def from_config(
        cls,
        config: ContinuityConfig,
        retry_policy: Optional[RetryPolicy] = None,
        **kwargs,
    ) -> "ContinuityExtractor":
        return cls(
            frame_offset_seconds=config.frame_offset_seconds,
            jpeg_quality=config.jpeg_quality,
            max_dimension=config.max_dimension,
            subprocess_timeout=config.subprocess_timeout,
            work_dir=config.work_dir,
            retry_policy=retry_policy,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def extract_last_frame(self, video_ref: str) -> FrameExtraction:
        """
        Extract the frame just before the end of a clip.

        Args:
            video_ref: URL, ``file://`` URI or local path of the clip

        Returns:
            JPEG data URI of the frame and the clip's measured duration

        Raises:
            ImageLoadError: If any step fails
        """
        temp_dir: Optional[Path] = None
        try:
            temp_dir = self._make_temp_dir()
            video_path = await self._localize(video_ref, temp_dir)
            duration = await self._probe_duration(video_path)

            frame_path = temp_dir / "last_frame.jpg"
            position = max(0.0, duration - self.frame_offset_seconds)
            await self._check_run(
                [
                    "ffmpeg", "-y",
                    "-ss", f"{position:.3f}",
                    "-i", str(video_path),
                    "-frames:v", "1",
                    "-q:v", "2",
                    str(frame_path),
                ],
                "ffmpeg",
            )
            if not frame_path.exists():
                raise ImageLoadError("ffmpeg produced no frame", details={"video_ref": video_ref[:200]})

            data_uri = await asyncio.to_thread(
                jpeg_data_uri, frame_path, self.max_dimension, self.jpeg_quality
            )
            logger.info(f"Extracted last frame at {position:.2f}s of {duration:.2f}s clip")
            return FrameExtraction(image_data_ref=data_uri, duration_seconds=duration)

        except ImageLoadError:
            raise
        except (OSError, ValueError, subprocess.SubprocessError, httpx.HTTPError) as e:
            raise ImageLoadError(
                f"Last frame extraction failed: {e.__class__.__name__}: {e}",
                details={"video_ref": video_ref[:200]},
            ) from e
        finally:
            if temp_dir is not None:
                shutil.rmtree(temp_dir, ignore_errors=True)

    async def measure_duration(self, video_ref: str) -> float:
        """
        Probe a clip's duration in seconds.

        Raises:
            ImageLoadError: If the clip cannot be fetched or probed
        """
        temp_dir: Optional[Path] = None
        try:
            temp_dir = self._make_temp_dir()
            video_path = await self._localize(video_ref, temp_dir)
            return await self._probe_duration(video_path)
        except ImageLoadError:
            raise
        except (OSError, ValueError, subprocess.SubprocessError, httpx.HTTPError) as e:
            raise ImageLoadError(
                f"Duration probe failed: {e.__class__.__name__}: {e}",
                details={"video_ref": video_ref[:200]},
            ) from e
        finally:
            if temp_dir is not None:
                shutil.rmtree(temp_dir, ignore_errors=True)

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    def _make_temp_dir(self) -> Path:
        if self.work_dir:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="petflix_frame_", dir=self.work_dir))

    async def _localize(self, video_ref: str, temp_dir: Path) -> Path:
        """Return a local path for the clip, downloading it if remote."""
        if not is_remote_ref(video_ref):
            path = local_path(video_ref)
            if not path.is_file():
                raise ImageLoadError(f"Video not found: {path}")
            return path

        response = await self._request("GET", video_ref, idempotent=True, follow_redirects=True)
        if response.status_code >= 400:
            raise ImageLoadError(
                f"Clip download failed with HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        path = temp_dir / "clip.mp4"
        async with aiofiles.open(path, "wb") as f:
            await f.write(response.content)

        logger.debug(f"Downloaded clip ({len(response.content)} bytes) to {path}")
        return path

    async def _probe_duration(self, video_path: Path) -> float:
        result = await self._check_run(
            [
                "ffprobe", "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                str(video_path),
            ],
            "ffprobe",
        )
        duration = float((result.stdout or "").strip())
        if not duration > 0:
            raise ImageLoadError(f"ffprobe reported a non-positive duration: {duration}")
        return duration

    async def _check_run(self, cmd: List[str], name: str) -> subprocess.CompletedProcess:
        result = await self._run(cmd, self.subprocess_timeout)
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()[-300:]
            raise ImageLoadError(
                f"{name} exited with code {result.returncode}",
                details={"stderr": stderr},
            )
        return result
