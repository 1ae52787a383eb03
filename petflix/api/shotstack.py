"""
Shotstack Render Client
=======================

Stitches finished clips into one video with Shotstack's cloud render API.

The service does all of the encoding; this client only builds a timeline,
submits it and polls the render job until it produces an output URL.
"""

import logging
from typing import Optional, List, Dict, Any, Sequence, Callable

import httpx

from .base import BaseApiClient, RetryPolicy, SleepFunc
from ..core.exceptions import (
    ApiConfigError,
    ApiRequestError,
    RenderSubmitError,
    RenderFailedError,
    RenderPollError,
)
from ..core.models import ClipResult, RenderJob, RenderState
from ..utils.image_utils import is_remote_ref

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://api.shotstack.io/stage/render"
DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_MAX_POLL_ATTEMPTS = 40

VALID_RESOLUTIONS = ("sd", "hd", "1080")

# Stitching sub-progress reported for each render status
STATUS_PROGRESS = {
    RenderState.SUBMITTED: 0.05,
    RenderState.QUEUED: 0.15,
    RenderState.RENDERING: 0.5,
    RenderState.SAVING: 0.9,
    RenderState.DONE: 1.0,
}


# =============================================================================
# Timeline
# =============================================================================


def build_timeline(clips: Sequence[ClipResult], resolution: str = "hd") -> Dict[str, Any]:
    """
    Build a Shotstack edit: one track, clips laid end to end.

    Every clip gets an explicit start and length, so the render never has to
    guess a clip's duration.

    Args:
        clips: Clips in playback order
        resolution: Output resolution ('sd', 'hd' or '1080')

    Returns:
        Edit payload ready for submission

    Raises:
        ValueError: If there are no clips, a clip is malformed, or the
            resolution is not supported
    """
    if resolution not in VALID_RESOLUTIONS:
        raise ValueError(f"Invalid resolution: {resolution!r}. Must be one of {VALID_RESOLUTIONS}")
    if not clips:
        raise ValueError("Timeline requires at least one clip")

    for clip in clips:
        if not isinstance(clip.video_ref, str) or not clip.video_ref:
            raise ValueError(f"Clip {clip.clip_index} has no video reference")
        if not clip.duration_seconds > 0:
            raise ValueError(f"Clip {clip.clip_index} has a non-positive duration")

    if any(not is_remote_ref(clip.video_ref) for clip in clips):
        logger.warning("Timeline contains non-HTTP clip references; Shotstack needs public URLs")

    timeline_clips = []
    start = 0.0
    for clip in clips:
        timeline_clips.append({
            "asset": {"type": "video", "src": clip.video_ref},
            "start": start,
            "length": clip.duration_seconds,
        })
        start += clip.duration_seconds

    return {
        "timeline": {"tracks": [{"clips": timeline_clips}]},
        "output": {"format": "mp4", "resolution": resolution},
    }


# =============================================================================
# Client
# =============================================================================


class ShotstackClient(BaseApiClient):
    """
    Shotstack render API client.

    Usage:
        async with ShotstackClient(api_key="...") as stitcher:
            url = await stitcher.stitch(clips)
    """

    provider_name = "shotstack"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        resolution: str = "hd",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        timeout: float = 60.0,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        super().__init__(
            api_key=api_key,
            base_url=api_url,
            timeout=timeout,
            retry_policy=retry_policy,
            transport=transport,
            sleep=sleep,
        )
        self.resolution = resolution
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

    @classmethod
    def from_config(cls, config, **kwargs) -> "ShotstackClient":
        render = config.render
        options = {
            "api_key": render.api_key,
            "api_url": render.api_url,
            "resolution": render.resolution,
            "poll_interval": render.poll_interval,
            "max_poll_attempts": render.max_poll_attempts,
            "timeout": render.request_timeout,
            "retry_policy": RetryPolicy.from_config(config.retry),
        }
        options.update(kwargs)
        return cls(**options)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "Content-Type": "application/json",
        }

    async def submit_render_job(self, timeline: Dict[str, Any]) -> str:
        """
        Submit an edit for rendering.

        Args:
            timeline: Payload from ``build_timeline``

        Returns:
            Render job id

        Raises:
            ApiConfigError: If no API key is configured
            RenderSubmitError: If the job was not accepted
        """
        if not self.is_configured:
            raise ApiConfigError("No Shotstack API key configured", provider=self.provider_name)

        clip_count = len(timeline["timeline"]["tracks"][0]["clips"])
        logger.info(f"Submitting render job with {clip_count} clip(s)")

        try:
            response = await self._request("POST", self.base_url, idempotent=False, json=timeline)
        except httpx.TransportError as e:
            raise RenderSubmitError(
                f"Render submission failed: {e.__class__.__name__}",
                details={"reason": str(e)},
            ) from e

        if response.status_code >= 400:
            raise RenderSubmitError(
                f"Render submission failed with HTTP {response.status_code}",
                details={"status_code": response.status_code, "response_body": response.text[:500]},
            )

        data = self._json(response)
        job_id = (data.get("response") or {}).get("id")
        if not data.get("success") or not job_id:
            raise RenderSubmitError(
                f"Render submission rejected: {data.get('message') or 'invalid response structure'}",
            )

        logger.info(f"Render job submitted: {job_id}")
        return job_id

    async def check_render_job(self, job_id: str) -> RenderJob:
        """
        Query a render job once.

        Raises:
            ApiRequestError: On a non-success HTTP or API response
            httpx.TransportError: On a transport failure
        """
        response = await self._request(
            "GET", f"{self.base_url}/{job_id}", idempotent=True, retry=False
        )
        if response.status_code >= 400:
            raise self._error_from_response(response, "render status")

        data = self._json(response)
        body = data.get("response") or {}
        if not data.get("success"):
            raise ApiRequestError(
                f"Render status error: {data.get('message') or body.get('error') or 'unknown'}",
                provider=self.provider_name,
                recoverable=True,
            )

        return RenderJob(
            job_id=job_id,
            state=RenderState.from_provider_status(body.get("status")),
            output_ref=body.get("url"),
            error=body.get("error"),
        )

    async def poll_render_job(
        self,
        job_id: str,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> str:
        """
        Poll a render job until it finishes.

        Args:
            job_id: Id from ``submit_render_job``
            on_progress: Called with the stitching sub-progress

        Returns:
            URL of the rendered video

        Raises:
            RenderFailedError: If the render failed or produced no URL
            RenderPollError: If the poll budget ran out or the status
                endpoint answered with a non-retryable error
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_poll_attempts + 1):
            try:
                job = await self.check_render_job(job_id)
            except (httpx.TransportError, ApiRequestError) as e:
                if isinstance(e, ApiRequestError) and not e.recoverable:
                    raise RenderPollError(
                        f"Render status for {job_id} failed: {e.message}",
                        details=e.details,
                    ) from e
                last_error = e
                logger.warning(f"Render poll {attempt}/{self.max_poll_attempts} failed: {e}")
            else:
                logger.debug(f"Render job {job_id} status: {job.state.value}")

                if job.state.is_terminal:
                    if job.state == RenderState.FAILED:
                        raise RenderFailedError(
                            f"Render job {job_id} failed: {job.error or 'unknown'}",
                            details={"job_id": job_id},
                        )
                    if not job.output_ref:
                        raise RenderFailedError(
                            f"Render job {job_id} finished without an output URL",
                            details={"job_id": job_id},
                        )
                    if on_progress:
                        on_progress(1.0)
                    logger.info(f"Render job {job_id} finished: {job.output_ref}")
                    return job.output_ref

                if on_progress:
                    on_progress(STATUS_PROGRESS.get(job.state, 0.5))

            if attempt < self.max_poll_attempts:
                await self._sleep(self.poll_interval)

        reason = f"last error: {last_error}" if last_error else "max polling attempts reached"
        raise RenderPollError(
            f"Render job {job_id} did not finish ({reason})",
            details={"job_id": job_id, "attempts": self.max_poll_attempts},
        )

    async def stitch(
        self,
        clips: List[ClipResult],
        resolution: Optional[str] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> str:
        """
        Build, submit and poll a render for the given clips.

        Args:
            clips: Successful clips in order
            resolution: Output resolution (defaults to the client's)
            on_progress: Stitching sub-progress callback

        Returns:
            URL of the stitched video
        """
        timeline = build_timeline(clips, resolution or self.resolution)
        job_id = await self.submit_render_job(timeline)
        if on_progress:
            on_progress(STATUS_PROGRESS[RenderState.SUBMITTED])
        return await self.poll_render_job(job_id, on_progress)
