"""
Remote Task Client
==================

Abstract client for asynchronous generation services: submit a task, then
poll it until it reaches a terminal state.

Subclasses provide the wire format; the polling loop, progress reporting and
error classification live here so every provider behaves the same way.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, List, Sequence, Callable

import httpx

from .base import BaseApiClient, RetryPolicy, SleepFunc
from ..core.exceptions import (
    ApiConfigError,
    ApiRequestError,
    ApiTimeoutError,
    VideoGenerationError,
)
from ..core.models import ClipDuration, ClipResult, GenerationTask, TaskState
from ..utils.image_utils import prepare_image_ref

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[float], None]

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_MAX_POLLING_DURATION = 300.0
DEFAULT_CLIP_DURATION = 4.0


class RemoteTaskClient(BaseApiClient, ABC):
    """
    Base class for generation providers.

    Features:
    - Uniform create/poll contract across providers
    - Poll-level retry of transient failures on the next tick
    - Injectable clock and sleep so polling is testable without real time
    """

    provider_name = "remote"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        clip_duration: float = DEFAULT_CLIP_DURATION,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polling_duration: float = DEFAULT_MAX_POLLING_DURATION,
        timeout: float = 60.0,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFunc] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(
            api_key=api_key,
            base_url=base_url or self.default_base_url,
            timeout=timeout,
            retry_policy=retry_policy,
            transport=transport,
            sleep=sleep,
        )
        self.model = model or self.default_model
        self.clip_duration = clip_duration
        self.poll_interval = poll_interval
        self.max_polling_duration = max_polling_duration
        self._clock = clock or time.monotonic

    # -------------------------------------------------------------------------
    # Abstract Methods (must be implemented by subclasses)
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def default_base_url(self) -> str:
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        pass

    @abstractmethod
    async def _submit(
        self,
        prompt: str,
        seed_image: str,
        reference_images: List[str],
    ) -> str:
        """
        Send the creation request.

        Args:
            prompt: Final prompt text
            seed_image: Seed image as URL or data URI
            reference_images: Reference images as URLs or data URIs

        Returns:
            The provider's task id
        """
        pass

    @abstractmethod
    async def check_task(self, task_id: str) -> GenerationTask:
        """
        Query a task's status once.

        Raises:
            ApiRequestError: On a non-success response
            httpx.TransportError: On a transport failure
        """
        pass

    # -------------------------------------------------------------------------
    # Shared Implementation Methods
    # -------------------------------------------------------------------------

    def _require_credentials(self) -> None:
        if not self.is_configured:
            raise ApiConfigError(
                f"No API key configured for {self.provider_name}",
                provider=self.provider_name,
            )

    async def create_task(
        self,
        prompt: str,
        seed_image_ref: str,
        reference_image_refs: Sequence[str] = (),
    ) -> str:
        """
        Submit a generation task.

        Args:
            prompt: Scene prompt
            seed_image_ref: Photo or previous clip's last frame
            reference_image_refs: Extra style/character references

        Returns:
            Task id to poll

        Raises:
            ApiConfigError: If credentials are missing
            ImageLoadError: If a local image cannot be read
            ApiRequestError: If the service rejects the request
        """
        self._require_credentials()

        seed_image = prepare_image_ref(seed_image_ref)
        references = [prepare_image_ref(ref) for ref in reference_image_refs]

        logger.info(
            f"Creating {self.provider_name} task ({len(references)} reference image(s))"
        )
        try:
            task_id = await self._submit(prompt, seed_image, references)
        except httpx.TransportError as e:
            raise ApiRequestError(
                f"{self.provider_name} create request failed: {e.__class__.__name__}",
                provider=self.provider_name,
            ) from e

        if not task_id:
            raise ApiRequestError(
                f"{self.provider_name} response did not include a task id",
                provider=self.provider_name,
            )

        logger.info(f"{self.provider_name} task created: {task_id}")
        return task_id

    async def poll_task(
        self,
        task_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ClipResult:
        """
        Wait for a task to finish.

        Args:
            task_id: Task id from ``create_task``
            on_progress: Called with a fraction in [0, 1] on every tick

        Returns:
            The finished clip with an estimated duration

        Raises:
            VideoGenerationError: If the task failed upstream
            ApiTimeoutError: If it did not finish in ``max_polling_duration``
            ApiRequestError: On a non-retryable error response
        """
        start = self._clock()

        while True:
            elapsed = self._clock() - start
            if elapsed >= self.max_polling_duration:
                raise ApiTimeoutError(
                    f"Task {task_id} did not finish within {self.max_polling_duration:.0f}s",
                    operation="poll_task",
                    timeout_seconds=self.max_polling_duration,
                )

            if on_progress:
                on_progress(min(max(elapsed / self.max_polling_duration, 0.0), 0.99))

            await self._sleep(self.poll_interval)

            try:
                task = await self.check_task(task_id)
            except httpx.TransportError as e:
                logger.warning(f"Poll of {task_id} failed ({e.__class__.__name__}), retrying next tick")
                continue
            except ApiRequestError as e:
                if e.recoverable:
                    logger.warning(f"Poll of {task_id} returned HTTP {e.status_code}, retrying next tick")
                    continue
                raise

            logger.debug(f"Task {task_id} state: {task.state.value}")

            if not task.state.is_terminal:
                continue

            if task.state == TaskState.FAILED:
                raise VideoGenerationError(
                    f"Task {task_id} failed: {task.error or 'unknown error'}",
                    task_id=task_id,
                )

            if task.result is None:
                raise VideoGenerationError(
                    f"Task {task_id} succeeded without a video",
                    task_id=task_id,
                )
            if on_progress:
                on_progress(1.0)
            logger.info(f"Task {task_id} finished: {task.result.video_ref}")
            return task.result

    def _clip_result(self, task_id: str, video_ref: str) -> ClipResult:
        """Successful result with the provider's nominal duration."""
        return ClipResult(
            video_ref=video_ref,
            duration=ClipDuration.estimated(self.clip_duration),
            task_id=task_id,
        )
