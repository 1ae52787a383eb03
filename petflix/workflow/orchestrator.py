"""
Generation Orchestrator
=======================

Main orchestration class: turns one photo and a theme id into a stitched
five-clip story video.

A run moves through Initializing, Generating, Stitching and Complete; Error
is reachable from any of them. Clips are generated strictly one after the
other because each clip is seeded with the last frame of the one before.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Optional, List, Tuple

from ..api.base import RetryPolicy
from ..api.factory import client_from_config
from ..api.shotstack import ShotstackClient
from ..api.tasks import RemoteTaskClient
from ..context.budget import BudgetTracker
from ..context.cache import ContentCache
from ..context.references import ReferenceLibrary
from ..context.themes import ThemeCatalog, add_prompt_variation
from ..core.config import Config
from ..core.exceptions import (
    PetflixError,
    ApiConfigError,
    ApiRequestError,
    ApiTimeoutError,
    BudgetExceededError,
    GenericError,
    ImageLoadError,
    NetworkUnavailableError,
    RunCancelledError,
    VideoGenerationError,
)
from ..core.models import ClipDuration, ClipResult, GenerationResult, SceneSpec, Stage
from ..core.security import sanitize_prompt, redact_api_key
from ..utils.network import ConnectivityChecker
from .chainer import ContinuityExtractor
from .progress import ProgressAggregator, ProgressChannel

logger = logging.getLogger(__name__)


POLICY_ABORT = "abort"
POLICY_STITCH_AVAILABLE = "stitch_available"

# Per-clip failures that stitch_available may skip over
CLIP_FAILURES = (VideoGenerationError, ApiTimeoutError, ApiRequestError)


class GenerationOrchestrator:
    """
    Runs the full photo-to-story pipeline.

    Handles:
    - Fail-fast validation before any billable call
    - Cache short-circuit for repeated inputs
    - Spend cap enforcement and bookkeeping
    - Last-frame chaining between clips
    - Progress reporting and cancellation through a ProgressChannel

    Usage:
        config = Config.load()
        async with GenerationOrchestrator.from_config(config) as orchestrator:
            result = await orchestrator.generate("photo.jpg", "fairy-tale")
    """

    def __init__(
        self,
        task_client: RemoteTaskClient,
        stitcher: ShotstackClient,
        catalog: Optional[ThemeCatalog] = None,
        extractor: Optional[ContinuityExtractor] = None,
        cache: Optional[ContentCache] = None,
        budget: Optional[BudgetTracker] = None,
        connectivity: Optional[ConnectivityChecker] = None,
        references: Optional[ReferenceLibrary] = None,
        config: Optional[Config] = None,
        sleep=None,
    ):
        """
        Initialize the orchestrator with its services.

        Args:
            task_client: Clip generation client
            stitcher: Render client used to join the clips
            catalog: Theme lookup (built-in themes if omitted)
            extractor: Last-frame extractor; without one every clip is
                seeded with the original photo
            cache: Result cache; skipped if omitted
            budget: Spend tracker; no cap enforced if omitted
            connectivity: Reachability probe; skipped if omitted
            references: Reference image library; no references if omitted
            config: Settings for delays, durations and policy
            sleep: Awaitable sleep, injectable for tests
        """
        self.config = config or Config()
        self.task_client = task_client
        self.stitcher = stitcher
        self.catalog = catalog or ThemeCatalog(
            subject_description=self.config.generation.subject_description
        )
        self.extractor = extractor
        self.cache = cache
        self.budget = budget
        self.connectivity = connectivity
        self.references = references
        self._sleep = sleep or asyncio.sleep
        self._running = False

        gen = self.config.generation
        logger.info(
            f"Orchestrator ready: provider={gen.provider}, policy={gen.partial_policy}, "
            f"cache={'on' if cache and cache.enabled else 'off'}, "
            f"continuity={'on' if extractor else 'off'}"
        )

    @classmethod
    def from_config(cls, config: Config, **overrides) -> "GenerationOrchestrator":
        """
        Wire up the real services described by a configuration.

        Args:
            config: Loaded configuration
            **overrides: Replacement services, keyed by constructor argument

        Returns:
            Ready-to-use orchestrator
        """
        retry_policy = RetryPolicy.from_config(config.retry)
        services = {
            "task_client": client_from_config(config),
            "stitcher": ShotstackClient.from_config(config),
            "catalog": ThemeCatalog(
                themes=config.get_themes(),
                subject_description=config.generation.subject_description,
            ),
            "extractor": (
                ContinuityExtractor.from_config(config.continuity, retry_policy=retry_policy)
                if config.continuity.enabled
                else None
            ),
            "cache": ContentCache(config.cache_dir, enabled=config.cache.enabled),
            "budget": BudgetTracker.from_config(config.budget),
            "connectivity": ConnectivityChecker(config.network.probe_url, config.network.timeout),
            "references": ReferenceLibrary(config.references.base_path),
        }
        services.update(overrides)
        return cls(config=config, **services)

    # -------------------------------------------------------------------------
    # Main Entry Point
    # -------------------------------------------------------------------------

    async def generate(
        self,
        image_ref: str,
        theme_id: str,
        channel: Optional[ProgressChannel] = None,
    ) -> GenerationResult:
        """
        Generate a story video.

        Args:
            image_ref: The user's photo (path, file:// URI, URL or data URI)
            theme_id: Theme to tell
            channel: Progress channel; closing it cancels the run

        Returns:
            GenerationResult. Failures are returned, not raised.

        Raises:
            RuntimeError: If a run is already in progress on this instance
        """
        if self._running:
            raise RuntimeError("A generation run is already in progress on this orchestrator")

        self._running = True
        try:
            return await self._run(image_ref, theme_id, channel or ProgressChannel())
        finally:
            self._running = False

    async def _run(self, image_ref: str, theme_id: str, channel: ProgressChannel) -> GenerationResult:
        progress = ProgressAggregator(channel)
        progress.reset()
        clips: List[ClipResult] = []
        failed: List[int] = []

        def emit(stage: Stage, **kwargs) -> None:
            if not channel.is_open:
                raise RunCancelledError("Progress channel was closed")
            progress.update(stage, **kwargs)

        try:
            emit(Stage.INITIALIZING, message="Preparing your story")

            # 1. Theme
            scenes = self.catalog.get_scenes(theme_id)
            total = len(scenes)
            emit(Stage.INITIALIZING, total_clips=total, sub_progress=0.3, message="Theme ready")

            # 2. Connectivity and credentials
            await self._check_services()
            emit(Stage.INITIALIZING, total_clips=total, sub_progress=0.6, message="Services ready")

            # 3. Cache
            fingerprint = ContentCache.key(image_ref, theme_id)
            if self.cache is not None:
                cached = await self.cache.get(fingerprint)
                if cached:
                    emit(Stage.COMPLETE, total_clips=total, message="Loaded from cache")
                    return GenerationResult(success=True, video_ref=cached, from_cache=True)

            # 4. Budget
            await self._check_budget(total)
            emit(Stage.INITIALIZING, total_clips=total, sub_progress=1.0, message="Starting generation")

            # 5-6. Clips
            await self._generate_clips(image_ref, scenes, emit, clips, failed)
            if not clips:
                raise VideoGenerationError("No clips were generated, nothing to stitch")

            # 7. Stitch
            emit(
                Stage.STITCHING,
                total_clips=total,
                message=f"Stitching {len(clips)} clip(s)",
            )
            video_ref = await self.stitcher.stitch(
                clips,
                self.config.render.resolution,
                on_progress=lambda sub: emit(
                    Stage.STITCHING, total_clips=total, sub_progress=sub, message="Editing your video"
                ),
            )

            # 8. Cache and finish
            if self.cache is not None:
                await self.cache.put(fingerprint, video_ref)

            emit(Stage.COMPLETE, total_clips=total, message="Your story is ready")
            logger.info(f"Run complete: {len(clips)} clip(s) -> {video_ref}")
            return GenerationResult(
                success=True,
                video_ref=video_ref,
                clips=clips,
                failed_clip_indices=failed,
            )

        except RunCancelledError as e:
            logger.info("Run cancelled: progress channel closed")
            return self._failure(e, clips, failed)

        except PetflixError as e:
            logger.error(f"Run failed ({e.kind.value}): {redact_api_key(e.message)}")
            if channel.is_open:
                progress.update(Stage.ERROR, message=e.user_message)
            return self._failure(e, clips, failed)

        except Exception as e:
            logger.exception(f"Unexpected error during run: {redact_api_key(str(e))}")
            error = GenericError(f"Unexpected error: {e.__class__.__name__}")
            if channel.is_open:
                progress.update(Stage.ERROR, message=error.user_message)
            return self._failure(error, clips, failed)

    # -------------------------------------------------------------------------
    # Pipeline Steps
    # -------------------------------------------------------------------------

    async def _check_services(self) -> None:
        if self.connectivity is not None and not await self.connectivity.is_reachable():
            raise NetworkUnavailableError("Generation service is unreachable")
        if not self.task_client.is_configured:
            raise ApiConfigError(
                "Generation client is missing credentials",
                provider=getattr(self.task_client, "provider_name", None),
            )
        if not self.stitcher.is_configured:
            raise ApiConfigError(
                "Render client is missing credentials",
                provider=getattr(self.stitcher, "provider_name", None),
            )

    async def _check_budget(self, total: int) -> None:
        if self.budget is None:
            return
        estimate = self.budget.estimate_run([float(self.config.generation.duration)] * total)
        if not await self.budget.can_spend(estimate):
            raise BudgetExceededError(
                "Spend cap would be exceeded by this run",
                accumulated_usd=await self.budget.accumulated(),
                estimated_usd=estimate,
                cap_usd=self.budget.cap_usd,
            )

    async def _generate_clips(
        self,
        image_ref: str,
        scenes: List[SceneSpec],
        emit,
        clips: List[ClipResult],
        failed: List[int],
    ) -> None:
        """
        Generate every clip in order, chaining last frames into seeds.

        Successful clips are appended to ``clips`` and the 1-based indices
        of skipped clips to ``failed``.
        """
        gen = self.config.generation
        total = len(scenes)
        seed = image_ref

        for index, scene in enumerate(scenes, start=1):
            if index > 1 and gen.inter_clip_delay > 0:
                emit(
                    Stage.GENERATING,
                    clip_index=index,
                    total_clips=total,
                    message=f"Waiting before clip {index} of {total}",
                )
                logger.debug(f"Pausing {gen.inter_clip_delay:.0f}s before clip {index}")
                await self._sleep(gen.inter_clip_delay)

            emit(
                Stage.GENERATING,
                clip_index=index,
                total_clips=total,
                message=f"Generating clip {index} of {total}",
            )

            prompt = sanitize_prompt(add_prompt_variation(scene.prompt_text, index))
            references = self.references.resolve(scene.reference_image_ids) if self.references else []

            def on_poll(sub: float, index: int = index) -> None:
                emit(
                    Stage.GENERATING,
                    clip_index=index,
                    total_clips=total,
                    sub_progress=sub,
                    message=f"Generating clip {index} of {total}",
                )

            try:
                task_id = await self.task_client.create_task(prompt, seed, references)
                clip = await self.task_client.poll_task(task_id, on_progress=on_poll)
            except CLIP_FAILURES as e:
                if gen.partial_policy == POLICY_ABORT:
                    raise
                logger.warning(f"Clip {index} failed ({e.kind.value}), skipping: {e.message}")
                failed.append(index)
                seed = image_ref
                continue

            clip = replace(clip, clip_index=index)

            if self.budget is not None:
                await self.budget.record_spend(self.budget.cost_for(clip.duration_seconds))

            clip, seed = await self._chain(clip, index, total, image_ref)
            clips.append(clip)

            emit(
                Stage.GENERATING,
                clip_index=index,
                total_clips=total,
                sub_progress=1.0,
                message=f"Clip {index} of {total} ready",
            )

    async def _chain(
        self,
        clip: ClipResult,
        index: int,
        total: int,
        image_ref: str,
    ) -> Tuple[ClipResult, str]:
        """
        Measure a finished clip and pick the next seed.

        Extraction failures never fail the run: the next clip falls back to
        the original photo and this clip keeps its estimated duration.
        """
        if self.extractor is None:
            return clip, image_ref

        if index < total:
            try:
                frame = await self.extractor.extract_last_frame(clip.video_ref)
            except ImageLoadError as e:
                logger.warning(f"Continuity frame for clip {index} unavailable, reusing photo: {e.message}")
                return clip, image_ref
            return clip.with_duration(ClipDuration.measured(frame.duration_seconds)), frame.image_data_ref

        try:
            seconds = await self.extractor.measure_duration(clip.video_ref)
        except ImageLoadError as e:
            logger.warning(f"Could not measure clip {index}, keeping estimate: {e.message}")
            return clip, image_ref
        return clip.with_duration(ClipDuration.measured(seconds)), image_ref

    @staticmethod
    def _failure(error: PetflixError, clips: List[ClipResult], failed: List[int]) -> GenerationResult:
        return GenerationResult(
            success=False,
            clips=list(clips),
            error_kind=error.kind,
            error_message=error.user_message,
            failed_clip_indices=list(failed),
        )

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close every owned HTTP client."""
        for service in (self.task_client, self.stitcher, self.extractor):
            if service is not None and hasattr(service, "close"):
                await service.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
