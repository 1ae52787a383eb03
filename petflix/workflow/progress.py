"""
Progress Reporting
==================

Folds the per-stage progress of a run into one monotonic 0..1 value and
delivers it to observers.

Stage weights:
- Initializing: 0.00 - 0.05
- Generating:   0.05 - 0.80 (split evenly across clips)
- Stitching:    0.80 - 1.00
"""

import logging
from typing import Optional, List, Callable

from ..core.models import ProgressState, Stage

logger = logging.getLogger(__name__)


INIT_WEIGHT = 0.05
GENERATION_WEIGHT = 0.75
STITCHING_WEIGHT = 0.20

Observer = Callable[[ProgressState], None]


# =============================================================================
# Channel
# =============================================================================


class ProgressChannel:
    """
    Event channel between a run and its host.

    Observers are called synchronously in subscription order. A failing
    observer is logged and skipped. Closing the channel tells the run that
    nobody is listening any more, which the orchestrator treats as a
    cancellation request.
    """

    def __init__(self):
        self._observers: List[Observer] = []
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            A callable that removes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def publish(self, state: ProgressState) -> None:
        if not self._open:
            return
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                logger.exception(f"Progress observer {observer!r} raised, ignoring")

    def close(self) -> None:
        self._open = False
        self._observers.clear()


# =============================================================================
# Aggregator
# =============================================================================


class ProgressAggregator:
    """
    Computes overall progress from stage-local progress.

    The reported value never goes down within a run; ``reset()`` at run
    start is the only way back to zero.
    """

    def __init__(self, channel: Optional[ProgressChannel] = None):
        self.channel = channel
        self._last = 0.0

    @property
    def current(self) -> float:
        return self._last

    def reset(self) -> None:
        self._last = 0.0

    def compute(
        self,
        stage: Stage,
        clip_index: Optional[int] = None,
        total_clips: int = 5,
        sub_progress: float = 0.0,
    ) -> float:
        """
        Overall progress for a stage-local position, before monotonic clamping.

        Args:
            stage: Current stage
            clip_index: 1-based clip number while generating
            total_clips: Clips in the run
            sub_progress: Progress within the stage or clip, clamped to [0, 1]
        """
        sub = min(max(sub_progress, 0.0), 1.0)

        if stage == Stage.INITIALIZING:
            return sub * INIT_WEIGHT
        if stage == Stage.GENERATING:
            n = max(total_clips, 1)
            i = min(max(clip_index or 1, 1), n)
            return INIT_WEIGHT + ((i - 1) / n + sub / n) * GENERATION_WEIGHT
        if stage == Stage.STITCHING:
            return INIT_WEIGHT + GENERATION_WEIGHT + sub * STITCHING_WEIGHT
        if stage == Stage.COMPLETE:
            return 1.0
        # Error holds the last value
        return self._last

    def update(
        self,
        stage: Stage,
        clip_index: Optional[int] = None,
        total_clips: int = 5,
        sub_progress: float = 0.0,
        message: Optional[str] = None,
    ) -> ProgressState:
        """
        Record a progress update and publish it.

        Returns:
            The published state
        """
        computed = self.compute(stage, clip_index, total_clips, sub_progress)
        self._last = max(self._last, computed)

        state = ProgressState(
            stage=stage,
            current_clip_index=clip_index,
            total_clips=total_clips,
            overall_progress=self._last,
            message=message or stage.value.capitalize(),
        )
        if self.channel is not None:
            self.channel.publish(state)
        return state
