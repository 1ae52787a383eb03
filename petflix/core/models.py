"""
Data Model
==========

Dataclasses shared by the catalog, the remote clients and the orchestrator.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from .exceptions import ErrorKind


# =============================================================================
# Themes
# =============================================================================


@dataclass(frozen=True)
class SceneSpec:
    """One scene prompt within a theme."""

    prompt_text: str
    reference_image_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Theme:
    """A narrative theme: an ordered list of scene prompts."""

    theme_id: str
    scenes: List[SceneSpec]
    title: str = ""


# =============================================================================
# Generation Tasks
# =============================================================================


class TaskState(Enum):
    """Lifecycle of a remote generation task."""

    CREATED = "created"
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def from_provider_status(cls, status: Optional[str]) -> "TaskState":
        """Normalize provider-specific status strings."""
        status_lower = (status or "").lower().strip()

        if status_lower in ("success", "succeeded", "completed", "done", "finished"):
            return cls.SUCCEEDED
        if status_lower in ("failed", "fail", "error", "failure", "errored", "cancelled", "canceled"):
            return cls.FAILED
        if status_lower in ("queueing", "queued", "queuing", "pending", "waiting", "in_queue"):
            return cls.QUEUED
        if status_lower in ("created", "preparing", "submitted"):
            return cls.CREATED

        return cls.PROCESSING

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED)


class DurationKind(Enum):
    """Whether a clip duration was probed from the media or assumed."""

    MEASURED = "measured"
    ESTIMATED = "estimated"


@dataclass(frozen=True)
class ClipDuration:
    """A clip length in seconds, tagged with how it was obtained."""

    seconds: float
    kind: DurationKind = DurationKind.ESTIMATED

    def __post_init__(self):
        if not self.seconds > 0:
            raise ValueError(f"Clip duration must be positive, got {self.seconds}")

    @classmethod
    def measured(cls, seconds: float) -> "ClipDuration":
        return cls(float(seconds), DurationKind.MEASURED)

    @classmethod
    def estimated(cls, seconds: float) -> "ClipDuration":
        return cls(float(seconds), DurationKind.ESTIMATED)

    @property
    def is_measured(self) -> bool:
        return self.kind == DurationKind.MEASURED


@dataclass(frozen=True)
class ClipResult:
    """A finished clip ready for stitching."""

    video_ref: str
    duration: ClipDuration
    clip_index: Optional[int] = None
    task_id: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        return self.duration.seconds

    def with_duration(self, duration: ClipDuration) -> "ClipResult":
        return replace(self, duration=duration)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "video_ref": self.video_ref,
            "duration_seconds": self.duration.seconds,
            "duration_kind": self.duration.kind.value,
            "clip_index": self.clip_index,
            "task_id": self.task_id,
        }


@dataclass
class GenerationTask:
    """A remote generation task as last observed."""

    task_id: str
    state: TaskState = TaskState.CREATED
    result: Optional[ClipResult] = None
    error: Optional[str] = None
    provider: Optional[str] = None


# =============================================================================
# Persistence
# =============================================================================


@dataclass(frozen=True)
class CacheEntry:
    """A completed video stored under its input fingerprint."""

    fingerprint: str
    video_ref: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "video_ref": self.video_ref,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, fingerprint: str, data: Any) -> "CacheEntry":
        # Older cache files stored the bare video ref as the value
        if isinstance(data, str):
            return cls(fingerprint=fingerprint, video_ref=data, created_at=datetime.fromtimestamp(0))
        created_at = data.get("created_at")
        return cls(
            fingerprint=fingerprint,
            video_ref=data["video_ref"],
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.fromtimestamp(0),
        )


@dataclass(frozen=True)
class BudgetLedger:
    """Snapshot of accumulated spend against the cap."""

    accumulated_cost_usd: float
    cap_usd: float

    @property
    def remaining_usd(self) -> float:
        return max(0.0, self.cap_usd - self.accumulated_cost_usd)


# =============================================================================
# Render Jobs
# =============================================================================


class RenderState(Enum):
    """Lifecycle of a remote render job."""

    SUBMITTED = "submitted"
    QUEUED = "queued"
    RENDERING = "rendering"
    SAVING = "saving"
    DONE = "done"
    FAILED = "failed"

    @classmethod
    def from_provider_status(cls, status: Optional[str]) -> "RenderState":
        status_lower = (status or "").lower().strip()
        try:
            return cls(status_lower)
        except ValueError:
            if status_lower in ("fetching", "preprocessing"):
                return cls.QUEUED
            return cls.RENDERING

    @property
    def is_terminal(self) -> bool:
        return self in (RenderState.DONE, RenderState.FAILED)


@dataclass
class RenderJob:
    """A render job as last observed."""

    job_id: str
    state: RenderState = RenderState.SUBMITTED
    output_ref: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Progress & Results
# =============================================================================


class Stage(Enum):
    """Pipeline stage reported to progress observers."""

    INITIALIZING = "initializing"
    GENERATING = "generating"
    STITCHING = "stitching"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressState:
    """A single normalized progress event."""

    stage: Stage
    total_clips: int
    overall_progress: float
    message: str
    current_clip_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "current_clip_index": self.current_clip_index,
            "total_clips": self.total_clips,
            "overall_progress": self.overall_progress,
            "message": self.message,
        }


@dataclass
class GenerationResult:
    """Outcome of one orchestrator run."""

    success: bool
    video_ref: Optional[str] = None
    clips: List[ClipResult] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    from_cache: bool = False
    failed_clip_indices: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "video_ref": self.video_ref,
            "clips": [clip.to_dict() for clip in self.clips],
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
            "from_cache": self.from_cache,
            "failed_clip_indices": self.failed_clip_indices,
        }
