"""Shared test fixtures and fakes for the story producer."""
import io
from typing import Callable, List, Optional, Sequence

import httpx
import pytest
from PIL import Image

from petflix.context import BudgetTracker, ContentCache, ThemeCatalog
from petflix.core.config import Config
from petflix.core.exceptions import ImageLoadError, VideoGenerationError
from petflix.core.models import ClipDuration, ClipResult
from petflix.workflow import GenerationOrchestrator
from petflix.workflow.chainer import FrameExtraction


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# HTTP
# =============================================================================


class Router:
    """
    Scripted ``httpx.MockTransport`` handler.

    Each route maps (method, path) to a list of responses served in order;
    the last one repeats. Responses may be callables taking the request.
    """

    def __init__(self):
        self.routes = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses) -> "Router":
        self.routes[(method, path)] = list(responses)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "no route"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            response = response(request)
        if isinstance(response, Exception):
            raise response
        return response

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def router() -> Router:
    return Router()


# =============================================================================
# Images
# =============================================================================


def make_jpeg(path, size=(64, 48), color=(200, 120, 40)) -> None:
    Image.new("RGB", size, color).save(path, "JPEG")


def jpeg_bytes(size=(64, 48)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (10, 200, 10)).save(buffer, "JPEG")
    return buffer.getvalue()


@pytest.fixture
def pet_photo(tmp_path):
    path = tmp_path / "pet.jpg"
    make_jpeg(path)
    return str(path)


# =============================================================================
# Service Fakes
# =============================================================================


class FakeTaskClient:
    """
    Generation client double.

    ``outcomes`` holds one entry per clip: a duration for success, or an
    exception instance to raise from ``poll_task``.
    """

    provider_name = "fake"

    def __init__(self, outcomes: Optional[Sequence] = None, configured: bool = True):
        self.outcomes = list(outcomes) if outcomes is not None else [4.0] * 5
        self.configured = configured
        self.created = []
        self.polled = []
        self.closed = False
        self.on_poll: Optional[Callable[[int], None]] = None

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def create_task(self, prompt, seed_image_ref, reference_image_refs=()):
        self.created.append(
            {"prompt": prompt, "seed": seed_image_ref, "references": list(reference_image_refs)}
        )
        return f"task-{len(self.created)}"

    async def poll_task(self, task_id, on_progress=None):
        number = int(task_id.split("-")[1])
        self.polled.append(task_id)
        if self.on_poll:
            self.on_poll(number)
        if on_progress:
            on_progress(0.5)
        outcome = self.outcomes[(number - 1) % len(self.outcomes)]
        if isinstance(outcome, Exception):
            raise outcome
        if on_progress:
            on_progress(1.0)
        return ClipResult(
            video_ref=f"https://cdn.test/clip{number}.mp4",
            duration=ClipDuration.estimated(outcome),
            task_id=task_id,
        )

    async def close(self):
        self.closed = True


class FakeStitcher:
    provider_name = "fake-render"

    def __init__(self, url: str = "https://cdn.test/final.mp4", error: Optional[Exception] = None):
        self.url = url
        self.error = error
        self.calls = []
        self.is_configured = True

    async def stitch(self, clips, resolution=None, on_progress=None):
        self.calls.append({"clips": list(clips), "resolution": resolution})
        if self.error:
            raise self.error
        if on_progress:
            for sub in (0.05, 0.5, 0.9, 1.0):
                on_progress(sub)
        return self.url

    async def close(self):
        pass


class FakeExtractor:
    """Returns a fake frame per clip; ``fail_on`` lists 1-based clips that fail."""

    def __init__(self, durations: Optional[Sequence[float]] = None, fail_on: Sequence[int] = ()):
        self.durations = list(durations) if durations else [4.0] * 5
        self.fail_on = set(fail_on)
        self.extracted = []
        self.measured = []

    @staticmethod
    def _number(video_ref: str) -> int:
        return int(video_ref.rsplit("clip", 1)[1].split(".")[0])

    async def extract_last_frame(self, video_ref):
        number = self._number(video_ref)
        self.extracted.append(number)
        if number in self.fail_on:
            raise ImageLoadError(f"cannot decode clip {number}")
        return FrameExtraction(
            image_data_ref=f"data:image/jpeg;base64,frame{number}",
            duration_seconds=self.durations[(number - 1) % len(self.durations)],
        )

    async def measure_duration(self, video_ref):
        number = self._number(video_ref)
        self.measured.append(number)
        if number in self.fail_on:
            raise ImageLoadError(f"cannot probe clip {number}")
        return self.durations[(number - 1) % len(self.durations)]

    async def close(self):
        pass


class FakeConnectivity:
    def __init__(self, reachable: bool = True):
        self.reachable = reachable

    async def is_reachable(self) -> bool:
        return self.reachable


def terminal_failure(number: int) -> VideoGenerationError:
    return VideoGenerationError(f"clip {number} failed upstream", task_id=f"task-{number}")


# =============================================================================
# Orchestrator
# =============================================================================


@pytest.fixture
def test_config(tmp_path) -> Config:
    return Config.from_dict({
        "generation": {"api_key": "vda_test", "inter_clip_delay": 15},
        "render": {"api_key": "ss_test"},
        "budget": {"data_dir": str(tmp_path / "data")},
        "cache": {"cache_dir": str(tmp_path / "cache")},
    })


@pytest.fixture
def make_orchestrator(test_config, clock):
    """Factory building an orchestrator around fakes; overrides by keyword."""

    def factory(**overrides) -> GenerationOrchestrator:
        services = {
            "task_client": FakeTaskClient(),
            "stitcher": FakeStitcher(),
            "catalog": ThemeCatalog(),
            "extractor": FakeExtractor(),
            "cache": ContentCache(test_config.cache_dir),
            "budget": BudgetTracker.from_config(test_config.budget),
            "connectivity": FakeConnectivity(),
            "references": None,
            "config": test_config,
            "sleep": clock.sleep,
        }
        services.update(overrides)
        return GenerationOrchestrator(**services)

    return factory
