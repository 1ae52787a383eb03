"""Tests for the Shotstack timeline builder and render client."""
import json

import httpx
import pytest

from petflix.api import ShotstackClient, build_timeline
from petflix.api.base import RetryPolicy
from petflix.core.exceptions import (
    ApiConfigError,
    RenderFailedError,
    RenderPollError,
    RenderSubmitError,
)
from petflix.core.models import ClipDuration, ClipResult

RENDER = "/stage/render"
JOB = "/stage/render/job-1"


def clip(index, seconds, url=None):
    return ClipResult(
        video_ref=url if url is not None else f"https://cdn.test/clip{index}.mp4",
        duration=ClipDuration.measured(seconds),
        clip_index=index,
    )


def status(state, url=None):
    body = {"status": state}
    if url:
        body["url"] = url
    return httpx.Response(200, json={"success": True, "response": body})


ACCEPTED = httpx.Response(201, json={"success": True, "response": {"id": "job-1"}})


@pytest.fixture
def shotstack(router, clock):
    return ShotstackClient(
        api_key="ss_key",
        poll_interval=3.0,
        max_poll_attempts=5,
        retry_policy=RetryPolicy(jitter=0.0),
        transport=router.transport(),
        sleep=clock.sleep,
    )


class TestBuildTimeline:
    def test_cumulative_starts(self):
        timeline = build_timeline([clip(1, 4.0), clip(2, 5.5), clip(3, 3.2)])
        clips = timeline["timeline"]["tracks"][0]["clips"]
        assert [c["start"] for c in clips] == pytest.approx([0.0, 4.0, 9.5])
        assert [c["length"] for c in clips] == [4.0, 5.5, 3.2]
        assert clips[1]["asset"] == {"type": "video", "src": "https://cdn.test/clip2.mp4"}

    def test_output_settings(self):
        timeline = build_timeline([clip(1, 4.0)], resolution="1080")
        assert timeline["output"] == {"format": "mp4", "resolution": "1080"}

    def test_single_track(self):
        assert len(build_timeline([clip(1, 4.0), clip(2, 4.0)])["timeline"]["tracks"]) == 1

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            build_timeline([])

    def test_bad_resolution_rejected(self):
        with pytest.raises(ValueError):
            build_timeline([clip(1, 4.0)], resolution="4k")

    def test_missing_ref_rejected(self):
        with pytest.raises(ValueError):
            build_timeline([clip(1, 4.0, url="")])


class TestSubmit:
    async def test_submits_timeline(self, shotstack, router):
        router.add("POST", RENDER, ACCEPTED)
        timeline = build_timeline([clip(1, 4.0)])

        assert await shotstack.submit_render_job(timeline) == "job-1"

        request = router.calls("POST", RENDER)[0]
        assert request.headers["x-api-key"] == "ss_key"
        assert json.loads(request.content) == timeline

    async def test_missing_key(self, router):
        client = ShotstackClient(transport=router.transport())
        with pytest.raises(ApiConfigError):
            await client.submit_render_job(build_timeline([clip(1, 4.0)]))

    async def test_http_error(self, shotstack, router):
        router.add("POST", RENDER, httpx.Response(400, json={"message": "bad edit"}))
        with pytest.raises(RenderSubmitError):
            await shotstack.submit_render_job(build_timeline([clip(1, 4.0)]))

    async def test_unsuccessful_body(self, shotstack, router):
        router.add("POST", RENDER, httpx.Response(200, json={"success": False, "message": "quota"}))
        with pytest.raises(RenderSubmitError):
            await shotstack.submit_render_job(build_timeline([clip(1, 4.0)]))

    async def test_server_error_not_resubmitted(self, shotstack, router):
        router.add("POST", RENDER, httpx.Response(503), ACCEPTED)
        with pytest.raises(RenderSubmitError):
            await shotstack.submit_render_job(build_timeline([clip(1, 4.0)]))
        assert len(router.calls("POST", RENDER)) == 1

    async def test_transport_error(self, shotstack, router):
        router.add("POST", RENDER, httpx.ReadTimeout("slow"))
        with pytest.raises(RenderSubmitError):
            await shotstack.submit_render_job(build_timeline([clip(1, 4.0)]))


class TestPoll:
    async def test_done_returns_url(self, shotstack, router, clock):
        router.add("GET", JOB, status("queued"), status("rendering"), status("done", "https://cdn.test/final.mp4"))
        progress = []

        url = await shotstack.poll_render_job("job-1", on_progress=progress.append)

        assert url == "https://cdn.test/final.mp4"
        assert progress == [0.15, 0.5, 1.0]
        assert clock.sleeps == [3.0, 3.0]

    async def test_failed_render(self, shotstack, router):
        router.add("GET", JOB, httpx.Response(200, json={"success": True, "response": {"status": "failed", "error": "bad asset"}}))
        with pytest.raises(RenderFailedError):
            await shotstack.poll_render_job("job-1")

    async def test_done_without_url(self, shotstack, router):
        router.add("GET", JOB, status("done"))
        with pytest.raises(RenderFailedError):
            await shotstack.poll_render_job("job-1")

    async def test_attempts_exhausted(self, shotstack, router, clock):
        router.add("GET", JOB, status("rendering"))
        with pytest.raises(RenderPollError):
            await shotstack.poll_render_job("job-1")
        assert len(router.calls("GET", JOB)) == 5
        assert len(clock.sleeps) == 4

    async def test_transient_errors_retried(self, shotstack, router):
        router.add(
            "GET", JOB,
            httpx.Response(502),
            httpx.ReadError("reset"),
            httpx.Response(200, json={"success": False, "message": "hiccup"}),
            status("done", "https://cdn.test/final.mp4"),
        )
        assert await shotstack.poll_render_job("job-1") == "https://cdn.test/final.mp4"

    async def test_client_error_is_fatal(self, shotstack, router):
        router.add("GET", JOB, httpx.Response(403, json={"message": "forbidden"}))
        with pytest.raises(RenderPollError):
            await shotstack.poll_render_job("job-1")
        assert len(router.calls("GET", JOB)) == 1


class TestStitch:
    async def test_end_to_end(self, shotstack, router):
        router.add("POST", RENDER, ACCEPTED)
        router.add("GET", JOB, status("saving"), status("done", "https://cdn.test/final.mp4"))
        progress = []

        url = await shotstack.stitch([clip(1, 4.0), clip(2, 5.5)], "sd", on_progress=progress.append)

        assert url == "https://cdn.test/final.mp4"
        assert progress == [0.05, 0.9, 1.0]
        body = json.loads(router.calls("POST", RENDER)[0].content)
        assert body["output"]["resolution"] == "sd"
