"""Tests for the MiniMax generation client."""
import json

import httpx
import pytest

from petflix.api import client_from_config
from petflix.api.base import RetryPolicy
from petflix.api.minimax import MiniMaxClient
from petflix.core.config import Config
from petflix.core.exceptions import ApiConfigError, ApiRequestError, VideoGenerationError

SEED = "https://img.test/pet.jpg"
CREATE = "/v1/video_generation"
QUERY = "/v1/query/video_generation"
RETRIEVE = "/v1/files/retrieve"

OK = {"status_code": 0, "status_msg": "success"}


@pytest.fixture
def minimax(router, clock):
    return MiniMaxClient(
        api_key="mm_key",
        group_id="group-1",
        retry_policy=RetryPolicy(jitter=0.0),
        transport=router.transport(),
        sleep=clock.sleep,
        clock=clock,
    )


class TestCreateTask:
    async def test_payload_and_headers(self, minimax, router):
        router.add("POST", CREATE, httpx.Response(200, json={"task_id": "m1", "base_resp": OK}))

        assert await minimax.create_task("A pet at sea", SEED) == "m1"

        request = router.calls("POST", CREATE)[0]
        assert request.headers["Authorization"] == "Bearer mm_key"
        assert request.headers["GroupId"] == "group-1"
        body = json.loads(request.content)
        assert body == {
            "model": "I2V-01-Director",
            "prompt": "A pet at sea",
            "first_frame_image": SEED,
            "prompt_optimizer": True,
        }

    async def test_reference_images_dropped(self, minimax, router):
        router.add("POST", CREATE, httpx.Response(200, json={"task_id": "m1", "base_resp": OK}))
        await minimax.create_task("prompt", SEED, ["https://img.test/leaf.png"])
        body = json.loads(router.calls("POST", CREATE)[0].content)
        assert "https://img.test/leaf.png" not in json.dumps(body)

    async def test_envelope_error(self, minimax, router):
        router.add(
            "POST", CREATE,
            httpx.Response(200, json={"base_resp": {"status_code": 1008, "status_msg": "insufficient balance"}}),
        )
        with pytest.raises(ApiRequestError) as exc_info:
            await minimax.create_task("prompt", SEED)
        assert "insufficient balance" in exc_info.value.message

    async def test_group_id_required(self, router):
        client = MiniMaxClient(api_key="mm_key", transport=router.transport())
        assert not client.is_configured
        with pytest.raises(ApiConfigError):
            await client.create_task("prompt", SEED)


class TestPollTask:
    async def test_success_resolves_download_url(self, minimax, router):
        router.add(
            "GET", QUERY,
            httpx.Response(200, json={"status": "Processing", "base_resp": OK}),
            httpx.Response(200, json={"status": "Success", "file_id": "f1", "base_resp": OK}),
        )
        router.add(
            "GET", RETRIEVE,
            httpx.Response(200, json={"file": {"download_url": "https://cdn.test/m1.mp4"}, "base_resp": OK}),
        )

        clip = await minimax.poll_task("m1")

        assert clip.video_ref == "https://cdn.test/m1.mp4"
        assert router.calls("GET", QUERY)[0].url.params["task_id"] == "m1"
        assert router.calls("GET", RETRIEVE)[0].url.params["file_id"] == "f1"

    async def test_failed_status(self, minimax, router):
        router.add("GET", QUERY, httpx.Response(200, json={"status": "Fail", "base_resp": OK}))
        with pytest.raises(VideoGenerationError):
            await minimax.poll_task("m1")

    async def test_envelope_error_fails_task(self, minimax, router):
        router.add(
            "GET", QUERY,
            httpx.Response(200, json={"base_resp": {"status_code": 1026, "status_msg": "sensitive content"}}),
        )
        with pytest.raises(VideoGenerationError) as exc_info:
            await minimax.poll_task("m1")
        assert "sensitive content" in exc_info.value.message

    async def test_missing_download_url_is_fatal(self, minimax, router):
        router.add("GET", QUERY, httpx.Response(200, json={"status": "Success", "file_id": "f1", "base_resp": OK}))
        router.add("GET", RETRIEVE, httpx.Response(200, json={"file": {}, "base_resp": OK}))
        with pytest.raises(ApiRequestError):
            await minimax.poll_task("m1")

    async def test_server_error_retried_next_tick(self, minimax, router):
        router.add(
            "GET", QUERY,
            httpx.Response(500),
            httpx.Response(200, json={"status": "Success", "file_id": "f1", "base_resp": OK}),
        )
        router.add(
            "GET", RETRIEVE,
            httpx.Response(200, json={"file": {"download_url": "https://cdn.test/m1.mp4"}, "base_resp": OK}),
        )
        assert (await minimax.poll_task("m1")).video_ref == "https://cdn.test/m1.mp4"


class TestFromConfig:
    def test_builds_minimax_client(self):
        config = Config.from_dict({
            "generation": {"provider": "minimax", "api_key": "mm_key", "group_id": "g", "duration": 6},
        })
        client = client_from_config(config)
        assert isinstance(client, MiniMaxClient)
        assert client.group_id == "g"
        assert client.clip_duration == 6.0
        assert client.is_configured
