"""
Vidu Provider
=============

Integration with Vidu's reference-to-video API.

Key Features:
- Seed image plus up to several reference images per clip
- Fixed-length clips (4 seconds by default)
- Task polling via the creations endpoint
"""

import logging
from typing import Optional, List, Dict, Any

from .factory import register_provider
from .tasks import RemoteTaskClient
from ..core.models import GenerationTask, TaskState

logger = logging.getLogger(__name__)


@register_provider("vidu")
class ViduClient(RemoteTaskClient):
    """
    Vidu reference2video client.

    Every clip is generated from the seed image (the pet photo, or the
    previous clip's last frame) together with the scene's reference images.
    """

    provider_name = "vidu"

    def __init__(
        self,
        *args,
        auth_scheme: Optional[str] = None,
        aspect_ratio: str = "16:9",
        resolution: str = "720p",
        movement_amplitude: str = "auto",
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.auth_scheme = auth_scheme or "Token"
        self.aspect_ratio = aspect_ratio
        self.resolution = resolution
        self.movement_amplitude = movement_amplitude

    @property
    def default_base_url(self) -> str:
        return "https://api.vidu.com/ent/v2"

    @property
    def default_model(self) -> str:
        return "vidu2.0"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"{self.auth_scheme} {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        prompt: str,
        seed_image: str,
        reference_images: List[str],
    ) -> Dict[str, Any]:
        """Build the reference2video request payload."""
        return {
            "model": self.model,
            # Seed first: Vidu treats the first image as the subject
            "images": [seed_image, *reference_images],
            "prompt": prompt,
            "duration": int(self.clip_duration),
            "aspect_ratio": self.aspect_ratio,
            "resolution": self.resolution,
            "movement_amplitude": self.movement_amplitude,
        }

    async def _submit(
        self,
        prompt: str,
        seed_image: str,
        reference_images: List[str],
    ) -> str:
        response = await self._request(
            "POST",
            f"{self.base_url}/reference2video",
            idempotent=False,
            json=self._build_payload(prompt, seed_image, reference_images),
        )

        if response.status_code >= 400:
            raise self._error_from_response(response, "create")

        data = self._json(response)
        task_id = data.get("task_id") or data.get("id")
        return str(task_id) if task_id else ""

    async def check_task(self, task_id: str) -> GenerationTask:
        """Query ``/tasks/{id}/creations`` once."""
        response = await self._request(
            "GET",
            f"{self.base_url}/tasks/{task_id}/creations",
            idempotent=True,
            retry=False,
        )

        if response.status_code >= 400:
            raise self._error_from_response(response, "status check")

        data = self._json(response)
        task = GenerationTask(
            task_id=task_id,
            state=TaskState.from_provider_status(data.get("state")),
            provider=self.provider_name,
        )

        if task.state == TaskState.SUCCEEDED:
            creations = data.get("creations") or []
            url = creations[0].get("url") if creations and isinstance(creations[0], dict) else None
            if url:
                task.result = self._clip_result(task_id, url)
            else:
                task.state = TaskState.FAILED
                task.error = "Task succeeded but returned no creations"
        elif task.state == TaskState.FAILED:
            task.error = data.get("err_code") or "Generation failed"

        return task
