"""
MiniMax Provider
================

Integration with MiniMax's image-to-video API (I2V-01-Director).

Key Features:
- First-frame conditioning from a single seed image
- Built-in prompt optimizer
- Three-step flow: create task, query status, retrieve file URL
"""

import logging
from typing import Optional, List, Dict, Any

from .factory import register_provider
from .tasks import RemoteTaskClient
from ..core.exceptions import ApiRequestError
from ..core.models import GenerationTask, TaskState

logger = logging.getLogger(__name__)


@register_provider("minimax")
class MiniMaxClient(RemoteTaskClient):
    """
    MiniMax video generation client.

    MiniMax takes only a first frame, so scene reference images are dropped.
    Every response carries a ``base_resp`` envelope whose ``status_code``
    must be 0 for the call to count as successful.
    """

    provider_name = "minimax"

    def __init__(self, *args, group_id: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.group_id = group_id

    @property
    def default_base_url(self) -> str:
        return "https://api.minimaxi.chat"

    @property
    def default_model(self) -> str:
        return "I2V-01-Director"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.group_id)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "GroupId": self.group_id or "",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _base_status(data: Dict[str, Any]) -> tuple:
        base_resp = data.get("base_resp") or {}
        return base_resp.get("status_code"), base_resp.get("status_msg") or ""

    async def _submit(
        self,
        prompt: str,
        seed_image: str,
        reference_images: List[str],
    ) -> str:
        if reference_images:
            logger.warning(
                f"MiniMax does not support reference images, ignoring {len(reference_images)}"
            )

        response = await self._request(
            "POST",
            f"{self.base_url}/v1/video_generation",
            idempotent=False,
            json={
                "model": self.model,
                "prompt": prompt,
                "first_frame_image": seed_image,
                "prompt_optimizer": True,
            },
        )

        if response.status_code >= 400:
            raise self._error_from_response(response, "create")

        data = self._json(response)
        status_code, status_msg = self._base_status(data)
        if status_code != 0:
            raise ApiRequestError(
                f"MiniMax create rejected: {status_msg or status_code}",
                provider=self.provider_name,
                details={"base_status_code": status_code},
            )

        return str(data.get("task_id") or "")

    async def check_task(self, task_id: str) -> GenerationTask:
        """Query the task, then resolve the file id to a download URL on success."""
        response = await self._request(
            "GET",
            f"{self.base_url}/v1/query/video_generation",
            idempotent=True,
            retry=False,
            params={"task_id": task_id},
        )

        if response.status_code >= 400:
            raise self._error_from_response(response, "status check")

        data = self._json(response)
        status_code, status_msg = self._base_status(data)

        task = GenerationTask(task_id=task_id, provider=self.provider_name)
        if status_code != 0:
            task.state = TaskState.FAILED
            task.error = status_msg or f"status_code {status_code}"
            return task

        task.state = TaskState.from_provider_status(data.get("status"))

        if task.state == TaskState.SUCCEEDED:
            file_id = data.get("file_id")
            if not file_id:
                task.state = TaskState.FAILED
                task.error = "Task succeeded without a file id"
            else:
                task.result = self._clip_result(task_id, await self._retrieve_url(str(file_id)))
        elif task.state == TaskState.FAILED:
            task.error = status_msg or "Generation failed"

        return task

    async def _retrieve_url(self, file_id: str) -> str:
        """
        Resolve a file id to its download URL.

        Raises:
            ApiRequestError: If the file cannot be resolved
        """
        response = await self._request(
            "GET",
            f"{self.base_url}/v1/files/retrieve",
            idempotent=True,
            params={"file_id": file_id},
        )

        if response.status_code >= 400:
            raise self._error_from_response(response, "file retrieve")

        data = self._json(response)
        status_code, status_msg = self._base_status(data)
        download_url = (data.get("file") or {}).get("download_url")
        if status_code != 0 or not download_url:
            raise ApiRequestError(
                f"MiniMax file retrieve failed: {status_msg or 'missing download_url'}",
                provider=self.provider_name,
                recoverable=False,
            )

        return download_url
