"""
API Integration Layer
=====================

Clients for the remote services the story producer depends on.

Supported Providers:
- Vidu (reference-to-video, default)
- MiniMax (image-to-video)
- Shotstack (cloud render / stitching)

Usage:
    from petflix.api import get_task_client

    client = get_task_client("vidu", api_key="...")
    task_id = await client.create_task("A pet explores a castle", "photo.jpg")
    clip = await client.poll_task(task_id)
"""

from .base import BaseApiClient, RetryPolicy
from .tasks import RemoteTaskClient
from .factory import get_task_client, client_from_config, list_providers
from .shotstack import ShotstackClient, build_timeline

__all__ = [
    "BaseApiClient",
    "RetryPolicy",
    "RemoteTaskClient",
    "get_task_client",
    "client_from_config",
    "list_providers",
    "ShotstackClient",
    "build_timeline",
]
