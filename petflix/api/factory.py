"""
Provider Factory
================

Factory for creating generation client instances.
"""

import logging
from typing import List, Dict, Type

from .base import RetryPolicy
from .tasks import RemoteTaskClient
from ..core.config import Config

logger = logging.getLogger(__name__)

# Registry of available providers
_PROVIDERS: Dict[str, Type[RemoteTaskClient]] = {}


def register_provider(name: str):
    """Decorator to register a provider class."""
    def decorator(cls: Type[RemoteTaskClient]):
        _PROVIDERS[name.lower()] = cls
        return cls
    return decorator


def _load_builtin_providers() -> None:
    # Importing the modules runs their @register_provider decorators
    from . import vidu, minimax  # noqa: F401


def get_task_client(name: str, **kwargs) -> RemoteTaskClient:
    """
    Get a generation client instance.

    Args:
        name: Provider name ('vidu' or 'minimax')
        **kwargs: Client constructor arguments

    Returns:
        Client instance

    Raises:
        ValueError: If provider name is not recognized
    """
    _load_builtin_providers()

    client_class = _PROVIDERS.get(name.lower())
    if client_class is None:
        raise ValueError(f"Unknown provider: {name}. Available: {', '.join(list_providers())}")

    return client_class(**kwargs)


def client_from_config(config: Config, **kwargs) -> RemoteTaskClient:
    """
    Build the configured generation client.

    Args:
        config: Loaded configuration
        **kwargs: Overrides such as ``transport`` or ``sleep`` for tests

    Returns:
        Client for ``config.generation.provider``
    """
    gen = config.generation
    options = {
        "api_key": gen.api_key,
        "base_url": gen.base_url,
        "model": gen.model,
        "clip_duration": float(gen.duration),
        "poll_interval": gen.poll_interval,
        "max_polling_duration": gen.max_polling_duration,
        "timeout": gen.request_timeout,
        "retry_policy": RetryPolicy.from_config(config.retry),
    }
    if gen.provider == "minimax":
        options["group_id"] = gen.group_id
    else:
        options.update(
            auth_scheme=gen.auth_scheme,
            aspect_ratio=gen.aspect_ratio,
            resolution=gen.resolution,
            movement_amplitude=gen.movement_amplitude,
        )
    options.update(kwargs)
    return get_task_client(gen.provider, **options)


def list_providers() -> List[str]:
    """
    List all available provider names.

    Returns:
        List of provider names
    """
    _load_builtin_providers()
    return sorted(_PROVIDERS.keys())
