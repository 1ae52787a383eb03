"""
PetFlix Story Producer
======================

Turns one pet photo and a narrative theme into a short five-scene video by
orchestrating a generative video API and a cloud render service.

Features:
- Vidu (default) and MiniMax clip generation
- Last-frame chaining for visual continuity between scenes
- Shotstack stitching with explicit clip timing
- Monotonic progress events with cancellation
- Persistent spend cap and result cache

Quick Start:
    import asyncio
    from petflix import Config, GenerationOrchestrator, ProgressChannel

    async def main():
        config = Config.load()
        channel = ProgressChannel()
        channel.subscribe(lambda s: print(f"{s.overall_progress:.0%} {s.message}"))

        async with GenerationOrchestrator.from_config(config) as orchestrator:
            result = await orchestrator.generate("my_pet.jpg", "fairy-tale", channel)

        print(result.video_ref if result.success else result.error_message)

    asyncio.run(main())
"""

__version__ = "0.1.0"

# Core
from .core.config import Config
from .core.exceptions import (
    ErrorKind,
    PetflixError,
    ConfigurationError,
    InvalidThemeError,
    BudgetExceededError,
    VideoGenerationError,
)
from .core.logging import setup_logging
from .core.models import (
    SceneSpec,
    Theme,
    ClipDuration,
    ClipResult,
    ProgressState,
    Stage,
    GenerationResult,
)

# Services
from .api import get_task_client, list_providers, ShotstackClient, build_timeline
from .context import ThemeCatalog, ReferenceLibrary, ContentCache, BudgetTracker
from .workflow import (
    GenerationOrchestrator,
    ContinuityExtractor,
    ProgressAggregator,
    ProgressChannel,
)

__all__ = [
    "__version__",

    # Core
    "Config",
    "setup_logging",
    "ErrorKind",
    "PetflixError",
    "ConfigurationError",
    "InvalidThemeError",
    "BudgetExceededError",
    "VideoGenerationError",

    # Models
    "SceneSpec",
    "Theme",
    "ClipDuration",
    "ClipResult",
    "ProgressState",
    "Stage",
    "GenerationResult",

    # Services
    "GenerationOrchestrator",
    "ThemeCatalog",
    "ReferenceLibrary",
    "ContentCache",
    "BudgetTracker",
    "ContinuityExtractor",
    "ProgressAggregator",
    "ProgressChannel",
    "ShotstackClient",
    "build_timeline",
    "get_task_client",
    "list_providers",
]
