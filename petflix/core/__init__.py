"""
Core Module
===========

Configuration, data model, exceptions and logging for the story producer.
"""

from .config import (
    Config,
    GenerationConfig,
    RenderConfig,
    RetryConfig,
    BudgetConfig,
    CacheConfig,
    ContinuityConfig,
)
from .exceptions import (
    ErrorKind,
    ERROR_MESSAGES,
    PetflixError,
    ConfigurationError,
    InvalidThemeError,
    NetworkUnavailableError,
    ApiConfigError,
    BudgetExceededError,
    ApiRequestError,
    ApiTimeoutError,
    VideoGenerationError,
    ImageLoadError,
    RenderSubmitError,
    RenderFailedError,
    RenderPollError,
    GenericError,
    RunCancelledError,
)
from .logging import setup_logging
from .security import sanitize_prompt, redact_api_key

__all__ = [
    # Configuration
    "Config",
    "GenerationConfig",
    "RenderConfig",
    "RetryConfig",
    "BudgetConfig",
    "CacheConfig",
    "ContinuityConfig",
    # Exceptions
    "ErrorKind",
    "ERROR_MESSAGES",
    "PetflixError",
    "ConfigurationError",
    "InvalidThemeError",
    "NetworkUnavailableError",
    "ApiConfigError",
    "BudgetExceededError",
    "ApiRequestError",
    "ApiTimeoutError",
    "VideoGenerationError",
    "ImageLoadError",
    "RenderSubmitError",
    "RenderFailedError",
    "RenderPollError",
    "GenericError",
    "RunCancelledError",
    # Utilities
    "setup_logging",
    "sanitize_prompt",
    "redact_api_key",
]
