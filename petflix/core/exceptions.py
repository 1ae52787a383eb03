"""
Custom Exceptions
=================

Unified exception hierarchy for the story generation pipeline.

Every failure the orchestrator can report maps to exactly one ``ErrorKind``
plus a user-facing message, so hosts can branch on the kind and show the
message without parsing exception text.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(Enum):
    """Discriminable failure kinds reported to the host."""

    INVALID_THEME = "InvalidTheme"
    NETWORK_UNAVAILABLE = "NetworkUnavailable"
    API_CONFIG_ERROR = "ApiConfigError"
    BUDGET_EXCEEDED = "BudgetExceeded"
    API_REQUEST_FAILED = "ApiRequestFailed"
    API_TIMEOUT = "ApiTimeout"
    VIDEO_GENERATION_FAILED = "VideoGenerationFailed"
    IMAGE_LOAD_ERROR = "ImageLoadError"
    RENDER_SUBMIT_FAILED = "RenderSubmitFailed"
    RENDER_FAILED = "RenderFailed"
    RENDER_POLL_FAILED = "RenderPollFailed"
    GENERIC_ERROR = "GenericError"
    CANCELLED = "Cancelled"


ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.INVALID_THEME: "The selected theme is invalid. Please go back and choose a different theme.",
    ErrorKind.NETWORK_UNAVAILABLE: "No internet connection detected. Please connect to the internet and try again.",
    ErrorKind.API_CONFIG_ERROR: (
        "Video creation service is not configured correctly. "
        "Please contact support if the problem persists."
    ),
    ErrorKind.BUDGET_EXCEEDED: "Video creation usage limit reached. Please try again later or contact support.",
    ErrorKind.API_REQUEST_FAILED: (
        "Something went wrong while communicating with our servers. "
        "Please check your connection and try again."
    ),
    ErrorKind.API_TIMEOUT: "The request timed out. Please check your connection and try again.",
    ErrorKind.VIDEO_GENERATION_FAILED: "We couldn't create your video this time. Please try again later.",
    ErrorKind.IMAGE_LOAD_ERROR: "Could not load the selected image. Please try a different one.",
    ErrorKind.RENDER_SUBMIT_FAILED: "We couldn't start editing your video. Please try again later.",
    ErrorKind.RENDER_FAILED: "We couldn't finish editing your video. Please try again later.",
    ErrorKind.RENDER_POLL_FAILED: "We lost track of your video while it was being edited. Please try again later.",
    ErrorKind.GENERIC_ERROR: "An unexpected error occurred. Please try again or restart the app.",
    ErrorKind.CANCELLED: "Video creation was cancelled.",
}


class PetflixError(Exception):
    """Base exception for all story generation errors."""

    kind: ErrorKind = ErrorKind.GENERIC_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.recoverable = recoverable
        self.user_message = user_message or ERROR_MESSAGES[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error": self.code,
            "kind": self.kind.value,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ConfigurationError(PetflixError):
    """Invalid or unreadable configuration values."""

    kind = ErrorKind.API_CONFIG_ERROR

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details=details, **kwargs)


class InvalidThemeError(PetflixError):
    """Unknown theme id, or a theme without exactly five scenes."""

    kind = ErrorKind.INVALID_THEME

    def __init__(self, message: str, theme_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if theme_id is not None:
            details["theme_id"] = theme_id
        super().__init__(message, details=details, **kwargs)


class NetworkUnavailableError(PetflixError):
    kind = ErrorKind.NETWORK_UNAVAILABLE


class ApiConfigError(PetflixError):
    """Missing credentials or endpoint configuration for a remote service."""

    kind = ErrorKind.API_CONFIG_ERROR

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if provider:
            details["provider"] = provider
        super().__init__(message, details=details, **kwargs)


class BudgetExceededError(PetflixError):
    """The spend cap would be exceeded by the requested work."""

    kind = ErrorKind.BUDGET_EXCEEDED

    def __init__(
        self,
        message: str,
        accumulated_usd: Optional[float] = None,
        estimated_usd: Optional[float] = None,
        cap_usd: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        for key, value in (
            ("accumulated_usd", accumulated_usd),
            ("estimated_usd", estimated_usd),
            ("cap_usd", cap_usd),
        ):
            if value is not None:
                details[key] = round(value, 2)
        super().__init__(message, details=details, **kwargs)


class ApiRequestError(PetflixError):
    """A remote API answered with a non-success response."""

    kind = ErrorKind.API_REQUEST_FAILED

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if provider:
            details["provider"] = provider
        if status_code:
            details["status_code"] = status_code
        if response_body:
            # Truncate large responses
            details["response_body"] = response_body[:500]

        recoverable = kwargs.pop(
            "recoverable",
            status_code in (429, 500, 502, 503, 504) if status_code else False,
        )
        super().__init__(message, recoverable=recoverable, details=details, **kwargs)
        self.status_code = status_code


class ApiTimeoutError(PetflixError):
    """A generation task did not reach a terminal state in time."""

    kind = ErrorKind.API_TIMEOUT

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(message, recoverable=True, details=details, **kwargs)


class VideoGenerationError(PetflixError):
    """A clip failed upstream, or no clip succeeded at all."""

    kind = ErrorKind.VIDEO_GENERATION_FAILED

    def __init__(
        self,
        message: str,
        task_id: Optional[str] = None,
        clip_index: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if task_id:
            details["task_id"] = task_id
        if clip_index is not None:
            details["clip_index"] = clip_index
        super().__init__(message, details=details, **kwargs)


class ImageLoadError(PetflixError):
    """An image could not be read, or a frame could not be extracted."""

    kind = ErrorKind.IMAGE_LOAD_ERROR


class RenderSubmitError(PetflixError):
    kind = ErrorKind.RENDER_SUBMIT_FAILED


class RenderFailedError(PetflixError):
    kind = ErrorKind.RENDER_FAILED


class RenderPollError(PetflixError):
    kind = ErrorKind.RENDER_POLL_FAILED


class GenericError(PetflixError):
    kind = ErrorKind.GENERIC_ERROR


class RunCancelledError(PetflixError):
    """The host closed the progress channel while a run was in flight."""

    kind = ErrorKind.CANCELLED
