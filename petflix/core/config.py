"""
Configuration System
====================

Centralized, validated configuration management with typed dataclasses.

Configuration is loaded once by the host and passed to the services that
need it; nothing here is a process-wide singleton.
"""

import os
import re
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any, Union
import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class GenerationConfig:
    """Clip generation provider and polling settings."""

    provider: str = "vidu"
    api_key: Optional[str] = None
    group_id: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    auth_scheme: Optional[str] = None
    duration: int = 4
    resolution: str = "720p"
    aspect_ratio: str = "16:9"
    movement_amplitude: str = "auto"
    poll_interval: float = 10.0
    max_polling_duration: float = 300.0
    request_timeout: float = 60.0
    inter_clip_delay: float = 15.0
    partial_policy: str = "abort"
    subject_description: str = "pet"

    VALID_PROVIDERS = {"vidu", "minimax"}
    VALID_RESOLUTIONS = {"360p", "720p", "1080p"}
    VALID_ASPECT_RATIOS = {"16:9", "9:16", "1:1"}
    VALID_POLICIES = {"abort", "stitch_available"}

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate configuration values."""
        if self.provider not in self.VALID_PROVIDERS:
            raise ConfigurationError(
                f"Invalid provider: {self.provider}",
                config_key="generation.provider",
            )
        if self.resolution not in self.VALID_RESOLUTIONS:
            raise ConfigurationError(
                f"Invalid resolution: {self.resolution}",
                config_key="generation.resolution",
            )
        if self.aspect_ratio not in self.VALID_ASPECT_RATIOS:
            raise ConfigurationError(
                f"Invalid aspect ratio: {self.aspect_ratio}",
                config_key="generation.aspect_ratio",
            )
        if not 1 <= self.duration <= 10:
            raise ConfigurationError(
                f"Duration must be 1-10 seconds, got {self.duration}",
                config_key="generation.duration",
            )
        if not 5 <= self.poll_interval <= 10:
            raise ConfigurationError(
                f"poll_interval must be 5-10 seconds, got {self.poll_interval}",
                config_key="generation.poll_interval",
            )
        if self.max_polling_duration <= 0:
            raise ConfigurationError(
                f"max_polling_duration must be positive, got {self.max_polling_duration}",
                config_key="generation.max_polling_duration",
            )
        if self.inter_clip_delay < 0:
            raise ConfigurationError(
                f"inter_clip_delay cannot be negative, got {self.inter_clip_delay}",
                config_key="generation.inter_clip_delay",
            )
        if self.partial_policy not in self.VALID_POLICIES:
            raise ConfigurationError(
                f"Invalid partial policy: {self.partial_policy}",
                config_key="generation.partial_policy",
            )


@dataclass
class RenderConfig:
    """Render/stitch service settings."""

    api_key: Optional[str] = None
    api_url: str = "https://api.shotstack.io/stage/render"
    resolution: str = "hd"
    poll_interval: float = 3.0
    max_poll_attempts: int = 40
    request_timeout: float = 60.0

    VALID_RESOLUTIONS = {"sd", "hd", "1080"}

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.resolution not in self.VALID_RESOLUTIONS:
            raise ConfigurationError(
                f"Invalid render resolution: {self.resolution}",
                config_key="render.resolution",
            )
        if self.max_poll_attempts < 1:
            raise ConfigurationError(
                f"max_poll_attempts must be at least 1, got {self.max_poll_attempts}",
                config_key="render.max_poll_attempts",
            )


@dataclass
class RetryConfig:
    """Backoff settings shared by every remote client."""

    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 1.0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not 1 <= self.max_attempts <= 10:
            raise ConfigurationError(
                f"max_attempts must be 1-10, got {self.max_attempts}",
                config_key="retry.max_attempts",
            )
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ConfigurationError(
                "Retry delays cannot be negative",
                config_key="retry",
            )


@dataclass
class BudgetConfig:
    """Spend cap settings."""

    cap_usd: float = 50.0
    unit_price_usd: float = 0.43
    unit_seconds: float = 6.0
    data_dir: str = "~/.petflix/data"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.cap_usd < 0:
            raise ConfigurationError(
                f"cap_usd cannot be negative, got {self.cap_usd}",
                config_key="budget.cap_usd",
            )
        if self.unit_price_usd < 0 or self.unit_seconds <= 0:
            raise ConfigurationError(
                "unit_price_usd must be >= 0 and unit_seconds > 0",
                config_key="budget.unit_price_usd",
            )


@dataclass
class CacheConfig:
    """Result cache settings."""

    enabled: bool = True
    cache_dir: str = "~/.petflix/cache/videoCache"


@dataclass
class ContinuityConfig:
    """Last-frame extraction settings."""

    enabled: bool = True
    frame_offset_seconds: float = 0.1
    jpeg_quality: int = 80
    max_dimension: int = 1280
    subprocess_timeout: float = 30.0
    work_dir: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not 1 <= self.jpeg_quality <= 100:
            raise ConfigurationError(
                f"jpeg_quality must be 1-100, got {self.jpeg_quality}",
                config_key="continuity.jpeg_quality",
            )
        if self.frame_offset_seconds < 0:
            raise ConfigurationError(
                f"frame_offset_seconds cannot be negative, got {self.frame_offset_seconds}",
                config_key="continuity.frame_offset_seconds",
            )


@dataclass
class NetworkConfig:
    """Connectivity probe settings."""

    probe_url: str = "https://api.vidu.com"
    timeout: float = 5.0


@dataclass
class ReferenceConfig:
    """Reference image library settings."""

    base_path: str = "./assets/reference-images"


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: Optional[str] = None


# =============================================================================
# Main Configuration Class
# =============================================================================


_SECTIONS = {
    "generation": GenerationConfig,
    "render": RenderConfig,
    "retry": RetryConfig,
    "budget": BudgetConfig,
    "cache": CacheConfig,
    "continuity": ContinuityConfig,
    "network": NetworkConfig,
    "references": ReferenceConfig,
    "logging": LoggingConfig,
}


@dataclass
class Config:
    """
    Main configuration container with validation and loading.

    Provides:
    - Type-safe access to configuration values
    - Validation on load and modification
    - Environment variable interpolation
    - Sensible defaults for all values
    """

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    continuity: ContinuityConfig = field(default_factory=ContinuityConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    references: ReferenceConfig = field(default_factory=ReferenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Raw config for extensions (e.g. custom themes)
    _raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.apply_env_credentials()

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "Config":
        """
        Load configuration from file with environment variable interpolation.

        Args:
            path: Path to YAML config file

        Returns:
            Validated Config instance
        """
        search_paths = [
            Path("./config/defaults.yaml"),
            Path("./defaults.yaml"),
            Path.home() / ".petflix" / "config.yaml",
        ]

        if path:
            path = Path(path)
            if not path.exists():
                raise ConfigurationError(
                    f"Config file not found: {path}",
                    config_key=str(path),
                )
            search_paths.insert(0, path)

        config_data = {}

        for search_path in search_paths:
            if search_path.exists():
                logger.info(f"Loading config from: {search_path}")
                try:
                    with open(search_path, "r") as f:
                        config_data = yaml.safe_load(f) or {}
                    break
                except yaml.YAMLError as e:
                    raise ConfigurationError(
                        f"Invalid YAML in config file: {e}",
                        config_key=str(search_path),
                    )
        else:
            logger.info("No config file found, using defaults")

        config_data = cls._interpolate_env_vars(config_data)

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary with validation."""
        sections = {}
        try:
            for name, section_cls in _SECTIONS.items():
                values = dict(data.get(name) or {})
                # Empty strings come from unset ${VAR} interpolation
                values = {k: (None if v == "" else v) for k, v in values.items()}
                sections[name] = section_cls(**values)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")
        return cls(**sections, _raw=data)

    @staticmethod
    def _interpolate_env_vars(data: Any) -> Any:
        """Recursively interpolate ${VAR} patterns with environment variables."""
        if isinstance(data, str):
            pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

            def replace(match):
                var_name = match.group(1)
                default = match.group(2) or ""
                return os.environ.get(var_name, default)

            return re.sub(pattern, replace, data)
        elif isinstance(data, dict):
            return {k: Config._interpolate_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [Config._interpolate_env_vars(item) for item in data]
        return data

    def apply_env_credentials(self) -> None:
        """Fill unset credentials from the environment."""
        gen = self.generation
        if not gen.api_key:
            env_name = "MINIMAX_API_KEY" if gen.provider == "minimax" else "VIDU_API_KEY"
            gen.api_key = os.getenv(env_name) or None
        if not gen.group_id and gen.provider == "minimax":
            gen.group_id = os.getenv("MINIMAX_GROUP_ID") or None
        if not self.render.api_key:
            self.render.api_key = os.getenv("SHOTSTACK_API_KEY") or None

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {name: asdict(getattr(self, name)) for name in _SECTIONS}

    def get_themes(self) -> Dict[str, Any]:
        """Custom theme definitions from the raw config, if any."""
        return self._raw.get("themes") or {}

    @property
    def budget_dir(self) -> Path:
        return Path(self.budget.data_dir).expanduser()

    @property
    def cache_dir(self) -> Path:
        return Path(self.cache.cache_dir).expanduser()
