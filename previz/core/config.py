"""
Previz Configuration Management

Pipeline tunables loaded from an optional JSON file. Secrets and service
endpoints live in ``previz.core.settings``.
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from .constants import (
    DEFAULT_RENDER_DELAY_SECONDS,
    MAX_SHOTS,
    MIN_SHOTS,
    OCR_CACHE_TTL_SECONDS,
    WORDS_PER_SHOT,
    AspectRatio,
)
from .exceptions import ConfigurationError, InvalidConfigError


@dataclass
class PlannerConfig:
    """Text-model settings for the shot planner."""
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 8192
    timeout: int = 120
    words_per_shot: int = WORDS_PER_SHOT
    min_shots: int = MIN_SHOTS
    max_shots: int = MAX_SHOTS

    @classmethod
    def from_dict(cls, data: dict) -> 'PlannerConfig':
        config = cls(
            model=data.get('model', cls.model),
            temperature=data.get('temperature', 0.7),
            max_tokens=data.get('max_tokens', 8192),
            timeout=data.get('timeout', 120),
            words_per_shot=data.get('words_per_shot', WORDS_PER_SHOT),
            min_shots=data.get('min_shots', MIN_SHOTS),
            max_shots=data.get('max_shots', MAX_SHOTS),
        )
        if config.words_per_shot <= 0:
            raise InvalidConfigError("planner.words_per_shot must be positive")
        if not 0 < config.min_shots <= config.max_shots:
            raise InvalidConfigError(
                "planner shot bounds must satisfy 0 < min_shots <= max_shots",
                {"min_shots": config.min_shots, "max_shots": config.max_shots}
            )
        return config


@dataclass
class RenderConfig:
    """Image-model settings for the frame renderer and batch loop."""
    model: str = "gpt-image-1"
    quality: str = "high"
    timeout: int = 180
    delay_seconds: float = DEFAULT_RENDER_DELAY_SECONDS
    default_aspect_ratio: AspectRatio = AspectRatio.WIDE
    max_reference_images: int = 4

    @classmethod
    def from_dict(cls, data: dict) -> 'RenderConfig':
        try:
            aspect = AspectRatio.parse(data.get('default_aspect_ratio', AspectRatio.WIDE))
        except ValueError as e:
            raise InvalidConfigError(str(e))
        config = cls(
            model=data.get('model', cls.model),
            quality=data.get('quality', 'high'),
            timeout=data.get('timeout', 180),
            delay_seconds=float(data.get('delay_seconds', DEFAULT_RENDER_DELAY_SECONDS)),
            default_aspect_ratio=aspect,
            max_reference_images=data.get('max_reference_images', 4),
        )
        if config.delay_seconds < 0:
            raise InvalidConfigError("render.delay_seconds cannot be negative")
        return config


@dataclass
class IngestionConfig:
    """OCR and upload settings."""
    cache_ttl_seconds: int = OCR_CACHE_TTL_SECONDS
    ocr_timeout: int = 300
    max_file_bytes: int = 20 * 1024 * 1024

    @classmethod
    def from_dict(cls, data: dict) -> 'IngestionConfig':
        return cls(
            cache_ttl_seconds=data.get('cache_ttl_seconds', OCR_CACHE_TTL_SECONDS),
            ocr_timeout=data.get('ocr_timeout', 300),
            max_file_bytes=data.get('max_file_bytes', 20 * 1024 * 1024),
        )


@dataclass
class PrevizConfig:
    """Main configuration for the storyboard pipeline."""
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    default_visual_style: str = "cinematic"
    verbose_logging: bool = False
    log_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'PrevizConfig':
        """Create PrevizConfig from dictionary."""
        config = cls()

        config.default_visual_style = data.get('default_visual_style', config.default_visual_style)
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)
        if data.get('log_file'):
            config.log_file = Path(data['log_file'])

        if 'planner' in data:
            config.planner = PlannerConfig.from_dict(data['planner'])
        if 'render' in data:
            config.render = RenderConfig.from_dict(data['render'])
        if 'ingestion' in data:
            config.ingestion = IngestionConfig.from_dict(data['ingestion'])

        return config

    def to_dict(self) -> dict:
        data = asdict(self)
        data['render']['default_aspect_ratio'] = self.render.default_aspect_ratio.value
        data['log_file'] = str(self.log_file) if self.log_file else None
        return data


def load_config(config_path: Path = None) -> PrevizConfig:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded PrevizConfig, or defaults when the file does not exist
    """
    if config_path is None:
        config_path = Path("config/previz_config.json")
    config_path = Path(config_path)

    if not config_path.exists():
        return PrevizConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigError("Config file must contain a JSON object")
    return PrevizConfig.from_dict(data)


def save_config(config: PrevizConfig, config_path: Path) -> None:
    """Write configuration as JSON."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)


_config: Optional[PrevizConfig] = None


def get_config() -> PrevizConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: PrevizConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
