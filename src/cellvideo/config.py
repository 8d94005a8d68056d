"""
cellvideo Configuration
=======================

This module handles configuration loading for the terminal video player.

Configuration Sources (in order of precedence):
    1. Explicit overrides (command-line flags)
    2. Environment variables
    3. config.yaml file
    4. Default values (lowest priority)

Environment Variable Mapping:
    CELLVIDEO_WIDTH          -> render.width
    CELLVIDEO_HEIGHT         -> render.height
    CELLVIDEO_SOURCE_BACKEND -> source.backend
    CELLVIDEO_PATH           -> source.path
    CELLVIDEO_URL            -> source.url
    CELLVIDEO_FFMPEG         -> source.ffmpeg_binary
    CELLVIDEO_DOWNLOADER     -> source.downloader_binary
    CELLVIDEO_LOG_LEVEL      -> logging.level

Settings are immutable once loaded: build them once at startup and pass
them down explicitly.

Example:
    from cellvideo.config import load_config

    settings = load_config(overrides={"source": {"path": "video.mp4"}})
    print(settings.render.width, settings.render.height)
"""

import os
import sys
import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class RenderConfig(BaseModel):
    """Terminal pixel grid configuration."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(
        default=120,
        gt=0,
        description="Target grid width in pixels (one terminal column each)",
    )
    height: int = Field(
        default=80,
        gt=0,
        description="Target grid height in pixels (two per terminal row)",
    )

    @field_validator("height")
    @classmethod
    def validate_even_height(cls, v: int) -> int:
        """Rows are encoded in pairs, so the height must be even."""
        if v % 2 != 0:
            raise ValueError(f"height must be even, got {v}")
        return v


class SourceConfig(BaseModel):
    """Frame source selection and external tool configuration."""

    model_config = ConfigDict(frozen=True)

    backend: Literal["ffmpeg", "opencv", "mock"] = Field(
        default="ffmpeg",
        description="Acquisition backend: 'ffmpeg', 'opencv' or 'mock'",
    )
    path: Optional[str] = Field(default=None, description="Path to a video file")
    url: Optional[str] = Field(default=None, description="URL of a video source")
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")
    downloader_binary: str = Field(
        default="youtube-dl",
        description="youtube-dl compatible downloader for URL sources",
    )
    downloader_format: str = Field(
        default="worst",
        description="Format selector passed to the downloader",
    )
    mock_frame_count: int = Field(
        default=300,
        ge=0,
        description="Frames produced by the mock backend (0 = unlimited)",
    )


class OutputConfig(BaseModel):
    """Terminal output configuration."""

    model_config = ConfigDict(frozen=True)

    clear_screen: bool = Field(
        default=True,
        description="Clear the terminal once before the first frame",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="WARNING", description="Log level")
    format: Literal["json", "text"] = Field(
        default="text",
        description="Log format: json or text",
    )


class Settings(BaseModel):
    """
    Main settings class for cellvideo.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    model_config = ConfigDict(frozen=True)

    render: RenderConfig = Field(default_factory=RenderConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Settings:
    """
    Load configuration from YAML file, environment variables and overrides.

    Priority (highest to lowest):
        1. Explicit overrides
        2. Environment variables
        3. YAML config file
        4. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.
        overrides: Section -> {field: value} values applied last. None
            values are ignored.

    Returns:
        Settings: Loaded configuration

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        pydantic.ValidationError: If any value is invalid
    """
    if config_path is not None and not Path(config_path).exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    # Find config file
    if config_path is None:
        search_paths = [
            Path("cellvideo.yaml"),
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data: Dict[str, Any] = {}
    if config_path:
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    for section, values in (overrides or {}).items():
        for key, value in values.items():
            if value is not None:
                config_data.setdefault(section, {})[key] = value

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Render settings
    if env_width := os.environ.get("CELLVIDEO_WIDTH"):
        config_data.setdefault("render", {})["width"] = int(env_width)
    if env_height := os.environ.get("CELLVIDEO_HEIGHT"):
        config_data.setdefault("render", {})["height"] = int(env_height)

    # Source settings
    if env_backend := os.environ.get("CELLVIDEO_SOURCE_BACKEND"):
        config_data.setdefault("source", {})["backend"] = env_backend
    if env_path := os.environ.get("CELLVIDEO_PATH"):
        config_data.setdefault("source", {})["path"] = env_path
    if env_url := os.environ.get("CELLVIDEO_URL"):
        config_data.setdefault("source", {})["url"] = env_url
    if env_ffmpeg := os.environ.get("CELLVIDEO_FFMPEG"):
        config_data.setdefault("source", {})["ffmpeg_binary"] = env_ffmpeg
    if env_ffprobe := os.environ.get("CELLVIDEO_FFPROBE"):
        config_data.setdefault("source", {})["ffprobe_binary"] = env_ffprobe
    if env_downloader := os.environ.get("CELLVIDEO_DOWNLOADER"):
        config_data.setdefault("source", {})["downloader_binary"] = env_downloader

    # Logging settings
    if env_log := os.environ.get("CELLVIDEO_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """
    Configure logging based on settings.

    Logs go to stderr; stdout carries only rendered frames.
    """
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )
