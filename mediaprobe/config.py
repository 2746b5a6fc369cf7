"""
Configuration management for MediaProbe.

Handles loading, validation, and access to application configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

# Global configuration instance
_config: Optional["MediaProbeConfig"] = None

MiB = 1024 * 1024
GiB = 1024 * MiB


class ServerConfig(BaseModel):
    """HTTP API server configuration."""
    host: str = "127.0.0.1"
    port: int = 8420
    debug: bool = False


class FFmpegConfig(BaseModel):
    """FFmpeg / FFprobe binaries."""
    path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    scratch_dir: Optional[str] = None  # Parent directory for the backend workspace (None = system temp)
    load_timeout: float = 15.0


class ExtractionConfig(BaseModel):
    """Byte-range selection, retry and timeout settings for the extraction engine."""
    # Box-family (MP4/MOV/3GP/F4V) probing
    mp4_whole_file_threshold: int = 200 * MiB
    mp4_window_size: int = 64 * MiB
    mp4_min_window_size: int = 16 * MiB
    mp4_middle_window_size: int = 32 * MiB

    # Other containers: prefix only
    probe_chunk_size: int = 32 * MiB
    probe_min_chunk_size: int = 8 * MiB

    # Export reads the whole file unless it cannot be buffered
    max_export_buffer: Optional[int] = 4 * GiB

    # Memory pressure thresholds (fraction of system memory in use)
    medium_pressure: float = 0.5
    high_pressure: float = 0.75

    # Text backend write / execute
    write_timeout: float = 30.0
    execute_timeout: float = 60.0
    write_retries: int = 3
    write_backoff_base: float = 0.5

    # Best-effort scratch cleanup
    cleanup_retries: int = 3
    cleanup_backoff: float = 0.1

    # Re-encode fallback parameters
    video_crf: int = 23
    video_preset: str = "medium"
    audio_bitrate: str = "128k"


class BatchConfig(BaseModel):
    """Batch coordinator timings (seconds)."""
    item_timeout: float = 60.0
    admission_delay: float = 3.0
    success_cooldown: float = 2.0
    error_cooldown: float = 3.0


class DeliveryConfig(BaseModel):
    """Artifact delivery settings."""
    direct_limit: int = 2 * GiB
    chunk_size: int = 100 * MiB
    output_dir: str = "exports"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/mediaprobe.log"
    max_bytes: int = 10 * MiB
    backup_count: int = 5
    to_file: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# Config file path handed to server workers started by uvicorn
CONFIG_ENV_VAR = "MEDIAPROBE_CONFIG"


class MediaProbeConfig(BaseModel):
    """Main MediaProbe configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> MediaProbeConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. Defaults to $MEDIAPROBE_CONFIG,
            then config.yaml in the current directory or project root.

    Returns:
        Loaded and validated configuration.
    """
    global _config

    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR)

    if config_path is None:
        # Look for config.yaml in current directory or project root
        possible_paths = [
            Path("config.yaml"),
            Path(__file__).parent.parent / "config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict[str, Any] = {}

    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    env_overrides = _get_env_overrides()
    _deep_merge(config_data, env_overrides)

    _config = MediaProbeConfig(**config_data)
    return _config


def get_config() -> MediaProbeConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> MediaProbeConfig:
    """
    Reload configuration from disk.

    Returns:
        Freshly loaded configuration.
    """
    global _config
    _config = None
    return load_config()


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    # Map of environment variables to config paths
    env_map = {
        "MEDIAPROBE_HOST": ("server", "host"),
        "MEDIAPROBE_PORT": ("server", "port"),
        "MEDIAPROBE_DEBUG": ("server", "debug"),
        "MEDIAPROBE_FFMPEG_PATH": ("ffmpeg", "path"),
        "MEDIAPROBE_FFPROBE_PATH": ("ffmpeg", "ffprobe_path"),
        "MEDIAPROBE_SCRATCH_DIR": ("ffmpeg", "scratch_dir"),
        "MEDIAPROBE_ITEM_TIMEOUT": ("batch", "item_timeout"),
        "MEDIAPROBE_OUTPUT_DIR": ("delivery", "output_dir"),
        "MEDIAPROBE_LOG_LEVEL": ("logging", "level"),
    }

    for env_var, path in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested(overrides, path, _parse_env_value(value))

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    # Boolean
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    # Integer
    try:
        return int(value)
    except ValueError:
        pass

    # Float
    try:
        return float(value)
    except ValueError:
        pass

    return value


def _set_nested(d: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value from a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
