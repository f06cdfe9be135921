"""
Configuration management for eventhats.

This module provides utilities for loading, validating, and managing
configuration from YAML files.

Example:
    >>> from eventhats.config import load_config, get_hats_params
    >>>
    >>> # Load from default location
    >>> config = load_config()
    >>>
    >>> # Load with overrides
    >>> config = load_config(overrides={"hats": {"radius": 4, "cell_size": 10}})
    >>> params = get_hats_params(config)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union
from dataclasses import asdict, dataclass

import yaml


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""
    pass


class ConfigFileNotFoundError(ConfigError):
    """Raised when a configuration file is not found."""
    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""
    pass


class CompositeError(ConfigError):
    """Raised when accumulators cannot be tiled into the requested grid."""
    pass


# =============================================================================
# CONSTANTS
# =============================================================================

# Timestamps are integer microseconds; decay constants are in seconds.
US_PER_SECOND = 1_000_000

MAX_RADIUS = 32
MAX_CELL_SIZE = 256
MAX_WINDOW_SIZE = 10_000

SUPPORTED_DTYPES = ("float32", "float64", "uint8", "uint16")
INTEGER_DTYPES = ("uint8", "uint16")


# =============================================================================
# PATH UTILITIES
# =============================================================================


def get_project_root() -> Path:
    """
    Get the project root directory.

    Returns:
        Path to project root (parent of 'eventhats' package).
    """
    return Path(__file__).resolve().parent.parent


def get_default_config_path() -> Path:
    """
    Get the default configuration file path.

    Returns:
        Path to configs/config.yaml
    """
    return get_project_root() / "configs" / "config.yaml"


# =============================================================================
# CONFIG LOADING
# =============================================================================


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a YAML file.

    Args:
        path: Path to YAML file.

    Returns:
        Dictionary of configuration values.

    Raises:
        ConfigFileNotFoundError: If file doesn't exist.
        ConfigError: If YAML parsing fails.
    """
    path = Path(path)

    if not path.exists():
        raise ConfigFileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
            return config if config is not None else {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML file {path}: {e}") from e


def save_yaml(config: Dict[str, Any], path: Union[str, Path]) -> None:
    """
    Save configuration to a YAML file.

    Args:
        config: Configuration dictionary.
        path: Output path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def merge_configs(
    base: Dict[str, Any],
    override: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Deep merge two configuration dictionaries.

    Override values take precedence over base values.

    Args:
        base: Base configuration.
        override: Override configuration.

    Returns:
        Merged configuration.
    """
    result = base.copy()

    for key, value in override.items():
        if (
            key in result and
            isinstance(result[key], dict) and
            isinstance(value, dict)
        ):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Load configuration from YAML file with optional overrides.

    Args:
        path: Path to config file. If None, uses default config.
        overrides: Dictionary of values to override.

    Returns:
        Complete configuration dictionary.

    Example:
        >>> config = load_config()  # Load default
        >>> config = load_config(overrides={"hats": {"window_size": 50}})
    """
    if path is None:
        path = get_default_config_path()

    config = load_yaml(path)

    if overrides:
        config = merge_configs(config, overrides)

    return config


# =============================================================================
# CONFIG DATACLASSES
# =============================================================================


def _check_int(value: Any, name: str, low: int, high: Optional[int] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < low or (high is not None and value > high):
        bounds = f"[{low}, {high}]" if high is not None else f">= {low}"
        raise ConfigValidationError(f"{name} must be {bounds}, got {value}")


def _check_positive(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(f"{name} must be a number, got {type(value).__name__}")
    if not value > 0:
        raise ConfigValidationError(f"{name} must be positive, got {value}")


def _known_fields(cls: type, d: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(k for k in d if k not in cls.__dataclass_fields__)
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(map(str, unknown)))
    return {k: v for k, v in d.items() if k in cls.__dataclass_fields__}


@dataclass
class HATSParams:
    """
    Parameters of the HATS encoding engine.

    Attributes:
        radius: Neighbourhood radius R; local surfaces are (2R+1) x (2R+1).
        cell_size: Cell edge K in pixels.
        temporal_window_us: Maximum age of events kept in a cell's memory.
        tau: Decay constant in seconds.
        window_size: Number of local surfaces summed per (cell, polarity).
        time_scale: Timestamp ticks per second.
        dtype: Element type of surfaces and running sums.
        check_invariants: Recompute every running sum after each push.
    """
    radius: int = 8
    cell_size: int = 8
    temporal_window_us: int = 100_000
    tau: float = 0.5
    window_size: int = 30
    time_scale: int = US_PER_SECOND
    dtype: str = "float32"
    check_invariants: bool = False

    @property
    def neighborhood(self) -> int:
        """Edge length of a local surface."""
        return 2 * self.radius + 1

    def validate(self) -> "HATSParams":
        """
        Check every field against its allowed range.

        Returns:
            self, for chaining.

        Raises:
            ConfigValidationError: On the first out-of-range value.
        """
        _check_int(self.radius, "radius", 0, MAX_RADIUS)
        _check_int(self.cell_size, "cell_size", 1, MAX_CELL_SIZE)
        _check_int(self.temporal_window_us, "temporal_window_us", 1)
        _check_positive(self.tau, "tau")
        _check_int(self.window_size, "window_size", 1, MAX_WINDOW_SIZE)
        _check_int(self.time_scale, "time_scale", 1)
        if self.dtype not in SUPPORTED_DTYPES:
            raise ConfigValidationError(
                f"dtype must be one of {SUPPORTED_DTYPES}, got {self.dtype!r}"
            )
        if self.check_invariants and self.dtype in INTEGER_DTYPES:
            # Saturated integer sums no longer equal the sum of their history
            raise ConfigValidationError(
                f"check_invariants requires a float dtype, got {self.dtype!r}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HATSParams":
        """Create from dictionary; unknown keys are logged and ignored."""
        return cls(**_known_fields(cls, d))


@dataclass
class RenderParams:
    """Frame rendering parameters for scripts/render_hats.py."""
    batch_us: int = 33_000
    print_interval: int = 10_000
    output_dir: str = "./frames"
    polarity: str = "on"
    normalize: bool = False
    colormap: str = "gray"

    def validate(self) -> "RenderParams":
        _check_int(self.batch_us, "batch_us", 1)
        _check_int(self.print_interval, "print_interval", 1)
        if self.polarity not in ("on", "off"):
            raise ConfigValidationError(f"polarity must be 'on' or 'off', got {self.polarity!r}")
        return self

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RenderParams":
        """Create from dictionary."""
        return cls(**_known_fields(cls, d))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def get_hats_params(config: Optional[Dict[str, Any]] = None) -> HATSParams:
    """
    Get validated engine parameters from config.

    Args:
        config: Config dict. If None, loads default.

    Returns:
        HATSParams instance.
    """
    if config is None:
        config = load_config()
    return HATSParams.from_dict(config.get("hats", {})).validate()


def get_render_params(config: Optional[Dict[str, Any]] = None) -> RenderParams:
    """
    Get validated render parameters from config.

    Args:
        config: Config dict. If None, loads default.

    Returns:
        RenderParams instance.
    """
    if config is None:
        config = load_config()
    return RenderParams.from_dict(config.get("render", {})).validate()


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    "CompositeError",
    # Constants
    "US_PER_SECOND",
    "MAX_RADIUS",
    "MAX_CELL_SIZE",
    "MAX_WINDOW_SIZE",
    "SUPPORTED_DTYPES",
    "INTEGER_DTYPES",
    # Path utilities
    "get_project_root",
    "get_default_config_path",
    # Loading/saving
    "load_yaml",
    "save_yaml",
    "merge_configs",
    "load_config",
    # Dataclasses
    "HATSParams",
    "RenderParams",
    # Convenience
    "get_hats_params",
    "get_render_params",
]
