# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for cuetrack.
Handles loading and saving settings from a YAML config file.
"""

import copy
from pathlib import Path
from typing import Any, TypedDict

import yaml

from .matching import MatchingProfile, get_profile

CONFIG_FILENAME: str = ".cuetrack.yaml"


class TrackingSettings(TypedDict):
    """Type definition for tracking configuration settings."""
    profile: str  # "default" or "conservative"
    look_ahead_words: int | None  # None keeps the profile's own value
    allow_backward_match: bool | None  # None keeps the profile's own value
    pause_threshold_ms: int


class Config(TypedDict):
    """Type definition for the complete configuration."""
    # Server settings
    host: str
    port: int
    # Transcript message format ("plain" or "deepgram")
    provider: str
    # Write logs/tracker_words.log
    debug_log: bool
    tracking: TrackingSettings


# Default configuration values
DEFAULT_CONFIG: Config = {
    # Server settings
    "host": "127.0.0.1",
    "port": 8000,

    "provider": "plain",
    "debug_log": False,

    # Tracking
    "tracking": {
        "profile": "default",
        "look_ahead_words": None,
        "allow_backward_match": None,
        "pause_threshold_ms": 1000,
    },
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.

    Args:
        base: Base dictionary to merge from.
        override: Dictionary with values that take precedence over base.

    Returns:
        New dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    # Start with defaults
    config: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)  # type: ignore[arg-type]

    # Load from file if it exists
    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: dict[str, Any] | None = yaml.safe_load(f)
                if isinstance(file_config, dict):
                    config = _deep_merge(config, file_config)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load config from {config_path}: {e}")

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary to save.
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
        return True
    except (OSError, yaml.YAMLError) as e:
        print(f"Error saving config to {config_path}: {e}")
        return False


def get_tracking_settings(config: Config) -> TrackingSettings:
    """
    Extract tracking settings from config.

    Args:
        config: Configuration dictionary.

    Returns:
        Tracking settings dictionary.
    """
    return config.get("tracking", DEFAULT_CONFIG["tracking"]).copy()  # type: ignore[return-value]


def update_config_tracking(config: Config, tracking_settings: dict[str, Any]) -> Config:
    """
    Update the tracking section of the config with new settings.
    Returns a new config dict.

    Args:
        config: Current configuration.
        tracking_settings: New tracking settings to merge in.

    Returns:
        New configuration with updated tracking settings.
    """
    new_config: dict[str, Any] = _deep_merge({}, config)
    new_config["tracking"] = _deep_merge(
        new_config.get("tracking", {}),
        tracking_settings
    )
    return new_config  # type: ignore[return-value]


def profile_from_settings(settings: TrackingSettings) -> MatchingProfile:
    """
    Build the matching profile described by tracking settings.

    Args:
        settings: Tracking settings dictionary.

    Returns:
        The named preset with any overrides applied.

    Raises:
        ValueError: If the profile name is unknown or an override is out of range.
    """
    profile: MatchingProfile = get_profile(str(settings.get("profile", "default")))

    look_ahead = settings.get("look_ahead_words")
    if look_ahead is not None:
        profile = profile.with_look_ahead(look_ahead)

    allow_backward = settings.get("allow_backward_match")
    if allow_backward is not None:
        profile = profile.with_backward_match(bool(allow_backward))

    return profile
