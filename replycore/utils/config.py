"""Configuration management for replycore."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from functools import lru_cache

from replycore.core.exceptions import ConfigurationError

REQUIRED_SECTIONS = ["routing", "providers", "retrieval", "contract"]


@lru_cache(maxsize=1)
def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses REPLYCORE_CONFIG or
            the default locations.

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If config file is invalid or missing
    """
    if config_path is None:
        config_path = os.getenv("REPLYCORE_CONFIG")

    if config_path is None:
        possible_paths = [
            Path("config/settings.yaml"),
            Path("/etc/replycore/settings.yaml"),
            Path.home() / ".replycore" / "settings.yaml",
            Path(__file__).parent.parent.parent / "config" / "settings.yaml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break
        else:
            raise ConfigurationError(
                f"No configuration file found in: {[str(p) for p in possible_paths]}"
            )

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}")
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {config_path}")
    except OSError as e:
        raise ConfigurationError(f"Error loading config: {e}")

    validate_config(config)
    return _apply_env_overrides(config)


def validate_config(config: Dict[str, Any]) -> None:
    """Check that every required section is present."""
    missing = [s for s in REQUIRED_SECTIONS if s not in config]
    if missing:
        raise ConfigurationError(f"Missing required config sections: {missing}")

    preference = config["routing"].get("preference", [])
    if not isinstance(preference, list):
        raise ConfigurationError("routing.preference must be a list of provider names")


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to config."""
    env_mappings = {
        "REPLYCORE_API_HOST": ("api", "host"),
        "REPLYCORE_API_PORT": ("api", "port"),
        "REPLYCORE_LOG_LEVEL": ("logging", "level"),
        "REPLYCORE_USAGE_LOG": ("usage", "path"),
        "REPLYCORE_EMBEDDING_MODEL": ("retrieval", "embedding_model"),
    }

    for env_var, config_path in env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            current = config
            for key in config_path[:-1]:
                current = current.setdefault(key, {})

            if "port" in config_path[-1].lower():
                try:
                    value = int(value)
                except ValueError:
                    continue

            current[config_path[-1]] = value

    # Comma separated provider order, e.g. "groq,openai"
    preference = os.getenv("REPLYCORE_PROVIDER_PREFERENCE")
    if preference:
        config.setdefault("routing", {})["preference"] = [
            name.strip() for name in preference.split(",") if name.strip()
        ]

    return config


def get_config_value(path: str, default: Any = None) -> Any:
    """
    Get a specific configuration value by path.

    Args:
        path: Dot-separated path (e.g., 'api.port')
        default: Default value if path not found

    Returns:
        Configuration value or default
    """
    try:
        config = load_config()
    except ConfigurationError:
        return default

    try:
        value = config
        for key in path.split("."):
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


class Config:
    """Configuration wrapper with attribute access."""

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        if config_dict is None:
            config_dict = load_config()
        self._config = config_dict

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._config:
            value = self._config[name]
            if isinstance(value, dict):
                return Config(value)
            return value
        raise AttributeError(f"Config has no attribute '{name}'")

    def get(self, name: str, default: Any = None) -> Any:
        return self._config.get(name, default)
