"""Configuration loading utilities."""

import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

CONFIG_ENV_VAR = "MQTT_GATEWAY_CONFIG"
DEFAULT_CONFIG_NAME = "mqtt-gateway.yaml"


def get_config_path(
    config_name: Optional[str] = None,
    config_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """Get path to the gateway configuration file.

    Args:
        config_name: Name of config file (without path). If None, uses
            MQTT_GATEWAY_CONFIG when set, else mqtt-gateway.yaml.
        config_dir: Directory containing config files. If None, uses
            the 'config' directory at the repo root.

    Returns:
        Path to the configuration file.
    """
    if config_name is None and config_dir is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

    if config_dir is None:
        # Default to repo_root/config/
        package_dir = Path(__file__).parent.parent.parent
        config_dir = package_dir / "config"

    return Path(config_dir) / (config_name or DEFAULT_CONFIG_NAME)


def expand_env(value: Any) -> Any:
    """Recursively expand ``${VAR}`` references in string values.

    Credentials live in the environment (or .env) rather than in the YAML.
    """
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    return value


def load_yaml_config(
    config_path: Optional[Union[str, Path]] = None,
    load_env: bool = True,
) -> dict:
    """Load YAML configuration file.

    Args:
        config_path: Path to config file. If None, uses get_config_path().
        load_env: Whether to load .env file first.

    Returns:
        Configuration dictionary with environment references expanded.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ConfigError: If config file is invalid YAML or not a mapping.
    """
    if load_env:
        load_dotenv()

    if config_path is None:
        config_path = get_config_path()
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    return expand_env(data)


def get_log_level(config: dict) -> str:
    """Extract log level from config, with sensible default.

    Args:
        config: Configuration dictionary.

    Returns:
        Log level string (e.g., 'INFO', 'DEBUG').
    """
    return str(config.get("log_level", "INFO")).upper()
