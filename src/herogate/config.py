"""
Configuration management for the herogate client.

Settings come from defaults, an optional YAML file and environment variables,
in increasing order of precedence.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import jsonschema
import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".herogate" / "config.yaml"

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "region": {"type": "string", "minLength": 1},
        "profile": {"type": ["string", "null"]},
        "stack_timeout_minutes": {"type": "integer", "minimum": 1},
        "progress_interval": {"type": "number", "exclusiveMinimum": 0},
        "tail_interval": {"type": "number", "exclusiveMinimum": 0},
        "build_log_resolver": {"enum": ["project", "pipeline"]},
        "log_level": {"enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    },
    "additionalProperties": False,
}


@dataclass
class HerogateConfig:
    """Client configuration."""

    # AWS settings
    region: str = "us-east-1"
    profile: Optional[str] = None

    # Stack lifecycle
    stack_timeout_minutes: int = 10
    progress_interval: float = 10.0

    # Logs
    tail_interval: float = 5.0
    build_log_resolver: str = "project"

    log_level: str = "WARNING"

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HerogateConfig":
        """Create config from dictionary, validating it first."""
        jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        return cls(**data)


class ConfigManager:
    """Loads the client configuration from disk and the environment."""

    ENV_OVERRIDES = {
        "HEROGATE_REGION": "region",
        "HEROGATE_PROFILE": "profile",
    }

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize config manager.

        Args:
            config_path: YAML file to read (defaults to $HEROGATE_CONFIG or
                ~/.herogate/config.yaml)
        """
        if config_path is None:
            config_path = os.environ.get("HEROGATE_CONFIG") or DEFAULT_CONFIG_PATH
        self.config_path = Path(config_path)

    def load(self) -> HerogateConfig:
        """Read the file (if any), apply environment overrides and validate."""
        data: Dict[str, Any] = {}
        if self.config_path.exists():
            logger.debug(f"Loading configuration from {self.config_path}")
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(
                    f"Configuration file {self.config_path} must contain a mapping"
                )

        for env_name, key in self.ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                logger.debug(f"Overriding {key} from {env_name}")
                data[key] = value

        try:
            return HerogateConfig.from_dict(data)
        except jsonschema.ValidationError as e:
            raise ValueError(
                f"Invalid configuration in {self.config_path}: {e.message}"
            ) from e

    def save(self, config: HerogateConfig) -> None:
        """Write configuration to the YAML file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False)


# Singleton instance
_config: Optional[HerogateConfig] = None


def get_config(config_path: Optional[Union[str, Path]] = None) -> HerogateConfig:
    """Get or load the client configuration."""
    global _config
    if _config is None or config_path is not None:
        _config = ConfigManager(config_path).load()
    return _config


def reset_config() -> None:
    """Forget the cached configuration."""
    global _config
    _config = None
