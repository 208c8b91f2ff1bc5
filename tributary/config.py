"""Configuration management for Tributary."""

import os
from pathlib import Path
from typing import Optional, Dict, Any

import yaml

from .errors import ConfigError
from .providers.base import ProviderConfig
from .schedule.entry import ScheduleEntry, load_schedule_from_config
from .servers.definition import ServerDefinition, load_servers_from_config

DEFAULT_CONFIG_PATH = "~/.config/tributary/config.yaml"

_DEFAULTS = {
    "provider": "openai",
    "exit_token": "exit",
    "welcome": "",
    "max_rounds": 5,
    "tool_timeout": None,
    "max_workers": 4,
    "log_level": "WARNING",
}


class ConfigManager:
    """Manage Tributary configuration from YAML."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            self._create_default_config()
        return self._read_yaml()

    def _read_yaml(self) -> Dict[str, Any]:
        """Read and parse YAML file."""
        try:
            with open(self.config_path, "r") as f:
                content = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error reading config {self.config_path}: {e}") from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigError(f"Config {self.config_path} must be a mapping")
        return content

    def _create_default_config(self) -> None:
        """Create default configuration file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        default_config = {
            "providers": {
                "openai": {
                    "enabled": True,
                    "api_key": "${OPENAI_API_KEY}",
                    "model": "gpt-4o",
                    "temperature": 0.7,
                },
                "claude": {
                    "enabled": False,
                    "api_key": "${ANTHROPIC_API_KEY}",
                    "model": "claude-sonnet-4-5",
                    "temperature": 0.7,
                },
            },
            "defaults": dict(_DEFAULTS),
            "templates": {
                "directory": "prompts",
            },
            "servers": {},
            "schedule": [],
            "hooks": [],
        }

        with open(self.config_path, "w") as f:
            yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

    def get_provider_config(self, provider_name: str) -> Optional[ProviderConfig]:
        """Get configuration for a specific provider, or None if unusable."""
        provider_data = self.data.get("providers", {}).get(provider_name, {})

        if not provider_data.get("enabled", False):
            return None

        api_key = self._resolve_env_var(provider_data.get("api_key", ""))
        if not api_key:
            return None

        return ProviderConfig(
            api_key=api_key,
            model=provider_data.get("model", ""),
            base_url=provider_data.get("base_url"),
            temperature=provider_data.get("temperature", 0.7),
            max_tokens=provider_data.get("max_tokens"),
            timeout=float(provider_data.get("timeout", 60.0)),
        )

    def _resolve_env_var(self, value: str) -> str:
        """Resolve environment variable references like ${VAR_NAME}."""
        value = str(value)
        if not value.startswith("${") or not value.endswith("}"):
            return value

        var_name = value[2:-1]
        return os.getenv(var_name, "")

    def get_defaults(self) -> Dict[str, Any]:
        config = self.data.get("defaults") or {}
        return {**_DEFAULTS, **config}

    def get_default_provider(self) -> str:
        """Get the default provider name."""
        return self.get_defaults()["provider"]

    def get_enabled_providers(self) -> list[str]:
        """Get list of enabled provider names."""
        providers = self.data.get("providers", {})
        return [name for name, config in providers.items() if config.get("enabled", False)]

    def get_server_definitions(self) -> tuple[ServerDefinition, ...]:
        """Tool servers to launch, in config order."""
        servers = self.data.get("servers") or {}
        if not isinstance(servers, dict):
            raise ConfigError("'servers' must be a mapping of name -> server")
        return load_servers_from_config(servers)

    def get_schedule(self) -> tuple[ScheduleEntry, ...]:
        """Schedule entries, fixed for the process lifetime."""
        schedule = self.data.get("schedule") or []
        if not isinstance(schedule, list):
            raise ConfigError("'schedule' must be a list of entries")
        return load_schedule_from_config(schedule)

    def get_templates_config(self) -> Dict[str, Any]:
        """Template directory (resolved against the config file) and inline templates."""
        config = self.data.get("templates") or {}
        directory = Path(str(config.get("directory", "prompts"))).expanduser()
        if not directory.is_absolute():
            directory = self.config_path.parent / directory
        return {
            "directory": directory,
            "inline": dict(config.get("inline") or {}),
        }

    def get_hooks_config(self) -> list:
        """Get hooks configuration (list of hook definitions)."""
        return self.data.get("hooks") or []
