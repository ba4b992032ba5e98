"""Configuration loader for with_postgres_ready."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from with_postgres_ready.errors import ConfigError


class ConfigLoader:
    """Loads YAML files holding run setting overrides."""

    SUPPORTED_KEYS = {
        "image_tag",
        "container_timeout",
        "connection_timeout",
        "connection_test_interval",
    }
    DURATION_KEYS = SUPPORTED_KEYS - {"image_tag"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown configuration keys: {unknown_list}")

        for key in sorted(self.DURATION_KEYS & set(parsed.keys())):
            value = parsed[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"Configuration key '{key}' must be a number of seconds.")

        return parsed
