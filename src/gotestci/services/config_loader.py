"""Configuration loader for gotestci."""

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from gotestci.errors import BuildError
from gotestci.models import BuildConfig


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {item.name for item in fields(BuildConfig)} | {"verbose", "log_file"}
    TUPLE_KEYS = {"artifacts", "exclude_patterns", "container_markers"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise BuildError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise BuildError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise BuildError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise BuildError(f"Unknown configuration keys: {unknown_list}")

        for key in self.TUPLE_KEYS & set(parsed):
            value = parsed[key]
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list):
                raise BuildError(f"Configuration key '{key}' must be a list of strings.")
            parsed[key] = tuple(str(item) for item in value)

        return parsed

    def build_config(self, values: Dict[str, Any]) -> BuildConfig:
        known = {key: value for key, value in values.items() if key in BuildConfig.__dataclass_fields__}
        return BuildConfig(**known)
