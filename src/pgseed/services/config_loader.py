"""Configuration loader for pgseed."""

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from pgseed.errors import SeedError
from pgseed.models import DatabaseInstanceSpec, EnvironmentSettings


class ConfigLoader:
    """Loads YAML environment definitions for the CLI and test suites."""

    SETTINGS_KEYS = {item.name for item in fields(EnvironmentSettings)}
    INSTANCE_KEYS = {item.name for item in fields(DatabaseInstanceSpec)}
    SUPPORTED_KEYS = SETTINGS_KEYS | {"instances", "verbose", "log_file"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise SeedError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise SeedError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise SeedError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise SeedError(f"Unknown configuration keys: {unknown_list}")

        return parsed

    def build_specs(self, config: Dict[str, Any]) -> List[DatabaseInstanceSpec]:
        raw_instances = config.get("instances") or []
        if not isinstance(raw_instances, list):
            raise SeedError("`instances` must be a list of mappings.")

        specs = []
        for index, raw in enumerate(raw_instances):
            if not isinstance(raw, dict):
                raise SeedError(f"Instance #{index + 1} must be a mapping.")
            unknown = sorted(set(raw.keys()) - self.INSTANCE_KEYS)
            if unknown:
                raise SeedError(
                    f"Unknown keys for instance #{index + 1}: {', '.join(unknown)}"
                )
            for required in ("role", "backup"):
                if not raw.get(required):
                    raise SeedError(f"Instance #{index + 1} is missing `{required}`.")
            specs.append(
                DatabaseInstanceSpec(**{key: self._as_text(key, value) for key, value in raw.items()})
            )
        return specs

    def build_settings(
        self, config: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None
    ) -> EnvironmentSettings:
        values = {key: config[key] for key in self.SETTINGS_KEYS if key in config}
        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value

        if "resource_roots" in values:
            roots = values["resource_roots"]
            values["resource_roots"] = (roots,) if isinstance(roots, str) else tuple(roots)
        if "extra_properties" in values:
            extra = values["extra_properties"] or {}
            if not isinstance(extra, dict):
                raise SeedError("`extra_properties` must be a mapping.")
            values["extra_properties"] = {str(key): str(value) for key, value in extra.items()}

        try:
            return EnvironmentSettings(**values)
        except TypeError as exc:
            raise SeedError(f"Invalid environment settings: {exc}") from exc

    @staticmethod
    def _as_text(key: str, value: Any) -> Any:
        # YAML turns bare numbers and booleans into non-strings; credentials stay text.
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float, bool)):
            return str(value)
        raise SeedError(f"Instance field `{key}` must be a scalar value.")
