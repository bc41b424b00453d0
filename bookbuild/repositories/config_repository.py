"""YAML configuration repository."""

from pathlib import Path
from typing import Any

import yaml

from ..exceptions import ConfigError


class ConfigRepository:
    """Concrete IConfigRepository using PyYAML."""

    def load_yaml(self, path: Path) -> dict[str, Any]:
        """Load a YAML mapping from ``path``.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")
        return data

    def save_yaml(self, path: Path, data: dict[str, Any]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
