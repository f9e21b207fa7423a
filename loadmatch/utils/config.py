"""Configuration management for the LoadMatch engine"""

import yaml
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from loadmatch.exceptions import ConfigurationError


DEFAULT_CONFIG_PATH = "config/config.yaml"
PROJECT_ROOT = Path(__file__).parent.parent.parent


class ConfigLoader:
    """
    YAML-backed engine configuration with dot-notation lookups

    Example: config.get('matching.weights.location', default=0.4)

    Components never read this object lazily: each builds its own frozen
    settings (MatchConfig, AnomalyThresholds, AggregatorConfig) from it at
    construction time. Use ConfigLoader.from_dict() for configuration that
    does not come from a file.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Args:
            config_path: YAML file; relative paths that do not exist in the
                working directory are looked up under the project root
                (default: config/config.yaml)
        """
        self.config_path = self._locate(Path(config_path or DEFAULT_CONFIG_PATH))
        self.config = self._load_config()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'ConfigLoader':
        """Wrap an already parsed configuration mapping (no backing file)"""
        loader = cls.__new__(cls)
        loader.config_path = None
        loader.config = dict(data or {})
        return loader

    @staticmethod
    def _locate(path: Path) -> Path:
        if path.exists() or path.is_absolute():
            return path
        return PROJECT_ROOT / path

    def _load_config(self) -> dict:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        # An empty file means "all defaults"
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"{self.config_path}: expected a mapping at top level, got {type(data).__name__}"
            )
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key such as 'anomaly.stable_threshold'

        Returns default when any segment is missing or a non-mapping
        value is reached before the last segment.
        """
        value: Any = self.config
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def reload(self):
        """Re-read the backing file; loaders built with from_dict() keep their data"""
        if self.config_path is not None:
            self.config = self._load_config()

    def __repr__(self) -> str:
        source = self.config_path if self.config_path is not None else '<dict>'
        return f"ConfigLoader(config_path='{source}')"
