"""Compiler options and the compote.yaml loader."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from loguru import logger

from .converter import SourceDeclaration
from .errors import ConfigError
from .resolver import DEFAULT_MAX_CONCURRENT_PROVIDERS
from .syntax import SourceSpan

CONFIG_FILENAME = "compote.yaml"


@dataclass
class CompilerOptions:
    """Options for one compilation run.

    Attributes:
        allow_missing_provider: Downgrade unknown aliases and failed fetches
            to warnings with ``None`` substituted.
        per_provider_fetch_timeout: Seconds allowed for each provider fetch.
        max_concurrent_providers: Provider fetches in flight at once.
        vars: Values served by the ``var`` provider.
        providers: Provider declarations added to those found in documents.
    """

    allow_missing_provider: bool = False
    per_provider_fetch_timeout: Optional[float] = None
    max_concurrent_providers: int = DEFAULT_MAX_CONCURRENT_PROVIDERS
    vars: Dict[str, Any] = field(default_factory=dict)
    providers: List[SourceDeclaration] = field(default_factory=list)


class ConfigLoader:
    """Handles loading and parsing of compote.yaml files."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize config loader.

        Args:
            config_path: Path to compote.yaml. If None, looks in the current
                directory and its parents.
        """
        self.config_path = self._find_config_file(config_path)
        self._config: Optional[Dict[str, Any]] = None

    def _find_config_file(
        self, config_path: Optional[Union[str, Path]] = None
    ) -> Optional[Path]:
        if config_path is not None:
            path = Path(config_path)
            if path.exists():
                return path
            return None

        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            if current == current.parent:
                return None
            current = current.parent

    def load(self) -> Dict[str, Any]:
        """Load the configuration file.

        Returns:
            Parsed configuration dictionary, or empty dict if no config file.

        Raises:
            ConfigError: If the file is not valid YAML or not a map.
        """
        if self.config_path is None:
            return {}

        if self._config is not None:
            return self._config

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid {CONFIG_FILENAME} at {self.config_path}: {e}") from e
        except OSError as e:
            logger.warning("Could not read {}: {}", self.config_path, e)
            return {}

        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_path} must contain a map at the top level")
        self._config = data
        return self._config

    def options(self, **overrides: Any) -> CompilerOptions:
        """Build ``CompilerOptions`` from the file, then apply ``overrides``.

        ``None`` overrides are ignored so unset CLI flags keep file values.
        """
        config = self.load()
        opts = CompilerOptions(
            allow_missing_provider=bool(config.get("allow_missing_provider", False)),
            per_provider_fetch_timeout=self._timeout(config.get("per_provider_fetch_timeout")),
            max_concurrent_providers=self._int(
                config.get("max_concurrent_providers", DEFAULT_MAX_CONCURRENT_PROVIDERS)
            ),
            vars=self._vars(config.get("vars")),
            providers=self.providers(),
        )
        for key, value in overrides.items():
            if value is None:
                continue
            if not hasattr(opts, key):
                raise ConfigError(f"unknown compiler option {key!r}")
            if key == "vars":
                value = {**opts.vars, **value}
            setattr(opts, key, value)
        return opts

    def providers(self) -> List[SourceDeclaration]:
        """Provider declarations from the ``providers`` list."""
        declarations = []
        for i, entry in enumerate(self.load().get("providers") or []):
            if not isinstance(entry, dict):
                raise ConfigError(f"providers[{i}] must be a map")
            if "alias" not in entry or "type" not in entry:
                raise ConfigError(f"providers[{i}] must have both 'alias' and 'type'")
            config = entry.get("config") or {}
            if not isinstance(config, dict):
                raise ConfigError(f"providers[{i}].config must be a map")
            declarations.append(
                SourceDeclaration(
                    alias=str(entry["alias"]),
                    type=str(entry["type"]),
                    config=config,
                    span=SourceSpan(filename=str(self.config_path)),
                )
            )
        return declarations

    def _timeout(self, raw: Any) -> Optional[float]:
        if raw is None:
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"per_provider_fetch_timeout must be a number, got {raw!r}") from e
        if value <= 0:
            raise ConfigError("per_provider_fetch_timeout must be positive")
        return value

    def _int(self, raw: Any) -> int:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ConfigError(f"max_concurrent_providers must be an integer, got {raw!r}")
        return raw

    def _vars(self, raw: Any) -> Dict[str, Any]:
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigError("vars must be a map")
        return raw
