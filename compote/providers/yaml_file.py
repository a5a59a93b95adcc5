"""Provider reading a local YAML or JSON data file, or a directory of them."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from loguru import logger

from ..core.context import Context
from ..core.errors import ProviderInitError
from ..core.provider import ProviderInitOptions
from ..core.values import from_plain
from .navigate import navigate

DATA_SUFFIXES = {".yaml", ".yml", ".json"}


class YamlFileProvider:
    """Serve values from a YAML/JSON file.

    In file mode the file's top-level map is the provider root. In directory
    mode every data file becomes a top-level key named after its stem, so
    ``@cfg:network.vpc`` reads ``vpc`` from ``network.yaml``.

    Relative paths are resolved against the directory of the document that
    declared the source.
    """

    def __init__(self, file: Optional[str] = None, directory: Optional[str] = None):
        self.file = file
        self.directory = directory
        self.alias = ""
        self._data: Dict[str, Any] = {}

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "YamlFileProvider":
        file = config.get("file")
        directory = config.get("directory")
        for key, value in (("file", file), ("directory", directory)):
            if value is not None and not isinstance(value, str):
                raise ProviderInitError(f"{key} must be a string, got {type(value).__name__}")
        if not file and not directory:
            raise ProviderInitError("yaml provider requires 'file' or 'directory' in config")
        return cls(file=file, directory=directory)

    async def init(self, ctx: Context, options: ProviderInitOptions) -> None:
        ctx.check()
        self.alias = options.alias
        base = Path(options.source_file).parent if options.source_file else Path.cwd()
        if self.directory:
            root = self._absolute(self.directory, base)
            if not root.is_dir():
                raise ProviderInitError(f"directory {str(root)!r} does not exist")
            self._data = {
                p.stem: self._read(p)
                for p in sorted(root.iterdir())
                if p.is_file() and p.suffix.lower() in DATA_SUFFIXES
            }
        else:
            path = self._absolute(self.file, base)
            if not path.is_file():
                raise ProviderInitError(f"file {str(path)!r} does not exist")
            data = self._read(path)
            if not isinstance(data, dict):
                raise ProviderInitError(f"file {str(path)!r} must contain a map at the top level")
            self._data = data
        logger.debug("yaml provider {} loaded {} top-level keys", self.alias, len(self._data))

    async def fetch(self, ctx: Context, path: Tuple[str, ...]) -> Any:
        ctx.check()
        return navigate(self._data, path)

    @staticmethod
    def _absolute(raw: str, base: Path) -> Path:
        p = Path(raw).expanduser()
        return p if p.is_absolute() else (base / p).resolve()

    @staticmethod
    def _read(path: Path) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            try:
                if path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise ProviderInitError(f"invalid data file {str(path)!r}: {e}") from e
        try:
            return from_plain(data if data is not None else {})
        except TypeError as e:
            raise ProviderInitError(f"unsupported value in {str(path)!r}: {e}") from e
