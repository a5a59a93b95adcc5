"""Built-in provider implementations.

``var`` serves compile-time variables; ``yaml`` reads a local YAML or JSON
data file (or a directory of them).
"""

from .var import VarProvider
from .yaml_file import YamlFileProvider

__all__ = [
    "VarProvider",
    "YamlFileProvider",
]
