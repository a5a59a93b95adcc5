"""Compote - Configuration compiler.

Convert parsed configuration documents into values, resolve references
against pluggable data providers, and compose the results into one
snapshot.
"""

from .core.compiler import Snapshot, compile_documents, compile_files
from .core.config_loader import CompilerOptions
from .core.context import Context
from .core.errors import CompoteError
from .core.provider import ProviderRegistry

__all__ = [
    "Snapshot",
    "compile_documents",
    "compile_files",
    "CompilerOptions",
    "Context",
    "CompoteError",
    "ProviderRegistry",
]
