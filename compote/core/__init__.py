from .cache import ResolutionCache, build_cache_key
from .compiler import Metadata, Snapshot, compile_documents, compile_files
from .config_loader import CompilerOptions, ConfigLoader
from .context import Context, background
from .converter import SourceDeclaration, convert, convert_sources
from .errors import CompoteError, Diagnostic
from .merge import compose_ordered, deep_merge
from .provider import Provider, ProviderRegistry, ProviderTypeRegistry
from .resolver import Resolver
from .values import OrderedEntry, Reference, Secret, SpreadMap

__all__ = [
    "ResolutionCache",
    "build_cache_key",
    "Metadata",
    "Snapshot",
    "compile_documents",
    "compile_files",
    "CompilerOptions",
    "ConfigLoader",
    "Context",
    "background",
    "SourceDeclaration",
    "convert",
    "convert_sources",
    "CompoteError",
    "Diagnostic",
    "compose_ordered",
    "deep_merge",
    "Provider",
    "ProviderRegistry",
    "ProviderTypeRegistry",
    "Resolver",
    "OrderedEntry",
    "Reference",
    "Secret",
    "SpreadMap",
]
