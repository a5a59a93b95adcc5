"""End-to-end compilation of documents into a snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from loguru import logger

from ..providers.var import VAR_ALIAS, VarProvider
from .config_loader import CompilerOptions
from .context import Context
from .converter import SourceDeclaration, convert, convert_sources, import_statements
from .errors import CompoteError, NonMapMergeTarget, ProviderNotRegistered
from .merge import Provenance, deep_merge, deep_merge_with_provenance
from .provider import ProviderRegistry, ProviderTypeRegistry, default_type_registry
from .resolver import Resolver
from .syntax import Document, load_documents
from .validator import suggest_aliases, unknown_references
from .values import Reference, to_plain


@dataclass
class Metadata:
    """Provenance and diagnostics of a compilation run."""

    input_files: List[str] = field(default_factory=list)
    provider_aliases: List[str] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    warnings: List[str] = field(default_factory=list)
    per_key_provenance: Dict[str, Provenance] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_files": list(self.input_files),
            "provider_aliases": list(self.provider_aliases),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "warnings": list(self.warnings),
            "per_key_provenance": {
                k: {"source": p.source, "provider_alias": p.provider_alias}
                for k, p in sorted(self.per_key_provenance.items())
            },
        }


@dataclass
class Snapshot:
    """Fully resolved configuration plus run metadata."""

    data: Dict[str, Any]
    metadata: Metadata

    def to_dict(self, redact_secrets: bool = True) -> Dict[str, Any]:
        return {
            "data": to_plain(self.data, redact=redact_secrets),
            "metadata": self.metadata.to_dict(),
        }


async def register_sources(
    ctx: Context,
    declarations: Sequence[SourceDeclaration],
    registry: ProviderRegistry,
    type_registry: ProviderTypeRegistry,
) -> None:
    """Create and register a provider for every declaration not yet registered.

    Providers are initialized lazily by the registry on first lookup.
    """
    for decl in declarations:
        if registry.is_registered(decl.alias):
            logger.debug("Provider alias {} already registered", decl.alias)
            continue
        try:
            provider = await type_registry.create_provider(ctx, decl.type, decl.alias, decl.config)
        except CompoteError as e:
            err = e.wrap(f"failed to create provider {decl.alias!r} of type {decl.type!r}")
            err.span = err.span or decl.span
            raise err from e
        registry.register(
            decl.alias,
            lambda _opts, p=provider: p,
            config=decl.config,
            source_file=decl.span.filename,
        )


async def compile_documents(
    ctx: Context,
    documents: Sequence[Document],
    options: Optional[CompilerOptions] = None,
    *,
    registry: Optional[ProviderRegistry] = None,
    type_registry: Optional[ProviderTypeRegistry] = None,
) -> Snapshot:
    """Compile documents into a snapshot.

    Documents are composed in the given order: later documents override
    earlier ones key by key (maps deep-merge, everything else is replaced).

    Args:
        ctx: Cancellation context for the whole run.
        documents: Parsed documents in composition order.
        options: Compiler options; defaults when omitted.
        registry: Provider registry; a fresh one when omitted.
        type_registry: Provider types for source declarations; the built-in
            types when omitted.

    Returns:
        The resolved snapshot.

    Raises:
        CompoteError: On the first conversion, composition or resolution
            error. Downgraded failures are reported as warnings instead.
    """
    options = options or CompilerOptions()
    registry = registry or ProviderRegistry()
    type_registry = type_registry or default_type_registry()
    metadata = Metadata(
        input_files=[d.filename for d in documents],
        start_time=datetime.now(timezone.utc),
    )

    converted = []
    declarations: List[SourceDeclaration] = list(options.providers)
    for doc in documents:
        try:
            converted.append(convert(doc))
            for decl in convert_sources(doc):
                # relative provider paths resolve against the declaring document
                if not decl.span.filename:
                    decl = replace(decl, span=replace(decl.span, filename=doc.filename))
                declarations.append(decl)
        except CompoteError as e:
            raise e.wrap(f"failed to convert {doc.filename or '<document>'}") from e

    if not registry.is_registered(VAR_ALIAS):
        registry.register(VAR_ALIAS, lambda _opts: VarProvider(options.vars))
    await register_sources(ctx, declarations, registry, type_registry)

    if not options.allow_missing_provider:
        _check_aliases(converted, registry)

    resolver = Resolver(
        registry,
        allow_missing_provider=options.allow_missing_provider,
        on_warning=metadata.warnings.append,
        per_provider_fetch_timeout=options.per_provider_fetch_timeout,
        max_concurrent_providers=options.max_concurrent_providers,
    )

    data: Dict[str, Any] = {}
    for doc, value in zip(documents, converted):
        resolved = await resolver.resolve_value(ctx, value)
        for stmt in import_statements(doc):
            ref = Reference(alias=stmt.alias, path=stmt.path, span=stmt.span)
            imported = await resolver.resolve_value(ctx, ref)
            if imported is None:
                continue
            if not isinstance(imported, dict):
                raise NonMapMergeTarget(
                    f"import of {ref} expands to {type(imported).__name__}, expected a map",
                    span=stmt.span,
                )
            resolved = deep_merge(imported, resolved)
        data = deep_merge_with_provenance(
            data, "", resolved, doc.filename, metadata.per_key_provenance
        )
        if isinstance(value, dict):
            for key, v in value.items():
                if isinstance(v, Reference):
                    metadata.per_key_provenance[key] = Provenance(doc.filename, v.alias)

    metadata.provider_aliases = registry.registered_aliases()
    metadata.end_time = datetime.now(timezone.utc)
    logger.debug(
        "Compiled {} document(s): {} fetch(es), {} cached value(s), providers used {}, {} warning(s)",
        len(documents),
        resolver.fetch_count,
        len(resolver.cache),
        registry.materialized_aliases(),
        len(metadata.warnings),
    )
    return Snapshot(data=data, metadata=metadata)


async def compile_files(
    ctx: Context,
    paths: Sequence[Union[str, Path]],
    options: Optional[CompilerOptions] = None,
    **kwargs: Any,
) -> Snapshot:
    """Load parser JSON syntax trees from ``paths`` and compile them in order."""
    documents = load_documents(paths)
    return await compile_documents(ctx, documents, options, **kwargs)


def _check_aliases(values: Sequence[Any], registry: ProviderRegistry) -> None:
    known = registry.registered_aliases()
    for value in values:
        for ref in unknown_references(value, known):
            message = f"provider not registered: provider {ref.alias!r} at {ref.span.location()}"
            suggestions = suggest_aliases(ref.alias, known)
            if suggestions:
                message += f" (did you mean {', '.join(repr(s) for s in suggestions)}?)"
            raise ProviderNotRegistered(message, alias=ref.alias, span=ref.span)
