"""Convert syntax trees into the value model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .errors import (
    CompoteError,
    EmptyMapKey,
    NilExpression,
    SpreadNotAllowedHere,
    UnsupportedExpression,
)
from .syntax import (
    Document,
    IdentExpr,
    ImportStmt,
    ListExpr,
    MapEntry,
    MapExpr,
    MarkedExpr,
    PathExpr,
    ReferenceExpr,
    SectionDecl,
    SourceDecl,
    SourceSpan,
    SpreadStmt,
    StringLiteral,
)
from .values import MapValue, OrderedEntry, Reference, Secret, SpreadMap

VAR_ALIAS = "var"
VAR_PREFIX = VAR_ALIAS + "."


@dataclass(frozen=True)
class SourceDeclaration:
    """A converted ``source:`` block.

    Attributes:
        alias: Alias references use to reach the provider.
        type: Provider type name looked up in the type registry.
        config: Converted configuration values.
        span: Location of the declaration.
    """

    alias: str
    type: str
    config: Dict[str, Any] = field(default_factory=dict)
    span: SourceSpan = field(default_factory=SourceSpan)


def convert(tree: Document) -> MapValue:
    """Convert a document into a map value.

    Sections become entries in declaration order; root spread statements
    turn the result into a ``SpreadMap``. Source and import statements are
    ignored here (see ``convert_sources`` and ``import_statements``).

    Args:
        tree: Parsed document.

    Returns:
        A plain ``dict`` when the root holds no spread, else a ``SpreadMap``.

    Raises:
        ConversionError: On the first statement that cannot be converted,
            with the section name prepended to the message.
    """
    if tree is None:
        return {}

    ordered: List[OrderedEntry] = []
    has_spread = False

    for stmt in tree.statements:
        if isinstance(stmt, SectionDecl):
            if not stmt.name:
                raise EmptyMapKey("empty section name", span=stmt.span)
            try:
                value = _section_to_value(stmt)
            except CompoteError as e:
                raise e.wrap(f"failed to convert section {stmt.name!r}") from e
            ordered.append(OrderedEntry.keyed(stmt.name, value))
        elif isinstance(stmt, SpreadStmt):
            has_spread = True
            ordered.append(OrderedEntry.spread(_reference(stmt.reference)))

    return _build_map(ordered, has_spread)


def convert_sources(tree: Document) -> List[SourceDeclaration]:
    """Convert the source declarations of a document, in order.

    Configuration values are taken literally: strings stay strings (no
    ``var.`` rewrite) and spreads are rejected at any depth.

    Raises:
        SpreadNotAllowedHere: If a configuration map holds a spread entry.
        EmptyMapKey: If a configuration map holds an empty key.
    """
    declarations: List[SourceDeclaration] = []
    for stmt in tree.statements:
        if not isinstance(stmt, SourceDecl):
            continue
        try:
            config = _config_entries(stmt.config)
        except CompoteError as e:
            raise e.wrap(f"failed to convert configuration of source {stmt.alias!r}") from e
        declarations.append(
            SourceDeclaration(alias=stmt.alias, type=stmt.type, config=config, span=stmt.span)
        )
    return declarations


def _config_entries(entries: Sequence[MapEntry]) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    for entry in entries:
        if entry.spread:
            raise SpreadNotAllowedHere(
                "spread is not allowed in a source configuration", span=entry.span
            )
        if not entry.key:
            raise EmptyMapKey("empty map key", span=entry.span)
        try:
            config[entry.key] = _config_value(entry.value, entry.span)
        except CompoteError as e:
            raise e.wrap(f"failed to convert key {entry.key!r}") from e
    return config


def _config_value(expr: Any, span: Optional[SourceSpan]) -> Any:
    if expr is None:
        raise NilExpression("nil expression", span=span)
    if isinstance(expr, StringLiteral):
        return expr.value
    if isinstance(expr, ReferenceExpr):
        return _reference(expr)
    if isinstance(expr, MapExpr):
        return _config_entries(expr.entries)
    if isinstance(expr, ListExpr):
        result = []
        for idx, element in enumerate(expr.elements):
            try:
                result.append(_config_value(element, expr.span))
            except CompoteError as e:
                raise e.wrap(f"failed to convert list element {idx}") from e
        return result
    if isinstance(expr, PathExpr):
        return ".".join(expr.components)
    if isinstance(expr, IdentExpr):
        return expr.name
    raise UnsupportedExpression(
        f"unsupported expression type in source configuration: {type(expr).__name__}",
        span=getattr(expr, "span", span),
    )


def import_statements(tree: Document) -> List[ImportStmt]:
    return [stmt for stmt in tree.statements if isinstance(stmt, ImportStmt)]


def _section_to_value(section: SectionDecl) -> Any:
    if section.value is not None:
        return expr_to_value(section.value, section.span)
    return map_entries_to_value(section.entries)


def expr_to_value(expr: Any, span: Optional[SourceSpan] = None) -> Any:
    """Convert one expression node into a value.

    Args:
        expr: Expression node.
        span: Location used when ``expr`` is missing.

    Raises:
        NilExpression: If ``expr`` is ``None``.
        UnsupportedExpression: If ``expr`` is not an expression node.
    """
    if expr is None:
        raise NilExpression("nil expression", span=span)

    if isinstance(expr, StringLiteral):
        if expr.value.startswith(VAR_PREFIX):
            parts = expr.value.split(".")
            return Reference(alias=VAR_ALIAS, path=tuple(parts[1:]), span=expr.span)
        return expr.value
    if isinstance(expr, ReferenceExpr):
        return _reference(expr)
    if isinstance(expr, MapExpr):
        return map_entries_to_value(expr.entries)
    if isinstance(expr, ListExpr):
        result = []
        for idx, element in enumerate(expr.elements):
            try:
                result.append(expr_to_value(element, expr.span))
            except CompoteError as e:
                raise e.wrap(f"failed to convert list element {idx}") from e
        return result
    if isinstance(expr, PathExpr):
        if len(expr.components) > 1 and expr.components[0] == VAR_ALIAS:
            return Reference(alias=VAR_ALIAS, path=tuple(expr.components[1:]), span=expr.span)
        return ".".join(expr.components)
    if isinstance(expr, IdentExpr):
        return expr.name
    if isinstance(expr, MarkedExpr):
        return Secret(expr_to_value(expr.expr, expr.span))
    raise UnsupportedExpression(
        f"unsupported expression type: {type(expr).__name__}",
        span=getattr(expr, "span", span),
    )


def map_entries_to_value(entries: Sequence[MapEntry]) -> MapValue:
    ordered: List[OrderedEntry] = []
    has_spread = False

    for entry in entries:
        if entry.spread:
            try:
                value = expr_to_value(entry.value, entry.span)
            except CompoteError as e:
                raise e.wrap("failed to convert spread entry") from e
            has_spread = True
            ordered.append(OrderedEntry.spread(value))
            continue

        if not entry.key:
            raise EmptyMapKey("empty map key", span=entry.span)
        try:
            value = expr_to_value(entry.value, entry.span)
        except CompoteError as e:
            raise e.wrap(f"failed to convert key {entry.key!r}") from e
        ordered.append(OrderedEntry.keyed(entry.key, value))

    return _build_map(ordered, has_spread)


def _build_map(ordered: List[OrderedEntry], has_spread: bool) -> MapValue:
    if has_spread:
        return SpreadMap(entries=tuple(ordered))
    # duplicate keys: last declaration wins
    return {e.key: e.value for e in ordered}


def _reference(expr: ReferenceExpr) -> Reference:
    return Reference(alias=expr.alias, path=tuple(expr.path), span=expr.span)
