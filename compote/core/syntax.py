"""Syntax tree node types consumed by the converter.

The lexer and grammar live outside this package. The parser hands over a
``Document`` built from these nodes, either in-process or serialized as
JSON (see ``load_document``), where every node names its kind in a
``"type"`` field.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class SourceSpan:
    """Source location of a node.

    Attributes:
        filename: File the node was parsed from.
        start_line: 1-based line of the first character.
        start_col: 1-based column of the first character.
        end_line: 1-based line of the last character.
        end_col: 1-based column of the last character.
    """

    filename: str = ""
    start_line: int = 0
    start_col: int = 0
    end_line: int = 0
    end_col: int = 0

    def location(self) -> str:
        return f"{self.filename}:{self.start_line}:{self.start_col}"


NO_SPAN = SourceSpan()


# ---- expressions ----


@dataclass(frozen=True)
class StringLiteral:
    value: str
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class IdentExpr:
    name: str
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class PathExpr:
    components: Tuple[str, ...]
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class ReferenceExpr:
    """``@alias:path`` written inline as a value."""

    alias: str
    path: Tuple[str, ...] = ()
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class MapEntry:
    """One ``key: value`` line of a map; ``spread`` marks ``...value`` entries."""

    key: str
    value: Optional["Expr"]
    spread: bool = False
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class MapExpr:
    entries: Tuple[MapEntry, ...] = ()
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class ListExpr:
    elements: Tuple["Expr", ...] = ()
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class MarkedExpr:
    """An expression flagged sensitive (``!secret``)."""

    expr: Optional["Expr"]
    span: SourceSpan = NO_SPAN


Expr = Union[StringLiteral, IdentExpr, PathExpr, ReferenceExpr, MapExpr, ListExpr, MarkedExpr]


# ---- statements ----


@dataclass(frozen=True)
class SectionDecl:
    """A top-level named section.

    Exactly one of ``value`` (inline scalar form, ``region: 'us-west-2'``) or
    ``entries`` (nested block form) is meaningful.
    """

    name: str
    value: Optional[Expr] = None
    entries: Tuple[MapEntry, ...] = ()
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class SourceDecl:
    """``source:`` block declaring a provider alias."""

    alias: str
    type: str
    config: Tuple[MapEntry, ...] = ()
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class SpreadStmt:
    """Root-level spread of a reference into the document."""

    reference: ReferenceExpr
    span: SourceSpan = NO_SPAN


@dataclass(frozen=True)
class ImportStmt:
    """``import:alias:path``: compose another document beneath this one."""

    alias: str
    path: Tuple[str, ...] = ()
    span: SourceSpan = NO_SPAN


Stmt = Union[SectionDecl, SourceDecl, SpreadStmt, ImportStmt]


@dataclass(frozen=True)
class Document:
    """A parsed configuration source file."""

    statements: Tuple[Stmt, ...] = ()
    filename: str = ""
    span: SourceSpan = field(default=NO_SPAN)


# ---- JSON loading ----


def _span(d: Optional[Dict[str, Any]], filename: str) -> SourceSpan:
    if not d:
        return SourceSpan(filename=filename)
    return SourceSpan(
        filename=d.get("filename") or filename,
        start_line=int(d.get("start_line", 0)),
        start_col=int(d.get("start_col", 0)),
        end_line=int(d.get("end_line", 0)),
        end_col=int(d.get("end_col", 0)),
    )


def _path(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return tuple(p for p in raw.split(".") if p)
    return tuple(str(p) for p in raw)


def _entry(d: Dict[str, Any], filename: str) -> MapEntry:
    return MapEntry(
        key=d.get("key", ""),
        value=expr_from_dict(d.get("value"), filename),
        spread=bool(d.get("spread", False)),
        span=_span(d.get("source_span"), filename),
    )


def expr_from_dict(d: Optional[Dict[str, Any]], filename: str = "") -> Optional[Expr]:
    """Build an expression node from its JSON form.

    Raises:
        UnsupportedExpression: If the node kind is unknown.
    """
    from .errors import UnsupportedExpression

    if d is None:
        return None
    kind = d.get("type")
    span = _span(d.get("source_span"), filename)
    if kind == "string":
        return StringLiteral(value=d.get("value", ""), span=span)
    if kind == "ident":
        return IdentExpr(name=d["name"], span=span)
    if kind == "path":
        return PathExpr(components=_path(d.get("components")), span=span)
    if kind == "reference":
        return ReferenceExpr(alias=d["alias"], path=_path(d.get("path")), span=span)
    if kind == "map":
        return MapExpr(
            entries=tuple(_entry(e, filename) for e in d.get("entries", [])),
            span=span,
        )
    if kind == "list":
        return ListExpr(
            elements=tuple(expr_from_dict(e, filename) for e in d.get("elements", [])),
            span=span,
        )
    if kind == "marked":
        return MarkedExpr(expr=expr_from_dict(d.get("expr"), filename), span=span)
    raise UnsupportedExpression(f"unsupported expression type: {kind!r}", span=span)


def stmt_from_dict(d: Dict[str, Any], filename: str = "") -> Stmt:
    from .errors import UnsupportedExpression

    kind = d.get("type")
    span = _span(d.get("source_span"), filename)
    if kind == "section":
        return SectionDecl(
            name=d["name"],
            value=expr_from_dict(d.get("value"), filename),
            entries=tuple(_entry(e, filename) for e in d.get("entries", [])),
            span=span,
        )
    if kind == "source":
        return SourceDecl(
            alias=d["alias"],
            # "type" names the node kind, so the provider type travels separately
            type=d.get("source_type", ""),
            config=tuple(_entry(e, filename) for e in d.get("config", [])),
            span=span,
        )
    if kind == "spread":
        ref = expr_from_dict(d["reference"], filename)
        if not isinstance(ref, ReferenceExpr):
            raise UnsupportedExpression("spread statement requires a reference", span=span)
        return SpreadStmt(reference=ref, span=span)
    if kind == "import":
        return ImportStmt(alias=d["alias"], path=_path(d.get("path")), span=span)
    raise UnsupportedExpression(f"unsupported statement type: {kind!r}", span=span)


def document_from_dict(data: Dict[str, Any], filename: str = "") -> Document:
    filename = data.get("filename") or filename
    return Document(
        statements=tuple(stmt_from_dict(s, filename) for s in data.get("statements", [])),
        filename=filename,
        span=_span(data.get("source_span"), filename),
    )


def load_document(path: Union[str, Path]) -> Document:
    """Load a parser-produced JSON syntax tree from disk.

    Args:
        path: Path to the JSON file.

    Returns:
        The parsed ``Document``; its filename defaults to ``path``.

    Raises:
        ConversionError: If the file cannot be read or is not valid JSON.
    """
    from .errors import ConversionError

    p = Path(path)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConversionError(f"cannot load syntax tree {p}: {e}") from e
    return document_from_dict(data, filename=str(p))


def load_documents(paths: Sequence[Union[str, Path]]) -> List[Document]:
    return [load_document(p) for p in paths]
