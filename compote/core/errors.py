"""Error taxonomy and structured diagnostics."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .syntax import SourceSpan


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """Position-annotated message handed to an external formatter.

    Attributes:
        filename: Source file, empty when unknown.
        line: 1-based line, 0 when unknown.
        column: 1-based column, 0 when unknown.
        message: Plain message without source snippets.
        severity: Diagnostic level.
    """

    filename: str
    line: int
    column: int
    message: str
    severity: Severity = Severity.ERROR

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}: {self.severity.value}: {self.message}"


class CompoteError(Exception):
    """Base class of every error raised by compote.

    Args:
        message: Human-readable message.
        span: Source location the error refers to, if any.
    """

    def __init__(self, message: str, *, span: Optional[SourceSpan] = None):
        super().__init__(message)
        self.message = message
        self.span = span

    def __str__(self) -> str:
        return self.message

    def wrap(self, prefix: str) -> "CompoteError":
        """Return an error of the same class with ``prefix`` prepended.

        Callers chain it with ``raise err.wrap(...) from err`` so the
        positional context accumulates while the class and span survive.
        """
        wrapped = copy.copy(self)
        wrapped.message = f"{prefix}: {self.message}"
        wrapped.args = (wrapped.message,)
        return wrapped

    def diagnostic(self, severity: Severity = Severity.ERROR) -> Diagnostic:
        span = self.span or SourceSpan()
        return Diagnostic(
            filename=span.filename,
            line=span.start_line,
            column=span.start_col,
            message=self.message,
            severity=severity,
        )


# ---- conversion ----


class ConversionError(CompoteError):
    pass


class UnsupportedExpression(ConversionError):
    pass


class NilExpression(ConversionError):
    pass


class EmptyMapKey(ConversionError):
    pass


class SpreadNotAllowedHere(ConversionError):
    pass


# ---- resolution ----


class ResolutionError(CompoteError):
    pass


class ProviderNotRegistered(ResolutionError):
    def __init__(self, message: str, *, alias: str = "", span: Optional[SourceSpan] = None):
        super().__init__(message, span=span)
        self.alias = alias


class UnresolvedReference(ResolutionError):
    def __init__(
        self,
        message: str,
        *,
        alias: str = "",
        path: tuple = (),
        span: Optional[SourceSpan] = None,
    ):
        super().__init__(message, span=span)
        self.alias = alias
        self.path = path


class CircularReference(ResolutionError):
    pass


# ---- composition ----


class CompositionError(CompoteError):
    pass


class NonMapMergeTarget(CompositionError):
    pass


# ---- providers ----


class ProviderError(CompoteError):
    pass


class ProviderTypeNotFound(ProviderError):
    pass


class ProviderInitError(ProviderError):
    pass


# ---- cancellation ----


class Cancelled(CompoteError):
    """The resolution context was cancelled. Never downgraded to a warning."""


class DeadlineExceeded(Cancelled):
    pass


# ---- configuration ----


class ConfigError(CompoteError):
    pass
