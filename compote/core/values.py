"""In-memory value model shared by the converter, resolver and composer.

A value is one of:

- a scalar (``str``, ``int``, ``float``, ``bool`` or ``None``)
- a ``list`` of values
- a ``dict`` mapping ``str`` keys to values (a map without spreads)
- a ``SpreadMap``: a map that still carries its ordered entries because at
  least one of them is a spread
- a ``Reference`` waiting to be resolved against a provider
- a ``Secret`` wrapping one value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from .syntax import NO_SPAN, SourceSpan

WILDCARD = "*"
REDACTED = "***"

Scalar = Union[str, int, float, bool, None]
SCALAR_TYPES = (str, int, float, bool, type(None))


@dataclass(frozen=True)
class Reference:
    """Unresolved pointer ``alias:path``.

    Attributes:
        alias: Provider alias the reference is resolved against.
        path: Path segments handed to the provider.
        span: Where the reference was written.
    """

    alias: str
    path: Tuple[str, ...] = ()
    span: SourceSpan = NO_SPAN

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.path

    @property
    def fetch_path(self) -> Tuple[str, ...]:
        """Path sent to the provider; wildcard segments select the whole map."""
        return tuple(seg for seg in self.path if seg != WILDCARD)

    def __str__(self) -> str:
        return f"@{self.alias}:{'.'.join(self.path) or '.'}"


@dataclass(frozen=True)
class Secret:
    """Marks the wrapped value as sensitive."""

    value: Any


@dataclass(frozen=True)
class OrderedEntry:
    """One declared entry of a map that contains spreads.

    A spread has no key; every other entry has one.
    """

    key: Optional[str]
    value: Any
    is_spread: bool = False

    def __post_init__(self) -> None:
        if self.is_spread != (self.key is None):
            raise ValueError(
                f"ordered entry key={self.key!r} is_spread={self.is_spread}: "
                "an entry is a spread exactly when it has no key"
            )

    @classmethod
    def keyed(cls, key: str, value: Any) -> "OrderedEntry":
        return cls(key=key, value=value, is_spread=False)

    @classmethod
    def spread(cls, value: Any) -> "OrderedEntry":
        return cls(key=None, value=value, is_spread=True)


@dataclass(frozen=True)
class SpreadMap:
    """A map whose entries must be composed in declaration order."""

    entries: Tuple[OrderedEntry, ...]


MapValue = Union[Dict[str, Any], SpreadMap]


def is_scalar(value: Any) -> bool:
    return isinstance(value, SCALAR_TYPES)


def walk_references(value: Any) -> Iterator[Reference]:
    """Yield every ``Reference`` in a value tree, depth first."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from walk_references(v)
    elif isinstance(value, list):
        for v in value:
            yield from walk_references(v)
    elif isinstance(value, SpreadMap):
        for entry in value.entries:
            yield from walk_references(entry.value)
    elif isinstance(value, Secret):
        yield from walk_references(value.value)


def to_plain(value: Any, *, redact: bool = False) -> Any:
    """Render a resolved value tree as plain JSON-ready data.

    Args:
        value: Value tree without references or spread maps.
        redact: Replace secrets with a placeholder instead of unwrapping them.

    Returns:
        Nested dicts, lists and scalars.

    Raises:
        TypeError: If the tree still holds a ``Reference`` or ``SpreadMap``.
    """
    if isinstance(value, Secret):
        return REDACTED if redact else to_plain(value.value, redact=redact)
    if isinstance(value, dict):
        return {k: to_plain(v, redact=redact) for k, v in value.items()}
    if isinstance(value, list):
        return [to_plain(v, redact=redact) for v in value]
    if is_scalar(value):
        return value
    raise TypeError(f"cannot render unresolved value {value!r}")


def from_plain(data: Any) -> Any:
    """Normalize data returned by a provider into the value model.

    Tuples become lists; any other non-value type is rejected.
    """
    if isinstance(data, (Reference, Secret, SpreadMap)) or is_scalar(data):
        return data
    if isinstance(data, dict):
        return {str(k): from_plain(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [from_plain(v) for v in data]
    raise TypeError(f"unsupported value type: {type(data).__name__}")
