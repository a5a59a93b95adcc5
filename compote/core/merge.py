"""Composition of value trees.

Merge rules shared by every function here:

- map + map recurses key by key
- anything else is replaced by the later value (lists are never merged
  element-wise; type mismatches and scalars are last-write-wins)
- inputs are never mutated
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from .errors import NonMapMergeTarget
from .values import OrderedEntry, Reference, SpreadMap


@dataclass(frozen=True)
class Provenance:
    """Origin of a top-level key.

    Attributes:
        source: Document that contributed the key.
        provider_alias: Provider alias the value came through, if any.
    """

    source: str
    provider_alias: str = ""


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``override`` onto ``base``.

    Args:
        base: Earlier map.
        override: Later map; wins on every conflict that is not map + map.

    Returns:
        A new map.
    """
    result: Dict[str, Any] = {k: deepcopy(v) for k, v in base.items()}
    for key, value in override.items():
        if key in result:
            result[key] = merge_values(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result


def merge_values(base: Any, override: Any) -> Any:
    if isinstance(base, dict) and isinstance(override, dict):
        return deep_merge(base, override)
    return deepcopy(override)


def deep_merge_with_provenance(
    base: Dict[str, Any],
    base_source: str,
    override: Dict[str, Any],
    override_source: str,
    provenance: Dict[str, Provenance],
) -> Dict[str, Any]:
    """Deep-merge and record which source each top-level key came from.

    ``provenance`` is updated in place; keys present in ``override`` are
    attributed to ``override_source``. Keys only in ``base`` keep an
    existing record, or get ``base_source`` when they have none.
    """
    for key in base:
        if key not in provenance:
            provenance[key] = Provenance(source=base_source)
    for key in override:
        provenance[key] = Provenance(source=override_source)
    return deep_merge(base, override)


def compose_ordered(
    entries: Iterable[OrderedEntry],
    resolve_spread: Optional[Callable[[Any], Any]] = None,
) -> Dict[str, Any]:
    """Fold ordered entries into a map, later declarations winning.

    A keyed entry assigns its key. A spread entry is turned into a map by
    ``resolve_spread`` (identity by default) and each of its keys is merged
    into the accumulator, overwriting whatever an earlier keyed entry or
    spread put there.

    Args:
        entries: Entries in declaration order.
        resolve_spread: Maps a spread entry's value (often a ``Reference``)
            to the map it expands to. Called in declaration order.

    Returns:
        The composed map.

    Raises:
        NonMapMergeTarget: If a spread does not expand to a map.
    """
    result: Dict[str, Any] = {}
    for entry in entries:
        if not entry.is_spread:
            result[entry.key] = deepcopy(entry.value)
            continue

        target = resolve_spread(entry.value) if resolve_spread else entry.value
        if isinstance(target, SpreadMap):
            target = compose_ordered(target.entries, resolve_spread)
        if not isinstance(target, dict):
            span = entry.value.span if isinstance(entry.value, Reference) else None
            raise NonMapMergeTarget(
                f"spread of {_describe(entry.value)} expands to "
                f"{type(target).__name__}, expected a map",
                span=span,
            )
        for key, value in target.items():
            if key in result:
                result[key] = merge_values(result[key], value)
            else:
                result[key] = deepcopy(value)
    return result


def _describe(value: Any) -> str:
    if isinstance(value, Reference):
        return str(value)
    return type(value).__name__
