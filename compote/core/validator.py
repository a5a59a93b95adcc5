"""Checks on references before and during resolution."""

from __future__ import annotations

from typing import Any, Iterable, List

from .values import Reference, walk_references

MAX_SUGGESTION_DISTANCE = 2


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def suggest_aliases(alias: str, known: Iterable[str]) -> List[str]:
    """Known aliases within a small edit distance of ``alias``, closest first."""
    scored = [(levenshtein(alias, k), k) for k in known if k != alias]
    return [k for d, k in sorted(scored) if d <= MAX_SUGGESTION_DISTANCE]


def unknown_references(value: Any, known: Iterable[str]) -> List[Reference]:
    """References in ``value`` whose alias is not in ``known``, in tree order."""
    aliases = set(known)
    return [ref for ref in walk_references(value) if ref.alias not in aliases]
