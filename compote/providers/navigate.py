"""Path navigation through provider data."""

from __future__ import annotations

from typing import Any, Sequence


class PathNotFound(KeyError):
    """A path segment is missing or crosses a non-map value."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "path not found"


def navigate(data: Any, path: Sequence[str], *, what: str = "path segment") -> Any:
    """Follow ``path`` through nested maps.

    The final value may be anything; intermediate values must be maps.

    Raises:
        PathNotFound: With the available keys when a segment is missing.
    """
    current = data
    for i, segment in enumerate(path):
        if not isinstance(current, dict):
            raise PathNotFound(
                f"{what} {i} is not a map (got {type(current).__name__}, "
                f"remaining path: {'.'.join(path[i:])})"
            )
        if segment not in current:
            available = ", ".join(sorted(current)) or "none"
            raise PathNotFound(
                f"{what} {'.'.join(path[: i + 1])!r} not found (available keys: {available})"
            )
        current = current[segment]
    return current
