"""Provider serving compile-time variables under the ``var`` alias."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Optional, Tuple

from ..core.context import Context
from ..core.converter import VAR_ALIAS
from ..core.provider import ProviderInitOptions
from ..core.values import from_plain
from .navigate import navigate


class VarProvider:
    """Answers ``var.a.b`` references from a variables map.

    Args:
        variables: Nested map of variable values.
    """

    def __init__(self, variables: Optional[Dict[str, Any]] = None):
        self.variables = from_plain(dict(variables or {}))

    async def init(self, ctx: Context, options: ProviderInitOptions) -> None:
        ctx.check()

    async def fetch(self, ctx: Context, path: Tuple[str, ...]) -> Any:
        ctx.check()
        if not self.variables:
            raise LookupError("no variables defined")
        return deepcopy(navigate(self.variables, path, what="variable"))
