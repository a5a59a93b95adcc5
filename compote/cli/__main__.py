from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from .. import log
from ..core.compiler import compile_files
from ..core.config_loader import ConfigLoader
from ..core.context import background
from ..core.errors import CompoteError
from ..core.provider import default_type_registry

app = typer.Typer(help="Compote configuration compiler")


def parse_vars(items: List[str]) -> Dict[str, Any]:
    """Turn ``a.b=value`` items into a nested map."""
    result: Dict[str, Any] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {item!r}", param_hint="--var")
        node = result
        parts = key.split(".")
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[parts[-1]] = value
    return result


@app.command()
def build(
    files: List[Path] = typer.Argument(..., help="Parsed documents (JSON syntax trees), in merge order"),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to compote.yaml"),
    var: List[str] = typer.Option([], "--var", help="Variable as key=value; repeatable"),
    allow_missing_provider: Optional[bool] = typer.Option(
        None, "--allow-missing-provider/--no-allow-missing-provider"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds per provider fetch"),
    max_concurrency: Optional[int] = typer.Option(None, "--max-concurrency"),
    show_secrets: bool = typer.Option(False, "--show-secrets"),
    log_level: str = typer.Option("WARNING", "--log-level"),
):
    log.configure(log_level)
    try:
        options = ConfigLoader(config).options(
            allow_missing_provider=allow_missing_provider,
            per_provider_fetch_timeout=timeout,
            max_concurrent_providers=max_concurrency,
            vars=parse_vars(var) or None,
        )
        snapshot = asyncio.run(compile_files(background(), files, options))
    except CompoteError as e:
        typer.echo(str(e.diagnostic()), err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(snapshot.to_dict(redact_secrets=not show_secrets), indent=2))


@app.command()
def providers():
    typer.echo(json.dumps(default_type_registry().registered_types(), indent=2))


if __name__ == "__main__":
    app()
