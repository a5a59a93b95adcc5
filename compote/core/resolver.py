"""Reference resolution.

The resolver walks a value tree and replaces every ``Reference`` with the
value its provider returns. Sibling subtrees are resolved concurrently;
provider fetches share one semaphore sized ``max_concurrent_providers``.
Fetch results are cached for the lifetime of the resolver, so one
``Resolver`` instance is one resolution run.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional, Sequence, Tuple

from loguru import logger

from .cache import ResolutionCache, build_cache_key
from .context import Context
from .errors import (
    Cancelled,
    CircularReference,
    CompoteError,
    DeadlineExceeded,
    Diagnostic,
    ProviderInitError,
    ProviderNotRegistered,
    Severity,
    UnresolvedReference,
    UnsupportedExpression,
)
from .merge import compose_ordered
from .provider import ProviderRegistry
from .validator import suggest_aliases
from .values import OrderedEntry, Reference, Secret, SpreadMap, from_plain, is_scalar

DEFAULT_MAX_CONCURRENT_PROVIDERS = 4

Chain = Tuple[str, ...]


class _FetchFailed(Exception):
    """A provider fetch failed; subject to the missing-provider policy."""


class Resolver:
    """Resolve references against providers from a registry.

    Args:
        registry: Where providers are looked up by alias.
        allow_missing_provider: Downgrade an unknown alias or failed fetch to
            a warning and substitute ``None``.
        on_warning: Called with the message of every downgraded failure.
        per_provider_fetch_timeout: Seconds allowed for each fetch.
        max_concurrent_providers: Fetches in flight at once; ``<= 1``
            resolves everything sequentially.
        cache: Cache to use instead of a fresh one.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        allow_missing_provider: bool = False,
        on_warning: Optional[Callable[[str], None]] = None,
        per_provider_fetch_timeout: Optional[float] = None,
        max_concurrent_providers: int = DEFAULT_MAX_CONCURRENT_PROVIDERS,
        cache: Optional[ResolutionCache] = None,
    ):
        if registry is None:
            raise ValueError("resolver requires a provider registry")
        self.registry = registry
        self.allow_missing_provider = allow_missing_provider
        self.on_warning = on_warning
        self.per_provider_fetch_timeout = per_provider_fetch_timeout
        self.max_concurrent_providers = max_concurrent_providers
        self.cache = cache if cache is not None else ResolutionCache()
        self.fetch_count = 0
        self._parallel = max_concurrent_providers > 1
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent_providers))

    async def resolve_value(self, ctx: Context, value: Any) -> Any:
        """Return ``value`` with every reference replaced by its fetched value.

        Spread maps are composed into plain maps along the way.

        Raises:
            ProviderNotRegistered: Unknown alias, unless missing providers are allowed.
            UnresolvedReference: Failed fetch, unless missing providers are allowed.
            CircularReference: A fetched value leads back to a reference being resolved.
            NonMapMergeTarget: A spread expands to something other than a map.
            Cancelled: ``ctx`` was cancelled or its deadline passed.
        """
        return await self._resolve(ctx, value, ())

    async def _resolve(self, ctx: Context, value: Any, chain: Chain) -> Any:
        ctx.check()
        if is_scalar(value):
            return value
        if isinstance(value, Reference):
            return await self._resolve_reference(ctx, value, chain)
        if isinstance(value, dict):
            keys = list(value)
            resolved = await self._resolve_all(
                ctx,
                [(f"resolving key {k!r}", value[k]) for k in keys],
                chain,
            )
            return dict(zip(keys, resolved))
        if isinstance(value, list):
            return await self._resolve_all(
                ctx,
                [(f"resolving index {i}", v) for i, v in enumerate(value)],
                chain,
            )
        if isinstance(value, SpreadMap):
            return await self._resolve_spread_map(ctx, value, chain)
        if isinstance(value, Secret):
            return Secret(await self._resolve(ctx, value.value, chain))
        raise UnsupportedExpression(f"cannot resolve value of type {type(value).__name__}")

    async def _resolve_spread_map(self, ctx: Context, value: SpreadMap, chain: Chain) -> Any:
        items = [
            (
                f"resolving spread {e.value}" if e.is_spread else f"resolving key {e.key!r}",
                e.value,
            )
            for e in value.entries
        ]
        resolved = await self._resolve_all(ctx, items, chain)
        entries = [
            OrderedEntry(key=e.key, value=v, is_spread=e.is_spread)
            for e, v in zip(value.entries, resolved)
        ]
        # every spread target is available before composition starts, so the
        # fold order is the declaration order whatever order fetches finished in
        return compose_ordered(entries, self._spread_target)

    def _spread_target(self, value: Any) -> Any:
        if value is None and self.allow_missing_provider:
            return {}
        return value

    async def _resolve_all(
        self,
        ctx: Context,
        items: Sequence[Tuple[str, Any]],
        chain: Chain,
    ) -> List[Any]:
        """Resolve sibling values, preserving their order.

        ``items`` pairs each value with the prefix added to its errors.
        """
        concurrent = [i for i, (_, v) in enumerate(items) if not is_scalar(v)]
        if not self._parallel or len(concurrent) <= 1:
            results = []
            for label, v in items:
                results.append(await self._resolve_labeled(ctx, label, v, chain))
            return results

        tasks = [
            asyncio.ensure_future(self._resolve_labeled(ctx, label, v, chain))
            for label, v in items
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            await _cancel_all(tasks)
            raise
        if pending:
            await _cancel_all(pending)
        first_error: Optional[BaseException] = None
        for task in tasks:
            if task in done and not task.cancelled():
                # retrieve every exception so none is reported as unhandled
                err = task.exception()
                if err is not None and first_error is None:
                    first_error = err
        if first_error is not None:
            raise first_error
        return [task.result() for task in tasks]

    async def _resolve_labeled(self, ctx: Context, label: str, value: Any, chain: Chain) -> Any:
        if is_scalar(value):
            return value
        try:
            return await self._resolve(ctx, value, chain)
        except Cancelled:
            raise
        except CompoteError as e:
            raise e.wrap(label) from e

    async def _resolve_reference(self, ctx: Context, ref: Reference, chain: Chain) -> Any:
        path = ref.fetch_path
        key = build_cache_key(ref.alias, path)
        if key in chain:
            cycle = " → ".join(chain + (key,))
            raise CircularReference(
                f"circular reference detected: {cycle} at {ref.span.location()}",
                span=ref.span,
            )

        try:
            fetched = await self.cache.get_or_load(key, lambda: self._fetch(ctx, ref, path))
        except ProviderNotRegistered:
            return self._provider_missing(ref)
        except (ProviderInitError, _FetchFailed) as e:
            return self._fetch_failed(ref, e)

        # values coming back from a provider may hold references of their own
        return await self._resolve(ctx, fetched, chain + (key,))

    async def _fetch(self, ctx: Context, ref: Reference, path: Tuple[str, ...]) -> Any:
        provider = await self.registry.get_provider(ctx, ref.alias)
        async with self._semaphore:
            ctx.check()
            fetch_ctx = ctx.with_timeout(self.per_provider_fetch_timeout)
            self.fetch_count += 1
            logger.debug(
                "Fetching {}:{}{}", ref.alias, "/".join(path), " (wildcard)" if ref.is_wildcard else ""
            )
            try:
                value = await asyncio.wait_for(
                    provider.fetch(fetch_ctx, path), timeout=fetch_ctx.remaining()
                )
            except (Cancelled, asyncio.TimeoutError) as e:
                if ctx.cancelled:
                    raise ctx.err() from None
                if ctx.expired or (
                    ctx.deadline is not None and fetch_ctx.deadline == ctx.deadline
                ):
                    raise DeadlineExceeded("context deadline exceeded") from None
                if isinstance(e, Cancelled) and not fetch_ctx.expired:
                    raise _FetchFailed(str(e)) from e
                raise _FetchFailed(
                    f"fetch timed out after {self.per_provider_fetch_timeout}s"
                ) from None
            except Exception as e:
                raise _FetchFailed(str(e) or type(e).__name__) from e
        try:
            value = from_plain(value)
        except TypeError as e:
            raise _FetchFailed(f"provider returned {e}") from e
        # some providers wrap scalars as {"value": x}
        if isinstance(value, dict) and len(value) == 1 and "value" in value:
            value = value["value"]
        return value

    def _provider_missing(self, ref: Reference) -> None:
        location = ref.span.location()
        if self.allow_missing_provider:
            self._warn(ref, f"provider {ref.alias!r} not found for reference at {location}")
            return None
        message = f"provider not registered: provider {ref.alias!r} at {location}"
        suggestions = suggest_aliases(ref.alias, self.registry.registered_aliases())
        if suggestions:
            message += f" (did you mean {', '.join(repr(s) for s in suggestions)}?)"
        raise ProviderNotRegistered(message, alias=ref.alias, span=ref.span)

    def _fetch_failed(self, ref: Reference, err: BaseException) -> None:
        location = ref.span.location()
        detail = str(err) or type(err).__name__
        if self.allow_missing_provider:
            self._warn(ref, f"failed to fetch reference {ref} at {location}: {detail}")
            return None
        cause = err.__cause__ if isinstance(err, _FetchFailed) and err.__cause__ else err
        raise UnresolvedReference(
            f"unresolved reference: failed to fetch {ref} at {location}: {detail}",
            alias=ref.alias,
            path=ref.path,
            span=ref.span,
        ) from cause

    def _warn(self, ref: Reference, message: str) -> None:
        span = ref.span
        logger.warning(
            "{}", Diagnostic(span.filename, span.start_line, span.start_col, message, Severity.WARNING)
        )
        if self.on_warning is not None:
            self.on_warning(message)


async def _cancel_all(tasks) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
