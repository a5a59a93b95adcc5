"""Provider protocol and registries."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from loguru import logger

from .context import Context
from .errors import CompoteError, ProviderInitError, ProviderNotRegistered, ProviderTypeNotFound


@dataclass(frozen=True)
class ProviderInitOptions:
    """Options passed to ``Provider.init``.

    Attributes:
        alias: Alias the provider is registered under.
        config: Converted configuration from the source declaration.
        source_file: Document that declared the source, for relative paths.
    """

    alias: str
    config: Dict[str, Any] = field(default_factory=dict)
    source_file: str = ""


class Provider(Protocol):
    """Protocol every data provider implements.

    Local providers and out-of-process provider clients look the same to
    the resolver. Once ``init`` has returned, ``fetch`` may be called
    concurrently.
    """

    async def init(self, ctx: Context, options: ProviderInitOptions) -> None:
        """Prepare the provider for fetches.

        Args:
            ctx: Cancellation context.
            options: Alias and configuration.
        """
        ...

    async def fetch(self, ctx: Context, path: Tuple[str, ...]) -> Any:
        """Fetch the value at ``path``.

        Args:
            ctx: Cancellation context.
            path: Path segments; empty for the provider root.

        Returns:
            A value of the value model.
        """
        ...


ProviderConstructor = Callable[[ProviderInitOptions], Provider]
ProviderTypeConstructor = Callable[[Dict[str, Any]], Provider]
# Builds providers for types without an in-process constructor, e.g. by
# starting a provider binary. Receives (ctx, type, alias, config).
ProviderFactory = Callable[[Context, str, str, Dict[str, Any]], Awaitable[Provider]]


class _Slot:
    def __init__(self, constructor: ProviderConstructor, options: ProviderInitOptions):
        self.constructor = constructor
        self.options = options
        self.lock = asyncio.Lock()
        self.instance: Optional[Provider] = None


class ProviderRegistry:
    """Alias to lazily constructed, memoized provider.

    The first ``get_provider`` for an alias constructs and initializes it
    under that alias's lock; later lookups return the same instance.
    """

    def __init__(self) -> None:
        self._slots: Dict[str, _Slot] = {}

    def register(
        self,
        alias: str,
        constructor: ProviderConstructor,
        *,
        config: Optional[Dict[str, Any]] = None,
        source_file: str = "",
    ) -> None:
        """Register a constructor for ``alias``.

        Registering an alias again with the same constructor is a no-op.
        A different constructor replaces a slot that was not materialized.
        """
        existing = self._slots.get(alias)
        if existing is not None:
            if existing.constructor is constructor or existing.instance is not None:
                return
        options = ProviderInitOptions(alias=alias, config=dict(config or {}), source_file=source_file)
        self._slots[alias] = _Slot(constructor, options)

    def register_instance(self, alias: str, provider: Provider) -> None:
        """Register an already initialized provider."""
        slot = _Slot(lambda _opts: provider, ProviderInitOptions(alias=alias))
        slot.instance = provider
        self._slots[alias] = slot

    def is_registered(self, alias: str) -> bool:
        return alias in self._slots

    def registered_aliases(self) -> List[str]:
        return sorted(self._slots)

    def materialized_aliases(self) -> List[str]:
        return sorted(a for a, s in self._slots.items() if s.instance is not None)

    async def get_provider(self, ctx: Context, alias: str) -> Provider:
        """Return the provider for ``alias``, constructing it on first use.

        Raises:
            ProviderNotRegistered: If nothing is registered under ``alias``.
            ProviderInitError: If construction or ``init`` fails.
        """
        slot = self._slots.get(alias)
        if slot is None:
            raise ProviderNotRegistered(f"provider not registered: {alias}", alias=alias)
        if slot.instance is not None:
            return slot.instance

        async with slot.lock:
            if slot.instance is not None:
                return slot.instance
            ctx.check()
            try:
                provider = slot.constructor(slot.options)
            except CompoteError:
                raise
            except Exception as e:
                raise ProviderInitError(f"failed to construct provider {alias!r}: {e}") from e
            try:
                await provider.init(ctx, slot.options)
            except CompoteError:
                raise
            except Exception as e:
                raise ProviderInitError(f"failed to initialize provider {alias!r}: {e}") from e
            logger.debug("Initialized provider {}", alias)
            slot.instance = provider
            return provider


class ProviderTypeRegistry:
    """Provider type name to constructor.

    Args:
        fallback: Optional factory for types with no registered constructor.
    """

    def __init__(self, fallback: Optional[ProviderFactory] = None):
        self._constructors: Dict[str, ProviderTypeConstructor] = {}
        self._fallback = fallback

    def register_type(self, type_name: str, constructor: ProviderTypeConstructor) -> None:
        self._constructors[type_name] = constructor

    def is_type_registered(self, type_name: str) -> bool:
        return type_name in self._constructors

    def registered_types(self) -> List[str]:
        return sorted(self._constructors)

    async def create_provider(
        self,
        ctx: Context,
        type_name: str,
        alias: str,
        config: Dict[str, Any],
    ) -> Provider:
        """Create an uninitialized provider of ``type_name`` for ``alias``.

        Raises:
            ProviderTypeNotFound: If the type is unknown and no fallback exists.
            ProviderInitError: If the constructor fails.
        """
        constructor = self._constructors.get(type_name)
        if constructor is not None:
            try:
                return constructor(config)
            except CompoteError:
                raise
            except Exception as e:
                raise ProviderInitError(
                    f"failed to create provider of type {type_name!r}: {e}"
                ) from e
        if self._fallback is not None:
            return await self._fallback(ctx, type_name, alias, config)
        raise ProviderTypeNotFound(
            f"provider type {type_name!r} not found (registered: "
            f"{', '.join(self.registered_types()) or 'none'})"
        )


def default_type_registry() -> ProviderTypeRegistry:
    """Type registry preloaded with the built-in provider types."""
    from ..providers.yaml_file import YamlFileProvider

    registry = ProviderTypeRegistry()
    registry.register_type("yaml", YamlFileProvider.from_config)
    return registry
