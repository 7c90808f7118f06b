"""
Named provider adapters.

Built-in adapters register themselves when ``stratum.providers`` is imported;
the CLI and callers then build adapters by name with keyword options.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import structlog

from stratum.core.errors import ConfigurationError
from stratum.providers.base import ProviderAdapter

logger = structlog.get_logger()

AdapterFactory = Callable[..., ProviderAdapter]


@dataclass(frozen=True)
class ProviderInfo:
    """A registered adapter factory and what to show for it."""

    name: str
    factory: AdapterFactory
    version: str | None = None
    description: str | None = None


class ProviderRegistry:
    """Adapter factories keyed by provider name."""

    def __init__(self) -> None:
        self._entries: Dict[str, ProviderInfo] = {}

    def register(
        self,
        name: str,
        factory: AdapterFactory,
        *,
        version: str | None = None,
        description: str | None = None,
    ) -> None:
        if not name:
            raise ValueError("Provider name is required")
        if name in self._entries:
            logger.warning("provider_replaced", provider=name)
        self._entries[name] = ProviderInfo(name, factory, version, description)

    def create(self, name: str, **options: Any) -> ProviderAdapter:
        """Build the adapter registered as ``name``.

        Raises:
            ConfigurationError: unknown name, or the factory returned something
                that is not a ProviderAdapter
        """
        entry = self._entries.get(name)
        if entry is None:
            raise ConfigurationError(
                f"Provider '{name}' is not registered",
                {"available": self.names()},
            )
        adapter = entry.factory(**options)
        if not isinstance(adapter, ProviderAdapter):
            raise ConfigurationError(
                f"Provider '{name}' factory returned {type(adapter).__name__}, not an adapter"
            )
        logger.debug("provider_created", provider=name)
        return adapter

    def names(self) -> List[str]:
        return sorted(self._entries)

    def list(self) -> List[ProviderInfo]:
        return [self._entries[name] for name in self.names()]


provider_registry = ProviderRegistry()


def register_provider(
    name: str,
    factory: AdapterFactory,
    *,
    version: str | None = None,
    description: str | None = None,
) -> None:
    provider_registry.register(name, factory, version=version, description=description)


def create_provider(name: str, **options: Any) -> ProviderAdapter:
    return provider_registry.create(name, **options)


def list_providers() -> List[ProviderInfo]:
    return provider_registry.list()
