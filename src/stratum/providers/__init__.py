"""Provider adapters and built-in registrations."""

# Import built-in providers for side effects (registration)
from stratum.providers import arm as _arm  # noqa: F401
from stratum.providers import memory as _memory  # noqa: F401
from stratum.providers.base import ProviderAdapter
from stratum.providers.registry import (
    create_provider,
    list_providers,
    register_provider,
)

__all__ = [
    "ProviderAdapter",
    "create_provider",
    "list_providers",
    "register_provider",
]
