"""Tests for provider registration."""

import pytest
from stratum.core.errors import ConfigurationError
from stratum.providers import create_provider, list_providers
from stratum.providers.arm import ArmProvider
from stratum.providers.memory import InMemoryProvider
from stratum.providers.registry import ProviderRegistry


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_register_and_create(self):
        """Registered factories are called with keyword options."""
        registry = ProviderRegistry()
        registry.register("fake", InMemoryProvider, version="1.0")

        adapter = registry.create("fake", id_prefix="/fake")

        assert isinstance(adapter, InMemoryProvider)
        assert registry.list()[0].version == "1.0"

    def test_unknown_provider(self):
        """Unknown names are configuration errors listing what is available."""
        registry = ProviderRegistry()
        registry.register("fake", InMemoryProvider)

        with pytest.raises(ConfigurationError) as exc_info:
            registry.create("missing")
        assert exc_info.value.details["available"] == ["fake"]

    def test_factory_must_return_adapter(self):
        """Factories returning something else are rejected."""
        registry = ProviderRegistry()
        registry.register("broken", lambda: object())

        with pytest.raises(ConfigurationError, match="not an adapter"):
            registry.create("broken")

    def test_name_required(self):
        """Empty names are rejected."""
        with pytest.raises(ValueError):
            ProviderRegistry().register("", InMemoryProvider)

    def test_reregister_replaces(self):
        """Registering a name twice keeps the latest factory."""
        registry = ProviderRegistry()
        registry.register("fake", InMemoryProvider, version="1")
        registry.register("fake", InMemoryProvider, version="2")
        assert [info.version for info in registry.list()] == ["2"]

    def test_list_sorted(self):
        """list() and names() are sorted by name."""
        registry = ProviderRegistry()
        registry.register("zeta", InMemoryProvider)
        registry.register("alpha", InMemoryProvider)
        assert registry.names() == ["alpha", "zeta"]
        assert [info.name for info in registry.list()] == ["alpha", "zeta"]


class TestBuiltinProviders:
    """Tests for the providers registered on import."""

    def test_builtins_registered(self):
        """memory and arm are available by default."""
        names = [info.name for info in list_providers()]
        assert "memory" in names
        assert "arm" in names

    def test_create_memory(self):
        """The memory provider needs no configuration."""
        assert isinstance(create_provider("memory"), InMemoryProvider)

    def test_create_arm_with_overrides(self):
        """Keyword overrides reach the arm provider."""
        provider = create_provider("arm", subscription_id="sub-1", access_token="t")
        try:
            assert isinstance(provider, ArmProvider)
        finally:
            provider.close()
