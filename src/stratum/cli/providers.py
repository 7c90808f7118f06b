"""
CLI command for listing provider adapters, plus helpers shared by commands.
"""

from __future__ import annotations

from typing import Any

from stratum.cli.ux import print_table
from stratum.config.settings import get_settings
from stratum.providers import create_provider, list_providers


def build_provider(name: str | None = None) -> Any:
    """Create the named provider, falling back to the configured default."""
    return create_provider(name or get_settings().default_provider)


def close_provider(adapter: Any) -> None:
    close = getattr(adapter, "close", None)
    if callable(close):
        close()


def providers_command() -> int:
    entries = list_providers()
    print_table(
        title="Providers",
        columns=["Name", "Version", "Description"],
        rows=[[info.name, info.version or "builtin", info.description or ""] for info in entries],
    )
    return 0
