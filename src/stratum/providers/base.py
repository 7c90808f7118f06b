from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from stratum.resources.models import ResourceHandle


@runtime_checkable
class ProviderAdapter(Protocol):
    """
    Capability interface the sequencer drives.

    Every method blocks until the provider reports a terminal state; any
    long-running-operation polling stays inside the adapter. Implementations
    must tolerate concurrent use by independent runs.
    """

    name: str

    def create_or_update(self, handle: ResourceHandle, payload: Any) -> ResourceHandle:
        """Converge the remote resource to ``payload`` and return what was observed.

        Repeating the call with the same identity and payload must not error.
        """
        ...

    def delete(self, handle: ResourceHandle) -> None:
        """Remove the remote resource; an already-absent resource is not an error."""
        ...

    def get(self, handle: ResourceHandle) -> ResourceHandle:
        """Return the current remote view or raise NotFoundError."""
        ...

    def list(self, scope: str | None, kind: str | None = None) -> list[ResourceHandle]:
        """List resources directly under ``scope``, optionally filtered by kind."""
        ...
