"""
In-memory provider adapter.

Keeps remote state in a dictionary guarded by a lock. Used for dry runs and
as the test double for sequencer behaviour: it records every call and can be
told to fail specific operations.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Any

import structlog

from stratum.core.errors import NotFoundError, ProviderError
from stratum.providers.registry import register_provider
from stratum.resources.models import ResourceHandle, ResourceState

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProviderCall:
    """One recorded adapter call."""

    method: str
    key: str | None
    payload: Any = None


class InMemoryProvider:
    """Thread-safe dictionary-backed provider."""

    name = "memory"

    def __init__(self, *, id_prefix: str = "/memory") -> None:
        self._id_prefix = id_prefix.rstrip("/")
        self._lock = threading.RLock()
        self._resources: dict[str, ResourceHandle] = {}
        self._failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[ProviderCall] = []

    # -- test double helpers -------------------------------------------------

    def fail_on(self, method: str, key: str, error: Exception | None = None) -> None:
        """Make ``method`` fail for the resource ``key``."""
        with self._lock:
            self._failures[(method, key)] = error or ProviderError(
                f"Injected {method} failure for {key}", {"resource": key}
            )

    def clear_failures(self) -> None:
        with self._lock:
            self._failures.clear()

    def call_count(self, method: str | None = None) -> int:
        with self._lock:
            if method is None:
                return len(self.calls)
            return sum(1 for call in self.calls if call.method == method)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._resources

    def seed(self, handle: ResourceHandle, properties: dict[str, Any] | None = None) -> None:
        """Pretend ``handle`` already exists remotely."""
        with self._lock:
            self._resources[handle.key] = handle.observed(
                remote_id=handle.remote_id or self._remote_id(handle),
                state=ResourceState.CREATED,
                properties=dict(properties or {}),
            )

    # -- ProviderAdapter ------------------------------------------------------

    def create_or_update(self, handle: ResourceHandle, payload: Any) -> ResourceHandle:
        with self._lock:
            self._record("create_or_update", handle.key, payload)
            if handle.scope and handle.scope not in self._resources:
                raise ProviderError(
                    f"Parent scope '{handle.scope}' does not exist",
                    {"resource": handle.key},
                )
            properties = dict(payload) if isinstance(payload, dict) else {"value": payload}
            existing = self._resources.get(handle.key)
            if existing is not None:
                existing.properties = properties
                current = existing
            else:
                current = handle.observed(
                    remote_id=self._remote_id(handle),
                    state=ResourceState.CREATED,
                    properties=properties,
                )
                self._resources[handle.key] = current
            logger.debug("memory_resource_written", resource=handle.key, created=existing is None)
            return current.observed()

    def delete(self, handle: ResourceHandle) -> None:
        with self._lock:
            self._record("delete", handle.key)
            prefix = f"{handle.key}/"
            for key in [k for k in self._resources if k == handle.key or k.startswith(prefix)]:
                del self._resources[key]

    def get(self, handle: ResourceHandle) -> ResourceHandle:
        with self._lock:
            self._record("get", handle.key)
            current = self._resources.get(handle.key)
            if current is None:
                raise NotFoundError(f"Resource '{handle.key}' not found", {"resource": handle.key})
            return current.observed()

    def list(self, scope: str | None, kind: str | None = None) -> list[ResourceHandle]:
        with self._lock:
            self._record("list", scope)
            found = [
                current.observed()
                for current in self._resources.values()
                if current.scope == scope and (kind is None or current.kind == kind)
            ]
            return sorted(found, key=lambda h: h.key)

    # -- internals -------------------------------------------------------------

    def _record(self, method: str, key: str | None, payload: Any = None) -> None:
        self.calls.append(ProviderCall(method, key, payload))
        failure = self._failures.get((method, key or ""))
        if failure is not None:
            raise failure

    def _remote_id(self, handle: ResourceHandle) -> str:
        return f"{self._id_prefix}/{handle.key}#{uuid.uuid5(uuid.NAMESPACE_URL, handle.key).hex[:8]}"


def _factory(**kwargs: Any) -> InMemoryProvider:
    return InMemoryProvider(**kwargs)


register_provider(
    InMemoryProvider.name,
    _factory,
    version="builtin",
    description="In-process provider for dry runs and tests",
)

__all__ = ["InMemoryProvider", "ProviderCall"]
