"""
Resource handles and operation descriptors.

A ResourceHandle identifies one remote resource and carries its last-known
state. An OperationDescriptor is a declarative unit of work against a handle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from stratum.core.errors import InvalidStateError


class ResourceState(Enum):
    """Lifecycle state of a handle within a run."""

    PENDING = "pending"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    FAILED = "failed"


class OperationKind(Enum):
    """Kind of work an operation performs."""

    CREATE_OR_UPDATE = "create_or_update"
    DELETE = "delete"
    LIST = "list"


# Pending -> Deleted only happens through an explicit Delete operation on a
# resource that existed before the run.
_TRANSITIONS: dict[ResourceState, frozenset[ResourceState]] = {
    ResourceState.PENDING: frozenset(
        {ResourceState.CREATED, ResourceState.FAILED, ResourceState.DELETED}
    ),
    ResourceState.CREATED: frozenset({ResourceState.UPDATED, ResourceState.DELETED}),
    ResourceState.UPDATED: frozenset({ResourceState.UPDATED, ResourceState.DELETED}),
    ResourceState.DELETED: frozenset(),
    ResourceState.FAILED: frozenset(),
}

LIVE_STATES = frozenset({ResourceState.CREATED, ResourceState.UPDATED})


@dataclass(eq=False)
class ResourceHandle:
    """Identity of a remote resource plus its last observed state.

    Handles compare by identity: two descriptors touch the same resource
    only when they share the same handle object.
    """

    kind: str
    name: str
    scope: str | None = None
    remote_id: str | None = None
    state: ResourceState = ResourceState.PENDING
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Path-like identity, e.g. ``resource_group/rg1/storage_account/sa1``."""
        local = f"{self.kind}/{self.name}"
        return f"{self.scope}/{local}" if self.scope else local

    @property
    def is_live(self) -> bool:
        return self.state in LIVE_STATES

    def can_transition(self, target: ResourceState) -> bool:
        return target in _TRANSITIONS[self.state]

    def transition(self, target: ResourceState) -> None:
        """Move to ``target`` or raise InvalidStateError."""
        if not self.can_transition(target):
            raise InvalidStateError(
                f"Resource '{self.key}' cannot move from {self.state.value} to {target.value}",
                {"resource": self.key, "from": self.state.value, "to": target.value},
            )
        self.state = target

    def observed(self, **changes: Any) -> ResourceHandle:
        """Return a detached copy, as an adapter reports it back."""
        values = {
            "kind": self.kind,
            "name": self.name,
            "scope": self.scope,
            "remote_id": self.remote_id,
            "state": self.state,
            "properties": dict(self.properties),
        }
        values.update(changes)
        return ResourceHandle(**values)

    def __repr__(self) -> str:
        return f"ResourceHandle({self.key!r}, state={self.state.value})"


@dataclass(frozen=True, eq=False)
class OperationDescriptor:
    """A declarative unit of work against one handle."""

    id: str
    target: ResourceHandle
    kind: OperationKind
    payload: Any = None
    depends_on: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Operation id is required")
        if not isinstance(self.depends_on, frozenset):
            object.__setattr__(self, "depends_on", frozenset(self.depends_on))


def create_or_update(
    op_id: str,
    target: ResourceHandle,
    payload: Any = None,
    depends_on: Iterable[str] = (),
) -> OperationDescriptor:
    return OperationDescriptor(
        op_id, target, OperationKind.CREATE_OR_UPDATE, payload, frozenset(depends_on)
    )


def delete(
    op_id: str, target: ResourceHandle, depends_on: Iterable[str] = ()
) -> OperationDescriptor:
    return OperationDescriptor(op_id, target, OperationKind.DELETE, None, frozenset(depends_on))


def list_resources(
    op_id: str, target: ResourceHandle, depends_on: Iterable[str] = ()
) -> OperationDescriptor:
    """List resources of ``target.kind`` under ``target.scope``."""
    return OperationDescriptor(op_id, target, OperationKind.LIST, None, frozenset(depends_on))
