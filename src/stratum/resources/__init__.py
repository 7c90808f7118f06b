"""Resource value types."""

from stratum.resources.models import (
    LIVE_STATES,
    OperationDescriptor,
    OperationKind,
    ResourceHandle,
    ResourceState,
    create_or_update,
    delete,
    list_resources,
)

__all__ = [
    "LIVE_STATES",
    "OperationDescriptor",
    "OperationKind",
    "ResourceHandle",
    "ResourceState",
    "create_or_update",
    "delete",
    "list_resources",
]
