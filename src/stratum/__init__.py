"""Stratum - declarative, idempotent resource provisioning sequencer."""

from stratum.core.errors import (
    CycleError,
    InvalidStateError,
    NotFoundError,
    PartialTeardownError,
    ProviderError,
    StratumError,
    UnknownDependencyError,
)
from stratum.orchestration import (
    CancellationToken,
    DependencyGraph,
    Outcome,
    RunReport,
    Sequencer,
    execute,
    order,
)
from stratum.resources import (
    OperationDescriptor,
    OperationKind,
    ResourceHandle,
    ResourceState,
)

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "CycleError",
    "DependencyGraph",
    "InvalidStateError",
    "NotFoundError",
    "OperationDescriptor",
    "OperationKind",
    "Outcome",
    "PartialTeardownError",
    "ProviderError",
    "ResourceHandle",
    "ResourceState",
    "RunReport",
    "Sequencer",
    "StratumError",
    "UnknownDependencyError",
    "execute",
    "order",
]
