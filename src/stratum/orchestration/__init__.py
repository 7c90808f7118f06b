"""Orchestration package: dependency ordering, execution and teardown."""

from stratum.orchestration.graph import DependencyGraph, order
from stratum.orchestration.results import (
    Outcome,
    Phase,
    ReportCollector,
    ReportEntry,
    RunReport,
)
from stratum.orchestration.sequencer import CancellationToken, Sequencer, execute

__all__ = [
    "CancellationToken",
    "DependencyGraph",
    "Outcome",
    "Phase",
    "ReportCollector",
    "ReportEntry",
    "RunReport",
    "Sequencer",
    "execute",
    "order",
]
