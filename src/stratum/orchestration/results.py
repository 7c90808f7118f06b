"""Result types for a sequencer run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from stratum.resources.models import ResourceHandle


class Outcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    SKIPPED = "skipped"


class Phase(Enum):
    EXECUTE = "execute"
    TEARDOWN = "teardown"


@dataclass(frozen=True)
class ReportEntry:
    """Outcome of one operation, or of one teardown delete."""

    operation_id: str
    outcome: Outcome
    resource: str
    phase: Phase = Phase.EXECUTE
    error: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "outcome": self.outcome.value,
            "resource": self.resource,
            "phase": self.phase.value,
            "error": self.error,
        }


@dataclass
class RunReport:
    """Append-only record of what a run did."""

    entries: List[ReportEntry] = field(default_factory=list)
    observations: Dict[str, List[ResourceHandle]] = field(default_factory=dict)
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def execution_entries(self) -> List[ReportEntry]:
        return [e for e in self.entries if e.phase is Phase.EXECUTE]

    @property
    def teardown_entries(self) -> List[ReportEntry]:
        return [e for e in self.entries if e.phase is Phase.TEARDOWN]

    @property
    def failures(self) -> List[ReportEntry]:
        return [e for e in self.entries if e.outcome is Outcome.FAILED]

    @property
    def success(self) -> bool:
        """Whether the run finished without failures or cancellation."""
        return not self.failures and not self.cancelled

    def outcome_of(self, operation_id: str, phase: Phase = Phase.EXECUTE) -> Outcome | None:
        for entry in self.entries:
            if entry.operation_id == operation_id and entry.phase is phase:
                return entry.outcome
        return None

    def counts(self) -> Dict[str, int]:
        totals = {outcome.value: 0 for outcome in Outcome}
        for entry in self.entries:
            totals[entry.outcome.value] += 1
        return totals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "cancelled": self.cancelled,
            "duration_seconds": self.duration_seconds,
            "counts": self.counts(),
            "entries": [entry.to_dict() for entry in self.entries],
            "observations": {
                op_id: [
                    {"key": handle.key, "remote_id": handle.remote_id}
                    for handle in handles
                ]
                for op_id, handles in self.observations.items()
            },
        }


class ReportCollector:
    """Collects entries during a run; execution entries are emitted in plan order."""

    def __init__(self, plan_order: List[str]) -> None:
        self._position = {op_id: index for index, op_id in enumerate(plan_order)}
        self._execution: Dict[str, ReportEntry] = {}
        self._teardown: List[ReportEntry] = []
        self._observations: Dict[str, List[ResourceHandle]] = {}

    def record(
        self,
        operation_id: str,
        outcome: Outcome,
        resource: str,
        error: str | None = None,
    ) -> None:
        self._execution[operation_id] = ReportEntry(operation_id, outcome, resource, error=error)

    def observe(self, operation_id: str, handles: List[ResourceHandle]) -> None:
        self._observations[operation_id] = list(handles)

    def record_teardown(
        self,
        operation_id: str,
        resource: str,
        error: str | None = None,
    ) -> None:
        outcome = Outcome.FAILED if error else Outcome.ROLLED_BACK
        self._teardown.append(
            ReportEntry(operation_id, outcome, resource, phase=Phase.TEARDOWN, error=error)
        )

    def recorded(self, operation_id: str) -> bool:
        return operation_id in self._execution

    def finalize(self, duration: float, cancelled: bool = False) -> RunReport:
        execution = sorted(self._execution.values(), key=lambda e: self._position[e.operation_id])
        return RunReport(
            entries=execution + self._teardown,
            observations=dict(self._observations),
            cancelled=cancelled,
            duration_seconds=duration,
        )
