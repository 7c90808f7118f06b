"""
Sequencer: runs operation descriptors through a provider adapter.

A run has two phases. The execution phase walks the dependency order and
stops starting new work at the first failure or cancellation. The teardown
phase always follows, deleting every handle the run created and still holds,
in reverse creation order. Failures are raised only after teardown, with the
run report attached.
"""

from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable

import structlog

from stratum.core.errors import (
    InvalidStateError,
    PartialTeardownError,
    ProviderError,
    StratumError,
)
from stratum.orchestration.graph import DependencyGraph
from stratum.orchestration.results import Outcome, ReportCollector, RunReport
from stratum.providers.base import ProviderAdapter
from stratum.resources.models import (
    OperationDescriptor,
    OperationKind,
    ResourceHandle,
    ResourceState,
)

logger = structlog.get_logger()


class CancellationToken:
    """Cooperative cancellation flag, checked between operations."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class Sequencer:
    """Executes descriptor sets against one provider adapter.

    With ``max_workers`` above one, operations on the same dependency level
    run concurrently; report order stays the deterministic plan order.
    """

    def __init__(self, adapter: ProviderAdapter, *, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._adapter = adapter
        self._max_workers = max_workers

    def execute(
        self,
        descriptors: Iterable[OperationDescriptor],
        cancel_token: CancellationToken | None = None,
    ) -> RunReport:
        """Run ``descriptors`` and tear down what they created.

        Raises:
            CycleError, UnknownDependencyError, InvalidStateError: before any
                provider call when the descriptor set is malformed
            ProviderError: an operation failed (raised after teardown)
            PartialTeardownError: the run succeeded but teardown left resources
        """
        graph = DependencyGraph(descriptors)
        plan = graph.order()
        _check_transitions(plan)

        run = _Run(graph, plan, self._adapter, self._max_workers, cancel_token or CancellationToken())
        return run.execute()


def execute(
    descriptors: Iterable[OperationDescriptor],
    adapter: ProviderAdapter,
    *,
    max_workers: int = 1,
    cancel_token: CancellationToken | None = None,
) -> RunReport:
    return Sequencer(adapter, max_workers=max_workers).execute(descriptors, cancel_token)


def _planned_state(descriptor: OperationDescriptor, current: ResourceHandle) -> ResourceState | None:
    if descriptor.kind is OperationKind.CREATE_OR_UPDATE:
        return ResourceState.UPDATED if current.is_live else ResourceState.CREATED
    if descriptor.kind is OperationKind.DELETE:
        return ResourceState.DELETED
    return None


def _check_transitions(plan: list[OperationDescriptor]) -> None:
    """Replay the plan on detached copies of its handles.

    Every target must start pending, and every operation must be a legal
    transition from the state the earlier operations leave behind.
    """
    shadows: dict[int, ResourceHandle] = {}
    for descriptor in plan:
        handle = descriptor.target
        shadow = shadows.get(id(handle))
        if shadow is None:
            if handle.state is not ResourceState.PENDING:
                raise InvalidStateError(
                    f"Resource '{handle.key}' is {handle.state.value}; a run needs pending handles",
                    {"operation_id": descriptor.id, "resource": handle.key},
                )
            shadow = shadows[id(handle)] = handle.observed()

        wanted = _planned_state(descriptor, shadow)
        if wanted is None:
            continue
        if not shadow.can_transition(wanted):
            raise InvalidStateError(
                f"Operation '{descriptor.id}' cannot {descriptor.kind.value} "
                f"'{handle.key}' after it is {shadow.state.value}",
                {"operation_id": descriptor.id, "resource": handle.key},
            )
        shadow.state = wanted


class _Run:
    """State owned by a single execute call."""

    def __init__(
        self,
        graph: DependencyGraph,
        plan: list[OperationDescriptor],
        adapter: ProviderAdapter,
        max_workers: int,
        token: CancellationToken,
    ) -> None:
        self._graph = graph
        self._plan = plan
        self._adapter = adapter
        self._max_workers = max_workers
        self._token = token
        self._collector = ReportCollector([d.id for d in plan])
        self._created: list[tuple[ResourceHandle, str]] = []
        self._left_behind: list[ResourceHandle] = []
        self._failure: StratumError | None = None
        self._failed_op: str | None = None
        self._cancelled = False
        self._torn_down = False
        self._log = logger.bind(run_id=uuid.uuid4().hex[:12], adapter=getattr(adapter, "name", None))

    def execute(self) -> RunReport:
        started = time.monotonic()
        self._log.info("run_started", operations=len(self._plan))
        try:
            if self._max_workers > 1:
                self._execute_levels()
            else:
                self._execute_sequential()
        finally:
            self._teardown()

        report = self._collector.finalize(time.monotonic() - started, cancelled=self._cancelled)
        self._log.info(
            "run_finished",
            success=report.success,
            cancelled=report.cancelled,
            duration_seconds=round(report.duration_seconds, 3),
            **report.counts(),
        )
        self._raise_for(report)
        return report

    # -- execution phase -------------------------------------------------------

    def _execute_sequential(self) -> None:
        for descriptor in self._plan:
            if self._token.cancelled:
                self._cancel()
                return
            try:
                self._precheck(descriptor)
                result = self._invoke(descriptor)
                self._commit(descriptor, result)
            except StratumError as exc:
                self._fail(descriptor, exc)
                self._skip_remaining()
                return

    def _execute_levels(self) -> None:
        levels = self._graph.levels()
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="stratum") as pool:
            for level in levels:
                if self._token.cancelled:
                    self._cancel()
                    return
                runnable = []
                for descriptor in level:
                    try:
                        self._precheck(descriptor)
                    except InvalidStateError as exc:
                        self._fail(descriptor, exc)
                    else:
                        runnable.append(descriptor)

                futures = {d.id: pool.submit(self._invoke, d) for d in runnable}
                for descriptor in runnable:
                    try:
                        self._commit(descriptor, futures[descriptor.id].result())
                    except StratumError as exc:
                        self._fail(descriptor, exc)

                if self._failure is not None:
                    self._skip_remaining()
                    return

    def _precheck(self, descriptor: OperationDescriptor) -> None:
        target = descriptor.target
        wanted = _planned_state(descriptor, target)
        if wanted is not None and not target.can_transition(wanted):
            raise InvalidStateError(
                f"Operation '{descriptor.id}' cannot {descriptor.kind.value} "
                f"'{target.key}' in state {target.state.value}",
                {"operation_id": descriptor.id, "resource": target.key},
            )

    def _invoke(self, descriptor: OperationDescriptor) -> Any:
        """Make the adapter call; blocks until the provider reports a terminal state."""
        target = descriptor.target
        self._log.info(
            "operation_started",
            operation_id=descriptor.id,
            kind=descriptor.kind.value,
            resource=target.key,
        )
        try:
            if descriptor.kind is OperationKind.CREATE_OR_UPDATE:
                return self._adapter.create_or_update(target, descriptor.payload)
            if descriptor.kind is OperationKind.DELETE:
                return self._adapter.delete(target)
            return self._adapter.list(target.scope, kind=target.kind)
        except InvalidStateError:
            raise
        except Exception as exc:
            raise ProviderError(
                f"Operation '{descriptor.id}' ({descriptor.kind.value} {target.key}) failed: {exc}",
                {"operation_id": descriptor.id, "resource": target.key},
                operation_id=descriptor.id,
            ) from exc

    def _commit(self, descriptor: OperationDescriptor, result: Any) -> None:
        target = descriptor.target
        try:
            self._apply_result(descriptor, result)
        except InvalidStateError:
            raise
        except Exception as exc:
            raise ProviderError(
                f"Operation '{descriptor.id}' ({descriptor.kind.value} {target.key}) "
                f"returned an unusable result: {exc}",
                {"operation_id": descriptor.id, "resource": target.key},
                operation_id=descriptor.id,
            ) from exc

        self._collector.record(descriptor.id, Outcome.SUCCEEDED, target.key)
        self._log.info(
            "operation_succeeded",
            operation_id=descriptor.id,
            resource=target.key,
            state=target.state.value,
        )

    def _apply_result(self, descriptor: OperationDescriptor, result: Any) -> None:
        target = descriptor.target
        if descriptor.kind is OperationKind.CREATE_OR_UPDATE:
            first = not target.is_live
            # The remote resource exists once the call returns; track it for
            # teardown before reading anything off the result.
            target.transition(ResourceState.CREATED if first else ResourceState.UPDATED)
            if first:
                self._created.append((target, descriptor.id))
            if isinstance(result, ResourceHandle):
                target.remote_id = result.remote_id or target.remote_id
                target.properties = dict(result.properties)
        elif descriptor.kind is OperationKind.DELETE:
            target.transition(ResourceState.DELETED)
        else:
            self._collector.observe(descriptor.id, list(result or []))

    def _fail(self, descriptor: OperationDescriptor, error: StratumError) -> None:
        target = descriptor.target
        if (
            descriptor.kind is OperationKind.CREATE_OR_UPDATE
            and target.state is ResourceState.PENDING
            and not isinstance(error, InvalidStateError)
        ):
            target.transition(ResourceState.FAILED)
        self._collector.record(descriptor.id, Outcome.FAILED, target.key, error=str(error))
        self._log.error(
            "operation_failed",
            operation_id=descriptor.id,
            resource=target.key,
            error=str(error),
        )
        if self._failure is None:
            self._failure = error
            self._failed_op = descriptor.id

    def _cancel(self) -> None:
        self._cancelled = True
        self._log.warning("run_cancelled")
        self._skip_remaining()

    def _skip_remaining(self) -> None:
        blocked = self._graph.dependents_of(self._failed_op) if self._failed_op else set()
        for descriptor in self._plan:
            if self._collector.recorded(descriptor.id):
                continue
            if descriptor.id in blocked:
                reason = f"dependency '{self._failed_op}' failed"
            elif self._cancelled:
                reason = "run cancelled"
            else:
                reason = "run aborted"
            self._collector.record(descriptor.id, Outcome.SKIPPED, descriptor.target.key, error=reason)

    # -- teardown phase --------------------------------------------------------

    def _teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True

        live = [(handle, op_id) for handle, op_id in self._created if handle.is_live]
        if not live:
            return
        self._log.info("teardown_started", resources=len(live))

        if self._max_workers > 1:
            self._teardown_levels(live)
        else:
            for handle, op_id in reversed(live):
                self._record_teardown(handle, op_id, self._delete(handle))

        if self._left_behind:
            self._log.error(
                "teardown_incomplete",
                resources=[handle.key for handle in self._left_behind],
            )

    def _teardown_levels(self, live: list[tuple[ResourceHandle, str]]) -> None:
        depth = {d.id: index for index, level in enumerate(self._graph.levels()) for d in level}
        by_depth: dict[int, list[tuple[ResourceHandle, str]]] = {}
        for handle, op_id in live:
            by_depth.setdefault(depth[op_id], []).append((handle, op_id))

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="stratum-teardown") as pool:
            for level in sorted(by_depth, reverse=True):
                batch = list(reversed(by_depth[level]))
                errors = list(pool.map(lambda item: self._delete(item[0]), batch))
                for (handle, op_id), error in zip(batch, errors):
                    self._record_teardown(handle, op_id, error)

    def _delete(self, handle: ResourceHandle) -> str | None:
        """Delete one handle; returns the error text instead of raising."""
        try:
            self._adapter.delete(handle)
        except Exception as exc:
            self._log.error("teardown_failed", resource=handle.key, error=str(exc))
            return str(exc) or type(exc).__name__
        return None

    def _record_teardown(self, handle: ResourceHandle, op_id: str, error: str | None) -> None:
        if error is None:
            handle.transition(ResourceState.DELETED)
            self._log.info("teardown_deleted", resource=handle.key)
        else:
            self._left_behind.append(handle)
        self._collector.record_teardown(op_id, handle.key, error=error)

    # -- surfacing -------------------------------------------------------------

    def _raise_for(self, report: RunReport) -> None:
        if self._failure is not None:
            error = self._failure
            error.report = report
            if isinstance(error, ProviderError):
                error.teardown_failures = list(self._left_behind)
            elif self._left_behind:
                error.details["teardown_failures"] = [h.key for h in self._left_behind]
            raise error
        if self._left_behind:
            partial = PartialTeardownError(self._left_behind)
            partial.report = report
            raise partial

