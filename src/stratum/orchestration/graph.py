"""Dependency ordering for operation descriptors."""

from __future__ import annotations

import heapq
from typing import Iterable, Iterator, Sequence

from stratum.core.errors import CycleError, InvalidStateError, UnknownDependencyError
from stratum.resources.models import OperationDescriptor


class DependencyGraph:
    """
    Adjacency derived from ``depends_on``, recomputed per run.

    Ordering is a Kahn sort that releases ready operations in ascending id
    order, so the same input always yields the same sequence.
    """

    def __init__(self, descriptors: Iterable[OperationDescriptor]) -> None:
        self._descriptors: dict[str, OperationDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._descriptors:
                raise InvalidStateError(
                    f"Duplicate operation id '{descriptor.id}'",
                    {"operation_id": descriptor.id},
                )
            self._descriptors[descriptor.id] = descriptor

        self._dependencies: dict[str, frozenset[str]] = {}
        self._dependents: dict[str, set[str]] = {op_id: set() for op_id in self._descriptors}
        for op_id in sorted(self._descriptors):
            deps = self._descriptors[op_id].depends_on
            for dep in sorted(deps):
                if dep not in self._descriptors:
                    raise UnknownDependencyError(op_id, dep)
                self._dependents[dep].add(op_id)
            self._dependencies[op_id] = deps

    def __len__(self) -> int:
        return len(self._descriptors)

    def dependencies_of(self, op_id: str) -> frozenset[str]:
        return self._dependencies[op_id]

    def dependents_of(self, op_id: str) -> set[str]:
        """Transitive dependents of ``op_id`` (operations whose chain includes it)."""
        seen: set[str] = set()
        stack = list(self._dependents[op_id])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._dependents[current])
        return seen

    def order(self) -> list[OperationDescriptor]:
        remaining = {op_id: len(deps) for op_id, deps in self._dependencies.items()}
        ready = [op_id for op_id, count in remaining.items() if count == 0]
        heapq.heapify(ready)

        ordered: list[OperationDescriptor] = []
        while ready:
            op_id = heapq.heappop(ready)
            ordered.append(self._descriptors[op_id])
            del remaining[op_id]
            for dependent in self._dependents[op_id]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, dependent)

        if remaining:
            raise CycleError(self._cycle_members(set(remaining)))
        return ordered

    def _cycle_members(self, stuck: set[str]) -> set[str]:
        """Operations inside a strongly connected component of the stuck subgraph.

        Iterative Tarjan. Components of one operation only count when it
        depends on itself; the rest are blocked behind a cycle, not on one.
        """
        index: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        stack: list[str] = []
        on_stack: set[str] = set()
        members: set[str] = set()

        def visit(op_id: str) -> None:
            index[op_id] = lowlink[op_id] = len(index)
            stack.append(op_id)
            on_stack.add(op_id)
            work.append((op_id, iter(sorted(self._dependencies[op_id] & stuck))))

        for root in sorted(stuck):
            if root in index:
                continue
            work: list[tuple[str, Iterator[str]]] = []
            visit(root)
            while work:
                op_id, deps = work[-1]
                for dep in deps:
                    if dep not in index:
                        visit(dep)
                        break
                    if dep in on_stack:
                        lowlink[op_id] = min(lowlink[op_id], index[dep])
                else:
                    work.pop()
                    if work:
                        parent = work[-1][0]
                        lowlink[parent] = min(lowlink[parent], lowlink[op_id])
                    if lowlink[op_id] == index[op_id]:
                        component = []
                        while True:
                            member = stack.pop()
                            on_stack.discard(member)
                            component.append(member)
                            if member == op_id:
                                break
                        if len(component) > 1 or op_id in self._dependencies[op_id]:
                            members.update(component)
        return members

    def levels(self) -> list[list[OperationDescriptor]]:
        """Group operations by longest dependency depth; roots are level 0."""
        depth: dict[str, int] = {}
        for descriptor in self.order():
            deps = self._dependencies[descriptor.id]
            depth[descriptor.id] = 1 + max((depth[d] for d in deps), default=-1)

        grouped: list[list[OperationDescriptor]] = []
        for descriptor in self.order():
            level = depth[descriptor.id]
            while len(grouped) <= level:
                grouped.append([])
            grouped[level].append(descriptor)
        return grouped


def order(descriptors: Sequence[OperationDescriptor]) -> list[OperationDescriptor]:
    """Return ``descriptors`` in dependency order.

    Raises:
        CycleError: no topological order exists
        UnknownDependencyError: a ``depends_on`` id is not in the input
    """
    return DependencyGraph(descriptors).order()
