"""Tests for orchestration/graph.py."""

import pytest
from stratum.core.errors import CycleError, InvalidStateError, UnknownDependencyError
from stratum.orchestration.graph import DependencyGraph, order
from stratum.resources.models import ResourceHandle, create_or_update


def _op(op_id, *deps):
    return create_or_update(op_id, ResourceHandle("resource_group", op_id), {}, depends_on=deps)


class TestOrder:
    """Tests for topological ordering."""

    def test_empty(self):
        """An empty set orders to an empty list."""
        assert order([]) == []

    def test_dependencies_first(self):
        """Dependencies precede dependents."""
        ids = [d.id for d in order([_op("c", "b"), _op("b", "a"), _op("a")])]
        assert ids == ["a", "b", "c"]

    def test_ties_broken_by_id(self):
        """Independent operations come out in ascending id order."""
        ids = [d.id for d in order([_op("zeta"), _op("alpha"), _op("mid")])]
        assert ids == ["alpha", "mid", "zeta"]

    def test_ready_set_tie_break(self):
        """Ids released later still sort against what is already ready."""
        ops = [_op("a"), _op("c"), _op("b", "a"), _op("d", "b")]
        ids = [d.id for d in order(ops)]
        assert ids == ["a", "b", "c", "d"]

    def test_deterministic_across_input_orders(self):
        """Shuffled input gives the same sequence."""
        ops = [_op("g"), _op("a1", "g"), _op("a2", "g"), _op("list", "a1", "a2")]
        first = [d.id for d in order(ops)]
        second = [d.id for d in order(list(reversed(ops)))]
        assert first == second == ["g", "a1", "a2", "list"]


class TestErrors:
    """Tests for structural errors."""

    def test_two_node_cycle(self):
        """X and Y depending on each other raise CycleError naming both."""
        with pytest.raises(CycleError) as exc_info:
            order([_op("X", "Y"), _op("Y", "X")])
        assert exc_info.value.ids == ["X", "Y"]

    def test_self_cycle(self):
        """An operation depending on itself is a cycle."""
        with pytest.raises(CycleError) as exc_info:
            order([_op("a", "a")])
        assert exc_info.value.ids == ["a"]

    def test_cycle_excludes_blocked_dependents(self):
        """Operations only blocked behind a cycle are not named."""
        with pytest.raises(CycleError) as exc_info:
            order([_op("root"), _op("x", "y", "root"), _op("y", "x"), _op("tail", "x")])
        assert exc_info.value.ids == ["x", "y"]

    def test_cycle_excludes_bridge_between_cycles(self):
        """An operation linking two cycles without sitting on one is not named."""
        with pytest.raises(CycleError) as exc_info:
            order(
                [
                    _op("a", "b"),
                    _op("b", "a"),
                    _op("p", "a"),
                    _op("c", "d", "p"),
                    _op("d", "c"),
                ]
            )
        assert exc_info.value.ids == ["a", "b", "c", "d"]

    def test_unknown_dependency(self):
        """depends_on must reference an id in the set."""
        with pytest.raises(UnknownDependencyError) as exc_info:
            order([_op("a", "ghost")])
        assert exc_info.value.operation_id == "a"
        assert exc_info.value.missing == "ghost"

    def test_duplicate_ids(self):
        """Ids must be unique."""
        with pytest.raises(InvalidStateError):
            DependencyGraph([_op("a"), _op("a")])


class TestGraphQueries:
    """Tests for levels and dependents."""

    def test_levels(self):
        """Levels group operations by longest dependency depth."""
        graph = DependencyGraph(
            [_op("g"), _op("a1", "g"), _op("a2", "g"), _op("list", "a1", "a2"), _op("solo")]
        )
        levels = [[d.id for d in level] for level in graph.levels()]
        assert levels == [["g", "solo"], ["a1", "a2"], ["list"]]

    def test_levels_use_longest_path(self):
        """An operation sits below its deepest dependency."""
        graph = DependencyGraph([_op("a"), _op("b", "a"), _op("c", "a", "b")])
        levels = [[d.id for d in level] for level in graph.levels()]
        assert levels == [["a"], ["b"], ["c"]]

    def test_dependents_are_transitive(self):
        """dependents_of follows the chain."""
        graph = DependencyGraph([_op("a"), _op("b", "a"), _op("c", "b"), _op("d")])
        assert graph.dependents_of("a") == {"b", "c"}
        assert graph.dependents_of("c") == set()
        assert graph.dependencies_of("c") == frozenset({"b"})
        assert len(graph) == 4
