"""Tests for resources/models.py."""

import pytest
from stratum.core.errors import InvalidStateError
from stratum.resources.models import (
    OperationDescriptor,
    OperationKind,
    ResourceHandle,
    ResourceState,
    create_or_update,
    delete,
    list_resources,
)


class TestResourceHandle:
    """Tests for ResourceHandle identity and transitions."""

    def test_key_unscoped(self):
        """Unscoped handles are keyed by kind and name."""
        handle = ResourceHandle("resource_group", "rg1")
        assert handle.key == "resource_group/rg1"

    def test_key_scoped(self):
        """Scoped handles prefix the parent key."""
        handle = ResourceHandle("storage_account", "sa1", scope="resource_group/rg1")
        assert handle.key == "resource_group/rg1/storage_account/sa1"

    def test_defaults(self):
        """New handles are pending with no remote id."""
        handle = ResourceHandle("resource_group", "rg1")
        assert handle.state is ResourceState.PENDING
        assert handle.remote_id is None
        assert not handle.is_live

    def test_created_then_updated_repeatedly(self):
        """Created may move to Updated any number of times."""
        handle = ResourceHandle("resource_group", "rg1")
        handle.transition(ResourceState.CREATED)
        handle.transition(ResourceState.UPDATED)
        handle.transition(ResourceState.UPDATED)
        assert handle.state is ResourceState.UPDATED
        assert handle.is_live

    def test_deleted_is_terminal(self):
        """No transition leaves Deleted."""
        handle = ResourceHandle("resource_group", "rg1")
        handle.transition(ResourceState.CREATED)
        handle.transition(ResourceState.DELETED)
        for target in ResourceState:
            assert not handle.can_transition(target)
        with pytest.raises(InvalidStateError):
            handle.transition(ResourceState.CREATED)

    def test_failed_is_terminal(self):
        """No transition leaves Failed."""
        handle = ResourceHandle("resource_group", "rg1")
        handle.transition(ResourceState.FAILED)
        with pytest.raises(InvalidStateError):
            handle.transition(ResourceState.CREATED)

    def test_pending_cannot_be_updated(self):
        """Updated requires a prior Created."""
        handle = ResourceHandle("resource_group", "rg1")
        assert not handle.can_transition(ResourceState.UPDATED)

    def test_pending_can_be_deleted(self):
        """Explicit deletes of pre-existing resources go straight to Deleted."""
        handle = ResourceHandle("resource_group", "rg1")
        handle.transition(ResourceState.DELETED)
        assert handle.state is ResourceState.DELETED

    def test_observed_is_detached_copy(self):
        """observed() copies the handle and applies changes."""
        handle = ResourceHandle("resource_group", "rg1", properties={"location": "westus"})
        copy = handle.observed(remote_id="/rg/rg1", state=ResourceState.CREATED)

        assert copy is not handle
        assert copy.remote_id == "/rg/rg1"
        assert handle.remote_id is None
        copy.properties["location"] = "eastus"
        assert handle.properties["location"] == "westus"

    def test_handles_compare_by_identity(self):
        """Two handles with the same key are distinct objects."""
        assert ResourceHandle("resource_group", "rg1") != ResourceHandle("resource_group", "rg1")


class TestOperationDescriptor:
    """Tests for OperationDescriptor construction."""

    def test_depends_on_is_frozenset(self):
        """Iterables passed as depends_on are frozen."""
        handle = ResourceHandle("resource_group", "rg1")
        descriptor = OperationDescriptor("op", handle, OperationKind.DELETE, depends_on=["a", "b"])
        assert descriptor.depends_on == frozenset({"a", "b"})

    def test_requires_id(self):
        """Empty ids are rejected."""
        with pytest.raises(ValueError):
            OperationDescriptor("", ResourceHandle("resource_group", "rg1"), OperationKind.DELETE)

    def test_helpers_set_kind(self):
        """Helper constructors pick the operation kind."""
        handle = ResourceHandle("resource_group", "rg1")
        assert create_or_update("c", handle, {}).kind is OperationKind.CREATE_OR_UPDATE
        assert delete("d", handle).kind is OperationKind.DELETE
        assert list_resources("l", handle).kind is OperationKind.LIST

    def test_descriptor_is_read_only(self):
        """Descriptors are frozen."""
        descriptor = delete("d", ResourceHandle("resource_group", "rg1"))
        with pytest.raises(AttributeError):
            descriptor.id = "other"  # type: ignore[misc]
