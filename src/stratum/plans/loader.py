"""
Plan file parser.

Turns a YAML plan into operation descriptors that share handles.

Expected structure:
    name: manage-resources
    variables:
      group: rgRSMR
    operations:
      - id: group
        kind: resource_group
        name: ${group}
        payload:
          location: westus
      - id: account1
        kind: storage_account
        name: rn1
        scope: group            # operation id (or a literal scope key)
        payload: {...}
      - id: account1-update
        resource: account1      # same handle as operation 'account1'
        payload: {...}
      - id: list-accounts
        action: list
        kind: storage_account
        scope: group
      - id: delete-account1
        action: delete
        resource: account1
        depends_on: [list-accounts]

Each operation depends implicitly on the previous operation that touches the
same resource, and on the operation that declared its scope.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from stratum.core.errors import ConfigurationError
from stratum.resources.models import OperationDescriptor, OperationKind, ResourceHandle

_VARIABLE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_\-]*)\}")

_ACTIONS = {kind.value: kind for kind in OperationKind}


@dataclass
class Plan:
    """Parsed plan: descriptors plus the handles they share."""

    name: str
    descriptors: List[OperationDescriptor] = field(default_factory=list)
    handles: Dict[str, ResourceHandle] = field(default_factory=dict)
    source: Optional[Path] = None

    @property
    def resources(self) -> List[ResourceHandle]:
        """Handles touched by create/update/delete operations."""
        seen: Dict[str, ResourceHandle] = {}
        for descriptor in self.descriptors:
            if descriptor.kind is not OperationKind.LIST:
                seen.setdefault(descriptor.target.key, descriptor.target)
        return list(seen.values())


def substitute(value: Any, variables: Dict[str, str]) -> Any:
    """Recursively replace ``${var}`` in strings; unknown variables are left as is."""
    if isinstance(value, str):
        return _VARIABLE.sub(lambda m: variables.get(m.group(1), m.group(0)), value)
    if isinstance(value, dict):
        return {k: substitute(v, variables) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute(item, variables) for item in value]
    return value


def load_plan(file_path: str | Path, variables: Dict[str, str] | None = None) -> Plan:
    """
    Load a plan file.

    Args:
        file_path: Path to plan YAML file
        variables: Overrides for the plan's ``variables`` block

    Raises:
        ConfigurationError: If the file is missing, not YAML, or malformed
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise ConfigurationError(f"Plan file not found: {file_path}")

    try:
        with open(file_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e

    plan = parse_plan(data, variables=variables, default_name=file_path.stem)
    plan.source = file_path
    return plan


def parse_plan(
    data: Any,
    *,
    variables: Dict[str, str] | None = None,
    default_name: str = "plan",
) -> Plan:
    if not isinstance(data, dict):
        raise ConfigurationError("Plan must be a mapping with an 'operations' list")

    merged = {str(k): str(v) for k, v in (data.get("variables") or {}).items()}
    merged.update(variables or {})
    data = substitute(data, merged)

    operations = data.get("operations")
    if not isinstance(operations, list) or not operations:
        raise ConfigurationError("Plan needs a non-empty 'operations' list")

    return _PlanBuilder(str(data.get("name") or default_name)).build(operations)


class _PlanBuilder:
    def __init__(self, name: str) -> None:
        self._plan = Plan(name=name)
        self._target_of: Dict[str, ResourceHandle] = {}
        self._last_touch: Dict[int, str] = {}
        self._first_touch: Dict[int, str] = {}

    def build(self, operations: List[Any]) -> Plan:
        for index, raw in enumerate(operations):
            if not isinstance(raw, dict):
                raise ConfigurationError(f"Operation #{index + 1} must be a mapping")
            self._add(raw, index)
        return self._plan

    def _add(self, raw: Dict[str, Any], index: int) -> None:
        op_id = str(raw.get("id") or "")
        if not op_id:
            raise ConfigurationError(f"Operation #{index + 1} is missing an 'id'")
        if op_id in self._target_of:
            raise ConfigurationError(f"Duplicate operation id '{op_id}'")

        action = str(raw.get("action", OperationKind.CREATE_OR_UPDATE.value))
        kind = _ACTIONS.get(action)
        if kind is None:
            raise ConfigurationError(
                f"Operation '{op_id}' has unknown action '{action}'",
                {"allowed": sorted(_ACTIONS)},
            )

        depends_on = {str(dep) for dep in raw.get("depends_on") or []}
        scope, scope_op = self._resolve_scope(raw.get("scope"))
        if scope_op:
            depends_on.add(scope_op)

        if kind is OperationKind.LIST:
            target = self._list_target(op_id, raw, scope)
        else:
            target = self._handle(op_id, raw, scope)
            previous = self._last_touch.get(id(target))
            if previous:
                depends_on.add(previous)
            self._last_touch[id(target)] = op_id
            self._first_touch.setdefault(id(target), op_id)

        self._target_of[op_id] = target
        self._plan.descriptors.append(
            OperationDescriptor(
                id=op_id,
                target=target,
                kind=kind,
                payload=raw.get("payload"),
                depends_on=frozenset(depends_on),
            )
        )

    def _resolve_scope(self, value: Any) -> tuple[str | None, str | None]:
        if value is None:
            return None, None
        value = str(value)
        parent = self._target_of.get(value)
        if parent is None:
            return value, None
        return parent.key, self._first_touch.get(id(parent), value)

    def _handle(self, op_id: str, raw: Dict[str, Any], scope: str | None) -> ResourceHandle:
        reference = raw.get("resource")
        if reference is not None:
            handle = self._target_of.get(str(reference))
            if handle is None:
                raise ConfigurationError(
                    f"Operation '{op_id}' references unknown resource '{reference}'"
                )
            return handle

        kind, name = raw.get("kind"), raw.get("name")
        if not kind or not name:
            raise ConfigurationError(f"Operation '{op_id}' needs 'kind' and 'name' (or 'resource')")
        handle = ResourceHandle(kind=str(kind), name=str(name), scope=scope)
        return self._plan.handles.setdefault(handle.key, handle)

    def _list_target(self, op_id: str, raw: Dict[str, Any], scope: str | None) -> ResourceHandle:
        kind = raw.get("kind")
        if not kind:
            raise ConfigurationError(f"List operation '{op_id}' needs a 'kind'")
        return ResourceHandle(kind=str(kind), name=str(raw.get("name") or "*"), scope=scope)
