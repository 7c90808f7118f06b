"""
CLI command for previewing a plan's execution order.
"""

import json
from typing import Any, Dict, List, Optional

from stratum.cli.providers import build_provider, close_provider
from stratum.cli.ux import header, info, print_table
from stratum.core.errors import NotFoundError, main_with_error_handling
from stratum.orchestration.graph import DependencyGraph
from stratum.plans.loader import Plan, load_plan
from stratum.resources.models import OperationKind


def describe_plan(plan: Plan, probe: Optional[Any] = None) -> List[Dict[str, Any]]:
    """Return one row per operation in execution order.

    With ``probe`` (a provider adapter), create/update operations are checked
    against remote state so the preview can tell a create from an update.
    """
    steps = []
    seen: set[int] = set()
    for position, descriptor in enumerate(DependencyGraph(plan.descriptors).order(), 1):
        target = descriptor.target
        action = descriptor.kind.value
        if descriptor.kind is OperationKind.CREATE_OR_UPDATE:
            if id(target) in seen:
                action = "update"
            elif probe is not None:
                action = "update" if _exists(probe, target) else "create"
            else:
                action = "create"
            seen.add(id(target))
        steps.append(
            {
                "step": position,
                "id": descriptor.id,
                "action": action,
                "resource": target.key,
                "depends_on": sorted(descriptor.depends_on),
            }
        )
    return steps


def _exists(probe: Any, target: Any) -> bool:
    try:
        probe.get(target)
    except NotFoundError:
        return False
    return True


@main_with_error_handling()
def plan_command(
    plan_file: str,
    variables: Optional[Dict[str, str]] = None,
    provider: Optional[str] = None,
    output_format: str = "text",
) -> int:
    """
    Print the order a plan would execute in, without running it.

    Args:
        plan_file: Path to plan YAML file
        variables: Overrides for plan variables
        provider: Provider to probe for existing resources (no probing if None)
        output_format: Output format (text, json)

    Returns:
        Exit code (0 for success)
    """
    plan = load_plan(plan_file, variables)

    adapter = build_provider(provider) if provider else None
    try:
        steps = describe_plan(plan, probe=adapter)
    finally:
        close_provider(adapter)

    if output_format == "json":
        print(json.dumps({"plan": plan.name, "steps": steps}, indent=2))
        return 0

    header(f"Plan: {plan.name}")
    print_table(
        title="",
        columns=["#", "Operation", "Action", "Resource", "Depends on"],
        rows=[
            [
                str(step["step"]),
                step["id"],
                step["action"],
                step["resource"],
                ", ".join(step["depends_on"]) or "-",
            ]
            for step in steps
        ],
    )
    info(f"{len(steps)} operations; resources created by the run are torn down afterwards")
    return 0
