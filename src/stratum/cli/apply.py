"""
CLI command for executing a plan and tearing down what it created.
"""

import json
import signal
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import structlog
from rich.markup import escape

from stratum.cli.providers import build_provider, close_provider
from stratum.cli.ux import console, header, outcome_marker, warning
from stratum.config.settings import get_settings
from stratum.core.errors import ExitCode, StratumError, main_with_error_handling
from stratum.logging import run_context
from stratum.orchestration.results import Outcome, RunReport
from stratum.orchestration.sequencer import CancellationToken, Sequencer
from stratum.plans.loader import load_plan

logger = structlog.get_logger()


def print_report_summary(plan_name: str, report: RunReport, verbose: bool = False) -> None:
    """Print run report with rich formatting."""
    header(f"Run: {plan_name}")

    for entry in report.execution_entries:
        line = f"  {outcome_marker(entry.outcome)} {entry.operation_id:<24} {entry.resource}"
        if entry.error and (verbose or entry.outcome is Outcome.FAILED):
            line += f" [dim]({escape(entry.error)})[/dim]"
        console.print(line)
        for handle in report.observations.get(entry.operation_id, []):
            console.print(f"      [muted]└[/muted] {handle.remote_id or handle.key}")

    if report.teardown_entries:
        console.print()
        console.print("[bold]Teardown:[/bold]")
        for entry in report.teardown_entries:
            line = f"  {outcome_marker(entry.outcome)} {entry.resource}"
            if entry.error:
                line += f" [dim]({escape(entry.error)})[/dim]"
            console.print(line)

    console.print()
    counts = report.counts()
    summary = (
        f"{counts['succeeded']} succeeded, {counts['failed']} failed, "
        f"{counts['skipped']} skipped, {counts['rolled_back']} rolled back "
        f"in {report.duration_seconds:.1f}s"
    )
    if report.cancelled:
        console.print(f"[warning]Cancelled:[/warning] {summary}")
    elif report.success:
        console.print(f"[outcome.succeeded]Completed:[/outcome.succeeded] {summary}")
    else:
        console.print(f"[error]Failed:[/error] {summary}")
    console.print()


def print_report_json(plan_name: str, report: RunReport) -> None:
    output = {"plan": plan_name, **report.to_dict()}
    print(json.dumps(output, indent=2))


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Route the first SIGINT to ``token`` so an interrupted run still tears down.

    The previous handler is put back as soon as that first signal arrives, so
    a second Ctrl-C interrupts teardown itself.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):  # noqa: ANN001
        signal.signal(signal.SIGINT, restore)
        warning("Interrupt received; finishing teardown (Ctrl-C again to force exit)...")
        token.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    restore = previous if previous is not None else signal.default_int_handler
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, restore)


@main_with_error_handling()
def apply_command(
    plan_file: str,
    variables: Optional[Dict[str, str]] = None,
    provider: Optional[str] = None,
    max_workers: Optional[int] = None,
    output_format: str = "text",
    verbose: bool = False,
) -> int:
    """
    Execute a plan through a provider, then tear down everything it created.

    Args:
        plan_file: Path to plan YAML file
        variables: Overrides for plan variables
        provider: Provider name (defaults to STRATUM_DEFAULT_PROVIDER)
        max_workers: Concurrent operations per dependency level
        output_format: Output format (text, json)
        verbose: Show skip reasons and other details

    Returns:
        Exit code (0 for success, 1 if cancelled)
    """
    settings = get_settings()
    plan = load_plan(plan_file, variables)
    provider_name = provider or settings.default_provider

    adapter = build_provider(provider_name)
    sequencer = Sequencer(adapter, max_workers=max_workers or settings.max_workers)
    token = CancellationToken()

    def emit(report: RunReport) -> None:
        if output_format == "json":
            print_report_json(plan.name, report)
        else:
            print_report_summary(plan.name, report, verbose=verbose)

    try:
        with run_context(plan=plan.name, provider=provider_name), cancel_on_interrupt(token):
            logger.info("apply_started", operations=len(plan.descriptors))
            report = sequencer.execute(plan.descriptors, token)
    except StratumError as exc:
        if exc.report is not None:
            emit(exc.report)
        raise
    finally:
        close_provider(adapter)

    emit(report)
    return ExitCode.CANCELLED if report.cancelled else ExitCode.SUCCESS
