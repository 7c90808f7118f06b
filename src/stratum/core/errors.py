"""
Error taxonomy and CLI error handling for Stratum.

Structural errors (cycles, unknown dependencies, bad handle states) are raised
before any provider call. Provider errors are raised only after teardown has
run, with the run report attached.

Exit Codes:
- 0: Success
- 1: Run cancelled (teardown completed)
- 10: Configuration error
- 11: Provider error (external service failure)
- 12: Validation error (cycle, unknown dependency, invalid state)
- 13: Partial teardown (resources left behind)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Callable, Iterable, TypeVar

import structlog

if TYPE_CHECKING:
    from stratum.orchestration.results import RunReport
    from stratum.resources.models import ResourceHandle

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CANCELLED = 1
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    PARTIAL_TEARDOWN = 13
    UNKNOWN_ERROR = 127


class StratumError(Exception):
    """Carries an exit code, structured details and, after a run, its report."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.report: RunReport | None = None


class ConfigurationError(StratumError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(StratumError):
    """Raised for structural problems in a descriptor set."""

    exit_code = ExitCode.VALIDATION_ERROR


class CycleError(ValidationError):
    """Raised when descriptor dependencies form a cycle."""

    def __init__(self, ids: Iterable[str]):
        self.ids = sorted(ids)
        super().__init__(
            f"Dependency cycle between operations: {', '.join(self.ids)}",
            {"operation_ids": self.ids},
        )


class UnknownDependencyError(ValidationError):
    """Raised when depends_on references an id absent from the descriptor set."""

    def __init__(self, operation_id: str, missing: str):
        self.operation_id = operation_id
        self.missing = missing
        super().__init__(
            f"Operation '{operation_id}' depends on unknown operation '{missing}'",
            {"operation_id": operation_id, "missing": missing},
        )


class InvalidStateError(ValidationError):
    """Raised when a handle is not in a state that permits the requested step."""


class ProviderError(StratumError):
    """Raised when a provider adapter call fails."""

    exit_code = ExitCode.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        operation_id: str | None = None,
    ):
        super().__init__(message, details)
        self.operation_id = operation_id
        self.teardown_failures: list[ResourceHandle] = []

    def __str__(self) -> str:
        text = self.message
        if self.teardown_failures:
            keys = ", ".join(handle.key for handle in self.teardown_failures)
            text = f"{text} (teardown also failed for: {keys})"
        return text


class NotFoundError(ProviderError):
    """Raised by ProviderAdapter.get when the remote resource does not exist."""


class PartialTeardownError(StratumError):
    """Raised when one or more teardown deletes failed after an otherwise clean run."""

    exit_code = ExitCode.PARTIAL_TEARDOWN

    def __init__(self, handles: list[ResourceHandle]):
        self.handles = list(handles)
        keys = [handle.key for handle in self.handles]
        super().__init__(
            f"Teardown left {len(keys)} resource(s) behind: {', '.join(keys)}",
            {"handles": keys},
        )


CommandFunc = TypeVar("CommandFunc", bound=Callable[..., int])


def format_error_message(error: StratumError) -> str:
    """One-line rendering of ``error`` and its details."""
    if not error.details:
        return str(error)
    rendered = ", ".join(f"{key}={value}" for key, value in error.details.items())
    return f"{error} ({rendered})"


def main_with_error_handling(*, debug: bool = False) -> Callable[[CommandFunc], CommandFunc]:
    """
    Turn exceptions escaping a CLI command into exit codes.

    StratumError subclasses map to their ``exit_code`` and are echoed to
    stderr; a run report attached to the error is summarised in the log.
    KeyboardInterrupt maps to 130. Anything else is logged with its
    traceback and maps to ``ExitCode.UNKNOWN_ERROR``.

    Args:
        debug: Print tracebacks for StratumError too
    """

    def decorator(command: CommandFunc) -> CommandFunc:
        @functools.wraps(command)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return command(*args, **kwargs)
            except StratumError as e:
                fields: dict[str, Any] = {"error_type": type(e).__name__}
                if e.report is not None:
                    fields.update(e.report.counts())
                logger.error("command_failed", reason=e.message, exit_code=int(e.exit_code), **fields)
                print(f"Error: {format_error_message(e)}", file=sys.stderr)
                if debug:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                logger.warning("command_interrupted")
                return 130
            except Exception:
                logger.exception("command_crashed", exit_code=int(ExitCode.UNKNOWN_ERROR))
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator
