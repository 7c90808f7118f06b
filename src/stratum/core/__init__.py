"""Core modules for Stratum - error taxonomy and exit codes."""

from stratum.core.errors import (
    ConfigurationError,
    CycleError,
    ExitCode,
    InvalidStateError,
    NotFoundError,
    PartialTeardownError,
    ProviderError,
    StratumError,
    UnknownDependencyError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "StratumError",
    "ConfigurationError",
    "ValidationError",
    "CycleError",
    "UnknownDependencyError",
    "InvalidStateError",
    "ProviderError",
    "NotFoundError",
    "PartialTeardownError",
    "main_with_error_handling",
    "format_error_message",
]
