"""Tests for core/errors.py."""

import pytest
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
from stratum.orchestration.results import RunReport
from stratum.resources.models import ResourceHandle


class TestErrorHierarchy:
    """Tests for exception types and exit codes."""

    @pytest.mark.parametrize(
        "error, code",
        [
            (ConfigurationError("bad"), ExitCode.CONFIG_ERROR),
            (CycleError(["b", "a"]), ExitCode.VALIDATION_ERROR),
            (UnknownDependencyError("a", "b"), ExitCode.VALIDATION_ERROR),
            (InvalidStateError("bad"), ExitCode.VALIDATION_ERROR),
            (ProviderError("bad"), ExitCode.PROVIDER_ERROR),
            (NotFoundError("gone"), ExitCode.PROVIDER_ERROR),
            (PartialTeardownError([]), ExitCode.PARTIAL_TEARDOWN),
        ],
    )
    def test_exit_codes(self, error, code):
        """Each error type maps to its exit code."""
        assert error.exit_code == code
        assert isinstance(error, StratumError)

    def test_structural_errors_are_validation_errors(self):
        """Cycles, unknown ids and bad states share a base class."""
        for error in (CycleError(["a"]), UnknownDependencyError("a", "b"), InvalidStateError("x")):
            assert isinstance(error, ValidationError)

    def test_cycle_ids_sorted(self):
        """CycleError sorts the ids it names."""
        error = CycleError({"y", "x"})
        assert error.ids == ["x", "y"]
        assert "x, y" in str(error)

    def test_report_defaults_to_none(self):
        """Errors carry no report until the sequencer attaches one."""
        assert ProviderError("bad").report is None


class TestProviderError:
    """Tests for ProviderError details."""

    def test_operation_id(self):
        """The failing operation id is kept."""
        assert ProviderError("bad", operation_id="a2").operation_id == "a2"

    def test_teardown_failures_in_message(self):
        """Teardown failures are appended to the message."""
        error = ProviderError("create failed")
        error.teardown_failures = [ResourceHandle("resource_group", "G")]
        assert str(error) == "create failed (teardown also failed for: resource_group/G)"

    def test_partial_teardown_lists_keys(self):
        """PartialTeardownError names what was left behind."""
        error = PartialTeardownError([ResourceHandle("resource_group", "G")])
        assert error.details == {"handles": ["resource_group/G"]}
        assert "1 resource(s)" in str(error)


class TestMainWithErrorHandling:
    """Tests for the CLI error decorator."""

    def test_success_passthrough(self):
        """Return values pass through."""

        @main_with_error_handling()
        def command():
            return 0

        assert command() == 0

    def test_stratum_error_exit_code(self, capsys):
        """StratumError subclasses return their exit code and echo to stderr."""

        @main_with_error_handling()
        def command():
            raise ProviderError("boom", {"resource": "resource_group/G"})

        assert command() == ExitCode.PROVIDER_ERROR
        assert "Error: boom (resource=resource_group/G)" in capsys.readouterr().err

    def test_error_with_report(self):
        """Errors carrying a run report still map to their exit code."""

        @main_with_error_handling()
        def command():
            error = PartialTeardownError([ResourceHandle("resource_group", "G")])
            error.report = RunReport()
            raise error

        assert command() == ExitCode.PARTIAL_TEARDOWN

    def test_keyboard_interrupt(self):
        """KeyboardInterrupt returns 130."""

        @main_with_error_handling()
        def command():
            raise KeyboardInterrupt

        assert command() == 130

    def test_unexpected_error(self):
        """Anything else returns the unknown error code."""

        @main_with_error_handling()
        def command():
            raise RuntimeError("surprise")

        assert command() == ExitCode.UNKNOWN_ERROR


class TestFormatErrorMessage:
    """Tests for format_error_message."""

    def test_with_details(self):
        """Details are appended as key=value pairs."""
        error = ConfigurationError("Bad plan", {"file": "plan.yaml"})
        assert format_error_message(error) == "Bad plan (file=plan.yaml)"

    def test_without_details(self):
        """Plain messages are unchanged."""
        assert format_error_message(ConfigurationError("Bad plan")) == "Bad plan"
