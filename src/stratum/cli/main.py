from __future__ import annotations

import argparse
from typing import Sequence

from stratum.config.settings import get_settings
from stratum.logging import configure_logging


def _parse_variables(values: list[str] | None, parser: argparse.ArgumentParser) -> dict[str, str]:
    variables: dict[str, str] = {}
    for value in values or []:
        key, sep, raw = value.partition("=")
        if not sep or not key:
            parser.error(f"--var expects KEY=VALUE, got '{value}'")
        variables[key] = raw
    return variables


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stratum", description="Stratum provisioning sequencer")
    parser.add_argument("--log-level", help="Log level (default: STRATUM_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    plan_parser = subparsers.add_parser("plan", help="Show the execution order of a plan file")
    plan_parser.add_argument("plan_file", help="Path to plan YAML file")
    plan_parser.add_argument("--var", action="append", help="Plan variable override (KEY=VALUE)")
    plan_parser.add_argument(
        "--provider", help="Probe this provider to tell creates from updates"
    )
    plan_parser.add_argument("--output", choices=["text", "json"], default="text",
                             help="Output format")

    apply_parser = subparsers.add_parser(
        "apply", help="Execute a plan file and tear down what it created"
    )
    apply_parser.add_argument("plan_file", help="Path to plan YAML file")
    apply_parser.add_argument("--var", action="append", help="Plan variable override (KEY=VALUE)")
    apply_parser.add_argument("--provider", help="Provider name (memory, arm)")
    apply_parser.add_argument("--max-workers", type=int,
                              help="Concurrent operations per dependency level")
    apply_parser.add_argument("--output", choices=["text", "json"], default="text",
                              help="Output format")
    apply_parser.add_argument("-v", "--verbose", action="store_true",
                              help="Show detailed outcomes")

    subparsers.add_parser("providers", help="List available providers")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level or get_settings().log_level)

    if args.command == "plan":
        from stratum.cli.plan import plan_command

        return plan_command(
            args.plan_file,
            variables=_parse_variables(args.var, parser),
            provider=args.provider,
            output_format=args.output,
        )

    if args.command == "apply":
        from stratum.cli.apply import apply_command

        return apply_command(
            args.plan_file,
            variables=_parse_variables(args.var, parser),
            provider=args.provider,
            max_workers=args.max_workers,
            output_format=args.output,
            verbose=args.verbose,
        )

    if args.command == "providers":
        from stratum.cli.providers import providers_command

        return providers_command()

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    raise SystemExit(main())
