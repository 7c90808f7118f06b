"""Command-line interface for Stratum."""

from stratum.cli.main import build_parser, main

__all__ = ["build_parser", "main"]
