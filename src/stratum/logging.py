"""
structlog setup for the CLI.

Library code only calls ``structlog.get_logger()``; the process entry point
decides rendering. Run-wide fields (plan, provider) travel in contextvars so
events logged on the calling thread pick them up without explicit binding.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import structlog


def configure_logging(level: int | str = logging.INFO, *, json: bool = True) -> None:
    """Route structlog through stdlib logging at ``level``."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=level, format="%(message)s")


@contextmanager
def run_context(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield
