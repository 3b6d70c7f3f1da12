"""structlog setup shared by the CLI and the receiver."""

from __future__ import annotations

import logging

import structlog

LOG_LEVELS = ("debug", "info", "warning", "error")


def configure_logging(level: str = "info", json_output: bool = False) -> None:
    """Configure structlog with a level filter.

    Args:
        level: One of debug, info, warning, error.
        json_output: Render events as JSON lines instead of console output.
    """
    if level.lower() not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
    )
