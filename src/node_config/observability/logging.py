"""Structured logging setup: structlog rendering JSON lines or console text."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Final, TextIO

import structlog

_DEFAULT_LEVEL: Final[str] = "WARNING"


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for process-wide structlog output."""

    level: int | str = _DEFAULT_LEVEL
    json_output: bool = False
    stream: TextIO | None = None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog once for the process.

    Library modules only call ``structlog.get_logger``; entrypoints decide
    where and how events are rendered.
    """

    cfg = config if config is not None else LoggingConfig()
    level = _parse_log_level(cfg.level)
    renderer: structlog.types.Processor
    if cfg.json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True, ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=cfg.stream or sys.stderr),
        cache_logger_on_first_use=False,
    )


@contextmanager
def log_context(**fields: object) -> Iterator[None]:
    """Bind ``fields`` to every event logged inside the block."""

    with structlog.contextvars.bound_contextvars(**fields):
        yield


def reset_logging() -> None:
    """Restore structlog defaults."""

    structlog.reset_defaults()


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


__all__ = ["LoggingConfig", "log_context", "reset_logging", "setup_logging"]
