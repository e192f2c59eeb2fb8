"""Logging setup for labctl: stdlib handlers rendered through structlog."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

from lab_common.config.env import parse_bool_env


def _resolve_level(value: str | int | None, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    if value is None:
        return logging.INFO
    if isinstance(value, int):
        return value
    if value.isdigit():
        return int(value)
    return logging._nameToLevel.get(value.upper(), logging.INFO)


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _build_formatter(json_output: bool) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[*_pre_chain(), structlog.stdlib.ExtraAdder()],
    )


def _install_structlog() -> None:
    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(
    *,
    level: str | int | None = None,
    debug: bool = False,
    log_file: str | None = None,
    json: bool | None = None,
    force: bool = False,
) -> None:
    """Route stdlib and structlog records to stderr (and optionally a file).

    Explicit arguments win over ``LAB_LOG_LEVEL``, ``LAB_LOG_JSON`` and
    ``LAB_LOG_FILE``. Existing root handlers are kept unless ``force``.
    """
    json_output = parse_bool_env(os.environ.get("LAB_LOG_JSON")) if json is None else json
    log_file = os.environ.get("LAB_LOG_FILE") if log_file is None else log_file

    root = logging.getLogger()
    if root.handlers and not force:
        _install_structlog()
        return

    formatter = _build_formatter(bool(json_output))
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    if force:
        root.handlers.clear()
    root.setLevel(_resolve_level(level or os.environ.get("LAB_LOG_LEVEL"), debug))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _install_structlog()


@contextmanager
def run_log(path: Path) -> Iterator[Path]:
    """Mirror every record to ``path`` (JSON lines) while the block runs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(_build_formatter(True))
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        yield path
    finally:
        root.removeHandler(handler)
        handler.close()


def phase_logger(name: str, phase: str) -> logging.LoggerAdapter:
    """Logger adapter that tags records with the deployment stage."""
    return logging.LoggerAdapter(logging.getLogger(name), {"lab_phase": phase})
