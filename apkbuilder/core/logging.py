"""Structured logging via structlog.

Configures structlog once at startup. Library modules keep using
`logging.getLogger(__name__)`; the stdlib bridge routes their records
through the same renderer.

Renderer selection:
  debug=True:  `ConsoleRenderer` with colours for local use.
  debug=False: `JSONRenderer` for machine-parseable logs.

File output:
  When `log_dir` is given, `combined.log` receives every record and
  `error.log` only ERROR and above.

ContextVar injection:
  `build_id` is bound by the orchestrator for the duration of a build, so
  every log line emitted while that build runs carries it.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

import structlog

_build_id_var: ContextVar[str] = ContextVar("build_id", default="")

_HANDLER_MARK = "_apkbuilder_handler"


def get_build_id() -> str:
    """Return the current build ID, or empty string outside a build."""
    return _build_id_var.get()


def bind_build_id(build_id: str):
    """Bind a build ID for the current context. Returns the reset token."""
    return _build_id_var.set(build_id)


def reset_build_id(token) -> None:
    _build_id_var.reset(token)


def _inject_context_vars(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: inject build_id from the ContextVar."""
    build_id = get_build_id()
    if build_id:
        event_dict["build_id"] = build_id
    return event_dict


def configure_logging(
    debug: bool = True,
    level: str = "INFO",
    log_dir: Optional[Path] = None,
) -> None:
    """Configure structlog and the stdlib bridge.

    Calling multiple times is safe: handlers installed by a previous call
    are replaced rather than duplicated.
    """
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    file_formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        combined = logging.FileHandler(log_dir / "combined.log", encoding="utf-8")
        combined.setFormatter(file_formatter)
        errors = logging.FileHandler(log_dir / "error.log", encoding="utf-8")
        errors.setLevel(logging.ERROR)
        errors.setFormatter(file_formatter)
        handlers.extend([combined, errors])

    for handler in handlers:
        setattr(handler, _HANDLER_MARK, True)
        root.addHandler(handler)
    root.setLevel(numeric_level)
