"""Structured logging for compilation runs.

Every event of one ``ctxc compile`` carries the run id, and events emitted
inside a pipeline phase carry the phase name, so a JSON log can be grouped
by run and by phase without parsing messages.

Outputs are configured per destination (stderr, stdout or an absolute file
path), each with its own format and level. Console outputs go quiet while a
phase spinner is on screen; file outputs keep every record.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from ctxcompiler.config.models import LoggingConfig, LogOutputConfig

CONSOLE_DESTINATIONS = ("stderr", "stdout")

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
_log_file_path: Path | None = None


def get_run_id() -> str | None:
    return _run_id.get()


def set_run_id(run_id: str | None = None) -> str:
    """Start a run: use the given id or generate a 12-hex-digit one."""
    rid = run_id or uuid4().hex[:12]
    _run_id.set(rid)
    return rid


def clear_run_id() -> None:
    _run_id.set(None)


def get_log_file_path() -> Path | None:
    """First file destination of the active configuration, for CLI error hints."""
    return _log_file_path


@contextmanager
def bind_phase(phase: str) -> Iterator[None]:
    """Tag every event logged inside the block with ``phase``."""
    with structlog.contextvars.bound_contextvars(phase=phase):
        yield


def _add_run_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if rid := get_run_id():
        event_dict.setdefault("run_id", rid)
    return event_dict


class ConsoleSuppressingFilter(logging.Filter):
    """Drops console records while a phase spinner owns the terminal."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from ctxcompiler.core.progress import is_console_suppressed

        return not is_console_suppressed()


def _level(name: str | None, fallback: int) -> int:
    if not name:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_run_id,  # type: ignore[list-item]
    ]


def _build_handler(
    output: LogOutputConfig,
    shared: list[structlog.types.Processor],
    default_level: int,
) -> logging.Handler:
    handler: logging.Handler
    is_console = output.destination in CONSOLE_DESTINATIONS
    if is_console:
        stream = sys.stdout if output.destination == "stdout" else sys.stderr
        handler = logging.StreamHandler(stream)
        handler.addFilter(ConsoleSuppressingFilter())
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")

    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        colors = is_console and hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
        renderer = structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared)
    )
    handler.setLevel(_level(output.level, default_level))
    return handler


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog through stdlib handlers built from ``config``.

    Without a config a single stderr output is set up from ``json_format``
    and ``level``. Safe to call again; handlers are replaced, not added.
    """
    global _log_file_path
    from ctxcompiler.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )

    default_level = _level(config.level, logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(default_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in root.handlers:
        old.close()
    root.handlers.clear()
    root.setLevel(default_level)

    _log_file_path = next(
        (Path(o.destination) for o in config.outputs if o.destination not in CONSOLE_DESTINATIONS),
        None,
    )
    for output in config.outputs:
        root.addHandler(_build_handler(output, shared, default_level))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
