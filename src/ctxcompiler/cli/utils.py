"""CLI utilities."""

from pathlib import Path

import click

from ctxcompiler.config.constants import CONFIG_DIR
from ctxcompiler.core.errors import CtxCompilerError
from ctxcompiler.config.models import LoggingConfig
from ctxcompiler.core.logging import CONSOLE_DESTINATIONS, get_log_file_path


class CompileFailed(click.ClickException):
    """Fatal ctxcompiler error surfaced to the shell.

    The exit status is the error code's range digit (2 config, 4 integrity,
    6 cancelled, 9 internal), so scripts can tell failures apart.
    """

    def __init__(self, error: CtxCompilerError) -> None:
        log_file = get_log_file_path()
        hint = f". See {log_file} for details." if log_file is not None else ""
        super().__init__(f"{error}{hint}")
        self.error = error
        self.exit_code = int(error.code) // 1000


def find_repo_root(start_path: Path | None = None) -> Path:
    """Find the repository root from the given path.

    Walks up the directory tree looking for a .ctxcompiler or .git directory.
    If start_path is None, uses the current working directory. When neither
    marker is found the start path itself is the root.

    Args:
        start_path: Starting directory to search from

    Returns:
        Path to repository root
    """
    if start_path is None:
        start_path = Path.cwd()

    start = start_path.resolve()
    current = start

    while True:
        if (current / CONFIG_DIR).is_dir() or (current / ".git").exists():
            return current
        if current == current.parent:
            return start
        current = current.parent


def apply_log_flags(config: LoggingConfig, *, verbose: bool, json_logs: bool) -> LoggingConfig:
    """Configured logging with ``--verbose``/``--json-logs`` applied.

    The flags only touch the root level and console outputs; file outputs
    keep their configured format and level.
    """
    if not (verbose or json_logs):
        return config
    console_update: dict[str, str] = {}
    if verbose:
        console_update["level"] = "DEBUG"
    if json_logs:
        console_update["format"] = "json"
    outputs = [
        o.model_copy(update=console_update) if o.destination in CONSOLE_DESTINATIONS else o
        for o in config.outputs
    ]
    return config.model_copy(
        update={"level": "DEBUG" if verbose else config.level, "outputs": outputs}
    )
