"""Core module exports."""

from ctxcompiler.core.cancel import CancellationToken
from ctxcompiler.core.errors import (
    CompilationCancelled,
    ConfigError,
    CtxCompilerError,
    ErrorCode,
    FactCollectionError,
    IntegrityViolation,
    InternalError,
    ResourceLimitExceeded,
)
from ctxcompiler.core.logging import (
    bind_phase,
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from ctxcompiler.core.progress import status, task
from ctxcompiler.core.warnings import WarningCollector

__all__ = [
    # Errors
    "CtxCompilerError",
    "ErrorCode",
    "ConfigError",
    "FactCollectionError",
    "IntegrityViolation",
    "ResourceLimitExceeded",
    "CompilationCancelled",
    "InternalError",
    # Logging
    "bind_phase",
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "status",
    "task",
    # Run control
    "CancellationToken",
    "WarningCollector",
]
