"""Config module exports."""

from ctxcompiler.config.loader import load_config
from ctxcompiler.config.models import (
    CtxCompilerConfig,
    LimitsConfig,
    LoggingConfig,
    OutputConfig,
    ResolutionConfig,
    ScanConfig,
    ScopeConfig,
    TraversalConfig,
    WeightsConfig,
)

__all__ = [
    "load_config",
    "CtxCompilerConfig",
    "LoggingConfig",
    "ScanConfig",
    "ScopeConfig",
    "LimitsConfig",
    "TraversalConfig",
    "WeightsConfig",
    "ResolutionConfig",
    "OutputConfig",
]
