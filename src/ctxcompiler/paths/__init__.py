"""Execution path reconstruction."""

from ctxcompiler.paths.reconstructor import (
    TRUNCATED_CYCLE,
    TRUNCATED_DEPTH,
    ExecutionPath,
    PathNode,
    PathReconstructor,
    paths_document,
)

__all__ = [
    "ExecutionPath",
    "PathNode",
    "PathReconstructor",
    "paths_document",
    "TRUNCATED_CYCLE",
    "TRUNCATED_DEPTH",
]
