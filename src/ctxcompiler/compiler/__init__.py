"""Compilation pipeline exports."""

from ctxcompiler.compiler.ops import (
    DOCUMENTS,
    CompileResult,
    Compiler,
    SemanticModel,
)

__all__ = [
    "DOCUMENTS",
    "CompileResult",
    "Compiler",
    "SemanticModel",
]
