"""Symbol, file and reverse indexes."""

from ctxcompiler.index.builder import (
    REVERSE_MAPS,
    IndexBuilder,
    IndexSet,
    build_indexes,
    check_completeness,
)

__all__ = ["REVERSE_MAPS", "IndexBuilder", "IndexSet", "build_indexes", "check_completeness"]
