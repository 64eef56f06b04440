"""Directory names pruned while walking scan paths.

Pruning applies to directories met during a walk. A scan path named
explicitly in configuration is always walked, even if its own name is
prunable.
"""

from __future__ import annotations

from collections.abc import Iterable

from ctxcompiler.config.constants import CONFIG_DIR, DEFAULT_OUTPUT_DIR

# Never source: version control and ctxcompiler's own state.
ALWAYS_PRUNED: frozenset[str] = frozenset(
    {".git", ".hg", ".svn", CONFIG_DIR, DEFAULT_OUTPUT_DIR}
)

# Generated code, deployed assets and vendored tooling.
DEFAULT_PRUNED: frozenset[str] = frozenset(
    {
        "generated",
        "var",
        "pub",
        "node_modules",
        "bower_components",
        "__pycache__",
        ".idea",
        ".vscode",
        ".cache",
        "dist",
        "build",
    }
)


def pruned_dirs(extra: Iterable[str] = ()) -> frozenset[str]:
    """Default pruning set plus configured ``scan.exclude_dirs``."""
    return ALWAYS_PRUNED | DEFAULT_PRUNED | {d.strip().strip("/") for d in extra if d.strip()}
