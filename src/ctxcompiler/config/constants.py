"""Configuration constants.

This module contains truly constant values that should NOT be user-configurable.
These are output-format constraints and implementation details.

For configurable values, see models.py (LimitsConfig, TraversalConfig, etc.).
"""

# =============================================================================
# Identity
# =============================================================================

UNASSIGNED_MODULE = "unassigned"
"""Module id of files outside every module root."""

ROOT_SCOPE = "global"
"""Default root of the scope hierarchy."""

# =============================================================================
# Locations
# =============================================================================

CONFIG_DIR = ".ctxcompiler"
"""Project directory holding config.yaml and fact documents."""

FACTS_DIR = ".ctxcompiler/facts"
"""Default directory of YAML/JSON fact documents."""

DEFAULT_OUTPUT_DIR = ".ai-context"
"""Default output directory, relative to the repository root."""

# =============================================================================
# Output format
# =============================================================================

SCHEMA_VERSION = "1.0.0"
"""Version of the emitted document layout, recorded in manifest.json."""

TOOL_NAME = "ctxcompiler"
TOOL_VERSION = "0.1.0"

MANIFEST_NAME = "manifest.json"

# =============================================================================
# Hard caps
# =============================================================================

MAX_TRAVERSAL_DEPTH = 64
"""Upper bound for traversal.max_depth."""

MIN_REVERSE_INDEX_REFS_PER_KEY = 1
"""Halving the per-key ref cap stops here."""
