"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CTXC__SECTION__KEY)
3. Project YAML (.ctxcompiler/config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    CTXC__<SECTION>__<KEY>=<VALUE>

Examples:
    CTXC__LOGGING__LEVEL=DEBUG
    CTXC__SCAN__MAX_WORKERS=8
    CTXC__TRAVERSAL__MAX_DEPTH=12
    CTXC__RESOLUTION__CONFIDENCE_POLICY=geometric

The loaded configuration is frozen and passed explicitly to every phase.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ctxcompiler.config.constants import (
    DEFAULT_OUTPUT_DIR,
    FACTS_DIR,
    MAX_TRAVERSAL_DEPTH,
    ROOT_SCOPE,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
ConfidencePolicyName = Literal["reciprocal", "geometric"]


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class LogOutputConfig(_Section):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(_Section):
    """Logging configuration.

    Env vars:
        CTXC__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every resolution decision.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ScanConfig(_Section):
    """Where facts are collected from.

    Env vars:
        CTXC__SCAN__PATHS: JSON list of repo-relative directories to walk
        CTXC__SCAN__MAX_WORKERS: Parallel collector workers
        CTXC__SCAN__EXCLUDE_DIRS: JSON list of extra directory names to prune
    """

    paths: list[str] = Field(
        default_factory=lambda: ["app/code", "app/design"],
        description="Repo-relative directories walked for module roots and files. "
        "Missing directories are skipped.",
    )
    module_markers: list[str] = Field(
        default_factory=lambda: ["registration.php", "etc/module.xml"],
        description="Relative paths whose presence marks a directory as a module root.",
    )
    fact_paths: list[str] = Field(
        default_factory=lambda: [FACTS_DIR],
        description="Repo-relative directories holding YAML/JSON fact documents.",
    )
    exclude_dirs: list[str] = Field(
        default_factory=list,
        description="Extra directory names pruned during the walk, on top of the defaults.",
    )
    max_workers: int = Field(
        default=4,
        description="Collector threads. Results never depend on this value.",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v

    @field_validator("module_markers")
    @classmethod
    def validate_markers(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one module marker is required")
        return v


class ScopeConfig(_Section):
    """Scope hierarchy as a child -> parent mapping rooted at ``root``.

    Env vars:
        CTXC__SCOPES__PARENTS: JSON object, e.g. '{"checkout": "frontend"}'
    """

    root: str = ROOT_SCOPE
    parents: dict[str, str] = Field(
        default_factory=lambda: {
            "frontend": ROOT_SCOPE,
            "adminhtml": ROOT_SCOPE,
            "webapi_rest": ROOT_SCOPE,
            "webapi_soap": ROOT_SCOPE,
            "graphql": ROOT_SCOPE,
            "crontab": ROOT_SCOPE,
        },
        description="Each scope's parent. Every chain must end at the root.",
    )

    @field_validator("parents")
    @classmethod
    def normalize_parents(cls, v: dict[str, str]) -> dict[str, str]:
        return {k.strip().lower(): p.strip().lower() for k, p in v.items()}

    def contradiction(self) -> str | None:
        """Describe why the mapping is not a single tree, or None if it is."""
        root = self.root.strip().lower()
        if root in self.parents:
            return f"root scope '{root}' must not have a parent"
        for child in sorted(self.parents):
            seen = [child]
            current = child
            while current != root:
                parent = self.parents.get(current)
                if parent is None:
                    return f"scope '{current}' is a second root (chain from '{child}')"
                if parent in seen:
                    return f"scope cycle: {' -> '.join([*seen, parent])}"
                seen.append(parent)
                current = parent
        return None


class LimitsConfig(_Section):
    """Resource ceilings. Exceeding one truncates deterministically and warns.

    Env vars:
        CTXC__LIMITS__MAX_EVIDENCE_PER_FACT: Evidence items kept per fact
        CTXC__LIMITS__MAX_REVERSE_INDEX_REFS_PER_KEY: Refs kept per index key
        CTXC__LIMITS__MAX_REVERSE_INDEX_SIZE_MB: Serialized reverse index ceiling
    """

    max_evidence_per_fact: int = Field(
        default=5,
        description="Evidence items kept per fact after canonical sort.",
    )
    max_reverse_index_refs_per_key: int = Field(
        default=500,
        description="Refs kept per reverse-index key. Keys are never dropped.",
    )
    max_reverse_index_size_mb: float = Field(
        default=10.0,
        description="Serialized reverse_index.json ceiling. When exceeded the per-key "
        "ref cap is halved until the document fits.",
    )

    @field_validator("max_evidence_per_fact", "max_reverse_index_refs_per_key")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v


class TraversalConfig(_Section):
    """Execution path expansion.

    Env vars:
        CTXC__TRAVERSAL__MAX_DEPTH: Max subscriber hops from an entry point
    """

    max_depth: int = Field(default=8, description="Max expansion depth per path.")

    @field_validator("max_depth")
    @classmethod
    def validate_depth(cls, v: int) -> int:
        if not (1 <= v <= MAX_TRAVERSAL_DEPTH):
            raise ValueError(f"max_depth must be 1-{MAX_TRAVERSAL_DEPTH}, got {v}")
        return v


class WeightsConfig(_Section):
    """Per-fact-type weights used for reverse-index scores.

    Env vars:
        CTXC__WEIGHTS__INTERCEPTION: Weight of an interception reference
        CTXC__WEIGHTS__EXECUTION_PATH: Weight of an execution path reference
    """

    module: float = 0.5
    dependency: float = 0.7
    file: float = 0.5
    symbol: float = 0.8
    preference: float = 1.0
    interception: float = 1.2
    subscription: float = 1.1
    entry_point: float = 1.0
    dispatch: float = 0.9
    resolution: float = 1.0
    execution_path: float = 0.6

    def for_fact(self, fact_type: str) -> float:
        return float(getattr(self, fact_type, 1.0))


class ResolutionConfig(_Section):
    """Override resolution tuning.

    Env vars:
        CTXC__RESOLUTION__CONFIDENCE_POLICY: reciprocal or geometric
        CTXC__RESOLUTION__FANOUT_THRESHOLD: Subscribers before high_fanout is set
    """

    confidence_policy: ConfidencePolicyName = Field(
        default="reciprocal",
        description="Decay applied when several implementations compete for one key.",
    )
    fanout_threshold: int = Field(
        default=10,
        description="An event with more visible subscribers than this is flagged high_fanout.",
    )


class OutputConfig(_Section):
    """Output documents.

    Env vars:
        CTXC__OUTPUT__DIR: Output directory (repo-relative or absolute)
        CTXC__OUTPUT__VERIFY: Reload and byte-compare every document after writing
    """

    dir: str = DEFAULT_OUTPUT_DIR
    verify: bool = True


class CtxCompilerConfig(_Section):
    """Root configuration for ctxcompiler.

    All settings can be configured via:
    1. Environment variables: CTXC__SECTION__KEY
    2. The project YAML file (.ctxcompiler/config.yaml)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    scopes: ScopeConfig = Field(default_factory=ScopeConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    traversal: TraversalConfig = Field(default_factory=TraversalConfig)
    weights: WeightsConfig = Field(default_factory=WeightsConfig)
    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
