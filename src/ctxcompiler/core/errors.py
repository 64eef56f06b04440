"""ctxcompiler error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Fact collection
- 4xxx: Integrity
- 5xxx: Resource limits
- 6xxx: Run control
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_CONTRADICTION = 2003

    # Fact collection (3xxx)
    FACT_UNIT_FAILED = 3001
    FACT_DOCUMENT_INVALID = 3002

    # Integrity (4xxx)
    INTEGRITY_MODULE_CYCLE = 4001
    INTEGRITY_INDEX_INCOMPLETE = 4002
    INTEGRITY_DETERMINISM_MISMATCH = 4003

    # Resource limits (5xxx)
    RESOURCE_EVIDENCE_CAP = 5001
    RESOURCE_INDEX_CEILING = 5002

    # Run control (6xxx)
    RUN_CANCELLED = 6001

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_PATH_OUTSIDE_ROOT = 9002


@dataclass(frozen=True, slots=True)
class CtxCompilerError(Exception):
    """Base error with structured context for manifests and CLI output."""

    code: ErrorCode
    message: str
    fatal: bool = True
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "fatal": self.fatal,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CtxCompilerError):
    """Malformed or contradictory configuration. Raised before analysis starts."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def contradiction(cls, field: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_CONTRADICTION,
            message=f"Contradictory configuration in '{field}': {reason}",
            details={"field": field, "reason": reason},
        )


class FactCollectionError(CtxCompilerError):
    """A single collection unit (usually one file) could not be analyzed.

    Never aborts a run: the collector excludes the unit and records a warning.
    """

    @classmethod
    def unit_failed(cls, collector: str, unit: str, reason: str) -> "FactCollectionError":
        return cls(
            code=ErrorCode.FACT_UNIT_FAILED,
            message=f"{collector}: failed to analyze {unit}: {reason}",
            fatal=False,
            details={"collector": collector, "unit": unit, "reason": reason},
        )

    @classmethod
    def invalid_document(cls, unit: str, reason: str) -> "FactCollectionError":
        return cls(
            code=ErrorCode.FACT_DOCUMENT_INVALID,
            message=f"Invalid fact document {unit}: {reason}",
            fatal=False,
            details={"unit": unit, "reason": reason},
        )


class IntegrityViolation(CtxCompilerError):
    """The model cannot be trusted. Always fatal."""

    @classmethod
    def module_cycle(cls, modules: list[str]) -> "IntegrityViolation":
        return cls(
            code=ErrorCode.INTEGRITY_MODULE_CYCLE,
            message=f"Module sequence dependencies form a cycle: {' -> '.join(modules)}",
            details={"cycle": modules},
        )

    @classmethod
    def index_incomplete(cls, index: str, key: str) -> "IntegrityViolation":
        return cls(
            code=ErrorCode.INTEGRITY_INDEX_INCOMPLETE,
            message=f"Reverse index '{index}' is missing key '{key}'",
            details={"index": index, "key": key},
        )

    @classmethod
    def determinism_mismatch(cls, document: str, key_path: str) -> "IntegrityViolation":
        return cls(
            code=ErrorCode.INTEGRITY_DETERMINISM_MISMATCH,
            message=f"Reloaded '{document}' differs from canonical form at {key_path}",
            details={"document": document, "key_path": key_path},
        )


class ResourceLimitExceeded(CtxCompilerError):
    """A configured ceiling was exceeded. Recorded as a warning, never raised."""

    @classmethod
    def evidence_cap(cls, document: str, lists: int, cap: int) -> "ResourceLimitExceeded":
        return cls(
            code=ErrorCode.RESOURCE_EVIDENCE_CAP,
            message=f"{document}: {lists} evidence list(s) truncated to {cap} item(s)",
            fatal=False,
            details={"document": document, "truncated_lists": lists, "cap": cap},
        )

    @classmethod
    def index_ceiling(cls, what: str, actual: int, ceiling: int) -> "ResourceLimitExceeded":
        return cls(
            code=ErrorCode.RESOURCE_INDEX_CEILING,
            message=f"Reverse index {what} {actual} exceeds ceiling {ceiling}; truncated",
            fatal=False,
            details={"what": what, "actual": actual, "ceiling": ceiling},
        )


class CompilationCancelled(CtxCompilerError):
    """Cooperative cancellation was requested. No output is written."""

    @classmethod
    def during(cls, phase: str) -> "CompilationCancelled":
        return cls(
            code=ErrorCode.RUN_CANCELLED,
            message=f"Compilation cancelled during {phase}",
            details={"phase": phase},
        )


class InternalError(CtxCompilerError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

    @classmethod
    def path_outside_root(cls, path: str, repo_root: str) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_PATH_OUTSIDE_ROOT,
            message=f"Path {path} is outside repository root {repo_root}",
            details={"path": path, "repo_root": repo_root},
        )
