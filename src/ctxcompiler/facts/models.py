"""Fact records: the only input of the resolution engine.

Every record is a frozen dataclass with tuple-valued collections so that a
merged fact set is a hashable, immutable snapshot. Every record carries at
least one Evidence pointer; canonicalization rejects records without one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from ctxcompiler.identity.ids import entry_point_id

if TYPE_CHECKING:
    from ctxcompiler.core.warnings import RecordedWarning


# ============================================================================
# ENUMS
# ============================================================================


class EvidenceType(str, Enum):
    """Where a fact was observed."""

    XML = "xml"
    AST = "ast"
    MANIFEST = "manifest"
    FILESYSTEM = "filesystem"
    DOCUMENT = "document"
    INFERENCE = "inference"


class SymbolKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"
    TRAIT = "trait"
    ENUM = "enum"


class InterceptorKind(str, Enum):
    """Interception hook kind, declared in tie-break rank order."""

    BEFORE = "before"
    AROUND = "around"
    AFTER = "after"

    @property
    def rank(self) -> int:
        return _KIND_RANK[self]


_KIND_RANK = {InterceptorKind.BEFORE: 0, InterceptorKind.AROUND: 1, InterceptorKind.AFTER: 2}


class EntryPointKind(str, Enum):
    ROUTE = "route"
    SCHEDULED_JOB = "scheduled-job"
    COMMAND = "command"


class Layer(str, Enum):
    """Architectural layer of a file, classified by path segment."""

    PRESENTATION = "presentation"
    SERVICE = "service"
    DOMAIN = "domain"
    INFRASTRUCTURE = "infrastructure"
    FRAMEWORK = "framework"
    UNKNOWN = "unknown"


# ============================================================================
# RECORDS
# ============================================================================


@dataclass(frozen=True, slots=True)
class Evidence:
    """Pointer to the source a fact was derived from."""

    type: EvidenceType
    source_file: str
    line_start: int | None = None
    line_end: int | None = None
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "source_file": self.source_file,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "notes": self.notes,
        }


@dataclass(frozen=True, slots=True)
class Module:
    id: str
    root: str
    sequence: tuple[str, ...] = ()
    enabled: bool = True
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "module"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "root": self.root,
            "sequence": list(self.sequence),
            "enabled": self.enabled,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass(frozen=True, slots=True)
class Symbol:
    id: str
    file: str
    module: str
    kind: SymbolKind = SymbolKind.CLASS
    extends: tuple[str, ...] = ()
    implements: tuple[str, ...] = ()
    operations: tuple[str, ...] = ()
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "symbol"

    @property
    def parents(self) -> tuple[str, ...]:
        return (*self.extends, *self.implements)


@dataclass(frozen=True, slots=True)
class File:
    id: str
    module: str
    layer: Layer = Layer.UNKNOWN
    size: int = 0
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "file"


@dataclass(frozen=True, slots=True)
class PreferenceFact:
    """``interface`` is served by ``implementation`` at ``scope``."""

    interface: str
    implementation: str
    scope: str
    module: str
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "preference"


@dataclass(frozen=True, slots=True)
class InterceptionFact:
    """``interceptor`` hooks ``methods`` of ``target`` at ``scope``.

    A disabled declaration removes that interceptor from the chain at its
    scope and every scope below it.
    """

    target: str
    methods: tuple[str, ...]
    interceptor: str
    kind: InterceptorKind
    scope: str
    module: str
    order: int = 0
    name: str = ""
    disabled: bool = False
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "interception"


@dataclass(frozen=True, slots=True)
class SubscriptionFact:
    event: str
    subscriber: str
    scope: str
    module: str
    method: str = "execute"
    name: str = ""
    disabled: bool = False
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "subscription"


@dataclass(frozen=True, slots=True)
class EntryPointFact:
    kind: EntryPointKind
    identifier: str
    implementation: str
    module: str
    method: str = "execute"
    scope: str = "global"
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "entry_point"

    @property
    def id(self) -> str:
        return entry_point_id(self.kind.value, self.identifier)


@dataclass(frozen=True, slots=True)
class DispatchFact:
    """``dispatcher::method`` dispatches ``event`` while it runs."""

    event: str
    dispatcher: str
    method: str
    module: str
    evidence: tuple[Evidence, ...] = ()

    fact_type: ClassVar[str] = "dispatch"


# ============================================================================
# BATCHES
# ============================================================================


@dataclass(frozen=True, slots=True)
class FactBatch:
    """Everything one collector produced in one run."""

    collector: str = ""
    modules: tuple[Module, ...] = ()
    symbols: tuple[Symbol, ...] = ()
    files: tuple[File, ...] = ()
    preferences: tuple[PreferenceFact, ...] = ()
    interceptions: tuple[InterceptionFact, ...] = ()
    subscriptions: tuple[SubscriptionFact, ...] = ()
    entry_points: tuple[EntryPointFact, ...] = ()
    dispatches: tuple[DispatchFact, ...] = ()
    warnings: tuple[RecordedWarning, ...] = ()

    @classmethod
    def merge(cls, batches: list[FactBatch]) -> FactBatch:
        """Concatenate batches in the given order."""
        return cls(
            collector="+".join(b.collector for b in batches if b.collector),
            modules=tuple(m for b in batches for m in b.modules),
            symbols=tuple(s for b in batches for s in b.symbols),
            files=tuple(f for b in batches for f in b.files),
            preferences=tuple(p for b in batches for p in b.preferences),
            interceptions=tuple(i for b in batches for i in b.interceptions),
            subscriptions=tuple(s for b in batches for s in b.subscriptions),
            entry_points=tuple(e for b in batches for e in b.entry_points),
            dispatches=tuple(d for b in batches for d in b.dispatches),
            warnings=tuple(w for b in batches for w in b.warnings),
        )

    def counts(self) -> dict[str, int]:
        return {
            "modules": len(self.modules),
            "symbols": len(self.symbols),
            "files": len(self.files),
            "preferences": len(self.preferences),
            "interceptions": len(self.interceptions),
            "subscriptions": len(self.subscriptions),
            "entry_points": len(self.entry_points),
            "dispatches": len(self.dispatches),
        }
