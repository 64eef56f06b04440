"""Schema of YAML/JSON fact documents.

A fact document holds any mix of record kinds. Records without a ``module``
inherit the document-level ``module``; records without an ``evidence`` key
get a pointer to the document itself. An explicit empty ``evidence: []``
leaves the record without evidence, and canonicalization rejects it.

Example::

    module: Pay_Gateway
    preferences:
      - interface: Pay\\Gateway\\ChargeInterface
        implementation: Pay\\Gateway\\DefaultCharge
        scope: global
    interceptions:
      - target: Pay\\Gateway\\DefaultCharge
        methods: [save]
        interceptor: Pay\\Gateway\\Plugin\\Audit
        kind: around
        order: 10
"""

from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from ctxcompiler.config.constants import UNASSIGNED_MODULE
from ctxcompiler.facts.models import (
    DispatchFact,
    EntryPointFact,
    EntryPointKind,
    Evidence,
    EvidenceType,
    FactBatch,
    InterceptionFact,
    InterceptorKind,
    Module,
    PreferenceFact,
    SubscriptionFact,
    Symbol,
    SymbolKind,
)


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid")


class EvidenceEntry(_Record):
    type: EvidenceType = EvidenceType.DOCUMENT
    source_file: str
    line_start: int | None = None
    line_end: int | None = None
    notes: str = ""


class _Fact(_Record):
    module: str | None = None
    evidence: list[EvidenceEntry] | None = None


class ModuleEntry(_Record):
    id: str
    root: str = ""
    sequence: list[str] = Field(default_factory=list)
    enabled: bool = True
    evidence: list[EvidenceEntry] | None = None


class SymbolEntry(_Fact):
    id: str
    file: str = ""
    kind: SymbolKind = SymbolKind.CLASS
    extends: list[str] = Field(default_factory=list)
    implements: list[str] = Field(default_factory=list)
    operations: list[str] = Field(default_factory=list)


class PreferenceEntry(_Fact):
    interface: str
    implementation: str
    scope: str = "global"


class InterceptionEntry(_Fact):
    target: str
    methods: list[str] = Field(min_length=1)
    interceptor: str
    kind: InterceptorKind
    scope: str = "global"
    order: int = 0
    name: str = ""
    disabled: bool = False


class SubscriptionEntry(_Fact):
    event: str
    subscriber: str
    method: str = "execute"
    scope: str = "global"
    name: str = ""
    disabled: bool = False


class EntryPointEntry(_Fact):
    kind: EntryPointKind
    identifier: str
    implementation: str
    method: str = "execute"
    scope: str = "global"


class DispatchEntry(_Fact):
    event: str
    dispatcher: str
    method: str


class FactDocument(_Record):
    module: str | None = None
    modules: list[ModuleEntry] = Field(default_factory=list)
    symbols: list[SymbolEntry] = Field(default_factory=list)
    preferences: list[PreferenceEntry] = Field(default_factory=list)
    interceptions: list[InterceptionEntry] = Field(default_factory=list)
    subscriptions: list[SubscriptionEntry] = Field(default_factory=list)
    entry_points: list[EntryPointEntry] = Field(default_factory=list)
    dispatches: list[DispatchEntry] = Field(default_factory=list)

    def to_batch(
        self,
        source: str,
        collector: str,
        module_of_file: Callable[[str], str],
        default_module: str,
    ) -> FactBatch:
        """Convert validated entries to fact records.

        ``module_of_file`` maps a repo-relative file path to its owning module
        and is used for symbols that name a file but no module.
        """
        doc_module = self.module or default_module

        def evidence(entries: list[EvidenceEntry] | None, where: str) -> tuple[Evidence, ...]:
            if entries is None:
                return (Evidence(EvidenceType.DOCUMENT, source, notes=where),)
            return tuple(
                Evidence(e.type, e.source_file, e.line_start, e.line_end, e.notes) for e in entries
            )

        def module_for(entry: _Fact) -> str:
            return entry.module or doc_module

        def symbol_module(entry: SymbolEntry) -> str:
            if entry.module:
                return entry.module
            if entry.file:
                owner = module_of_file(entry.file)
                if owner != UNASSIGNED_MODULE:
                    return owner
            return doc_module

        symbols = []
        for i, s in enumerate(self.symbols):
            module = symbol_module(s)
            symbols.append(
                Symbol(
                    id=s.id,
                    file=s.file,
                    module=module,
                    kind=s.kind,
                    extends=tuple(s.extends),
                    implements=tuple(s.implements),
                    operations=tuple(s.operations),
                    evidence=evidence(s.evidence, f"symbols[{i}]"),
                )
            )

        return FactBatch(
            collector=collector,
            modules=tuple(
                Module(
                    id=m.id,
                    root=m.root,
                    sequence=tuple(m.sequence),
                    enabled=m.enabled,
                    evidence=evidence(m.evidence, f"modules[{i}]"),
                )
                for i, m in enumerate(self.modules)
            ),
            symbols=tuple(symbols),
            preferences=tuple(
                PreferenceFact(
                    interface=p.interface,
                    implementation=p.implementation,
                    scope=p.scope,
                    module=module_for(p),
                    evidence=evidence(p.evidence, f"preferences[{i}]"),
                )
                for i, p in enumerate(self.preferences)
            ),
            interceptions=tuple(
                InterceptionFact(
                    target=x.target,
                    methods=tuple(x.methods),
                    interceptor=x.interceptor,
                    kind=x.kind,
                    scope=x.scope,
                    module=module_for(x),
                    order=x.order,
                    name=x.name,
                    disabled=x.disabled,
                    evidence=evidence(x.evidence, f"interceptions[{i}]"),
                )
                for i, x in enumerate(self.interceptions)
            ),
            subscriptions=tuple(
                SubscriptionFact(
                    event=s.event,
                    subscriber=s.subscriber,
                    scope=s.scope,
                    module=module_for(s),
                    method=s.method,
                    name=s.name,
                    disabled=s.disabled,
                    evidence=evidence(s.evidence, f"subscriptions[{i}]"),
                )
                for i, s in enumerate(self.subscriptions)
            ),
            entry_points=tuple(
                EntryPointFact(
                    kind=e.kind,
                    identifier=e.identifier,
                    implementation=e.implementation,
                    module=module_for(e),
                    method=e.method,
                    scope=e.scope,
                    evidence=evidence(e.evidence, f"entry_points[{i}]"),
                )
                for i, e in enumerate(self.entry_points)
            ),
            dispatches=tuple(
                DispatchFact(
                    event=d.event,
                    dispatcher=d.dispatcher,
                    method=d.method,
                    module=module_for(d),
                    evidence=evidence(d.evidence, f"dispatches[{i}]"),
                )
                for i, d in enumerate(self.dispatches)
            ),
        )
