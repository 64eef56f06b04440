"""Fact records, collectors and canonicalization."""

from ctxcompiler.facts.canonicalize import Canonicalizer, canonicalize
from ctxcompiler.facts.collectors import (
    CollectionContext,
    FactCollector,
    FactDocumentCollector,
    FileInventoryCollector,
    ModuleManifestCollector,
    collect_facts,
    default_collectors,
)
from ctxcompiler.facts.models import (
    DispatchFact,
    EntryPointFact,
    EntryPointKind,
    Evidence,
    EvidenceType,
    FactBatch,
    File,
    InterceptionFact,
    InterceptorKind,
    Layer,
    Module,
    PreferenceFact,
    SubscriptionFact,
    Symbol,
    SymbolKind,
)

__all__ = [
    "Evidence",
    "EvidenceType",
    "Module",
    "Symbol",
    "SymbolKind",
    "File",
    "Layer",
    "PreferenceFact",
    "InterceptionFact",
    "InterceptorKind",
    "SubscriptionFact",
    "EntryPointFact",
    "EntryPointKind",
    "DispatchFact",
    "FactBatch",
    "CollectionContext",
    "FactCollector",
    "ModuleManifestCollector",
    "FileInventoryCollector",
    "FactDocumentCollector",
    "collect_facts",
    "default_collectors",
    "Canonicalizer",
    "canonicalize",
]
