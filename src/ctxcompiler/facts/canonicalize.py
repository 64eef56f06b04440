"""Rewrite a merged fact set into canonical form.

After this pass every id is canonical, every record carries evidence, symbol
and module ids are unique, facts declared by disabled modules are gone, and
every collection is sorted, so downstream phases see the same input no matter
which collector produced a record or in which order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any, TypeVar

import structlog

from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.facts.models import (
    DispatchFact,
    EntryPointFact,
    Evidence,
    FactBatch,
    File,
    InterceptionFact,
    Module,
    PreferenceFact,
    SubscriptionFact,
    Symbol,
)
from ctxcompiler.identity.ids import (
    event_id,
    module_id,
    normalize_file_id,
    scope_id,
    symbol_id,
)

logger = structlog.get_logger()

T = TypeVar("T")


def _method(name: str) -> str:
    return name.strip().lower()


def evidence_key(e: Evidence) -> tuple[Any, ...]:
    return (
        e.source_file,
        e.line_start if e.line_start is not None else -1,
        e.line_end if e.line_end is not None else -1,
        e.type.value,
        e.notes,
    )


def _evidence(items: tuple[Evidence, ...]) -> tuple[Evidence, ...]:
    normalized = {replace(e, source_file=normalize_file_id(e.source_file)) for e in items}
    return tuple(sorted(normalized, key=evidence_key))


def _ids(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted({symbol_id(v) for v in values} - {""}))


def _canonical_module(m: Module) -> Module:
    return replace(
        m,
        id=module_id(m.id),
        root=normalize_file_id(m.root),
        sequence=tuple(sorted({module_id(d) for d in m.sequence} - {""})),
        evidence=_evidence(m.evidence),
    )


def _canonical_symbol(s: Symbol) -> Symbol:
    return replace(
        s,
        id=symbol_id(s.id),
        file=normalize_file_id(s.file),
        module=module_id(s.module),
        extends=_ids(s.extends),
        implements=_ids(s.implements),
        operations=tuple(sorted({_method(o) for o in s.operations} - {""})),
        evidence=_evidence(s.evidence),
    )


def _canonical_file(f: File) -> File:
    return replace(
        f,
        id=normalize_file_id(f.id),
        module=module_id(f.module),
        evidence=_evidence(f.evidence),
    )


def _canonical_preference(p: PreferenceFact) -> PreferenceFact:
    return replace(
        p,
        interface=symbol_id(p.interface),
        implementation=symbol_id(p.implementation),
        scope=scope_id(p.scope),
        module=module_id(p.module),
        evidence=_evidence(p.evidence),
    )


def _canonical_interception(i: InterceptionFact) -> InterceptionFact:
    return replace(
        i,
        target=symbol_id(i.target),
        methods=tuple(sorted({_method(m) for m in i.methods} - {""})),
        interceptor=symbol_id(i.interceptor),
        scope=scope_id(i.scope),
        module=module_id(i.module),
        name=i.name.strip(),
        evidence=_evidence(i.evidence),
    )


def _canonical_subscription(s: SubscriptionFact) -> SubscriptionFact:
    return replace(
        s,
        event=event_id(s.event),
        subscriber=symbol_id(s.subscriber),
        method=_method(s.method),
        scope=scope_id(s.scope),
        module=module_id(s.module),
        name=s.name.strip(),
        evidence=_evidence(s.evidence),
    )


def _canonical_entry_point(e: EntryPointFact) -> EntryPointFact:
    return replace(
        e,
        identifier=e.identifier.strip(),
        implementation=symbol_id(e.implementation),
        module=module_id(e.module),
        method=_method(e.method),
        scope=scope_id(e.scope),
        evidence=_evidence(e.evidence),
    )


def _canonical_dispatch(d: DispatchFact) -> DispatchFact:
    return replace(
        d,
        event=event_id(d.event),
        dispatcher=symbol_id(d.dispatcher),
        method=_method(d.method),
        module=module_id(d.module),
        evidence=_evidence(d.evidence),
    )


# Sort keys for canonical record order. Every key is total over its record
# type, so sorting a set of distinct records is deterministic.
def _sort_key(record: Any) -> tuple[Any, ...]:
    if isinstance(record, Module):
        return (record.id, record.root, record.sequence, not record.enabled)
    if isinstance(record, Symbol):
        return (
            record.id,
            record.file,
            record.module,
            record.kind.value,
            record.extends,
            record.implements,
            record.operations,
        )
    if isinstance(record, File):
        return (record.id, record.module, record.layer.value, record.size)
    if isinstance(record, PreferenceFact):
        return (record.interface, record.scope, record.implementation, record.module)
    if isinstance(record, InterceptionFact):
        return (
            record.target,
            record.methods,
            record.scope,
            record.interceptor,
            record.kind.rank,
            record.order,
            record.module,
            record.name,
            record.disabled,
        )
    if isinstance(record, SubscriptionFact):
        return (
            record.event,
            record.scope,
            record.subscriber,
            record.method,
            record.module,
            record.name,
            record.disabled,
        )
    if isinstance(record, EntryPointFact):
        return (
            record.id,
            record.implementation,
            record.method,
            record.scope,
            record.module,
        )
    if isinstance(record, DispatchFact):
        return (record.event, record.dispatcher, record.method, record.module)
    raise TypeError(f"no canonical sort key for {type(record).__name__}")


def _full_key(record: Any) -> tuple[Any, ...]:
    return (*_sort_key(record), tuple(evidence_key(e) for e in record.evidence))


class Canonicalizer:
    """Turns a merged FactBatch into the canonical fact set for one run."""

    def __init__(self, warnings: WarningCollector) -> None:
        self._warnings = warnings

    def run(self, batch: FactBatch) -> FactBatch:
        self._warnings.extend(batch.warnings)

        modules = self._prepare(batch.modules, _canonical_module, lambda m: m.id)
        modules = self._unique(modules, lambda m: m.id, "general", "module")
        disabled = {m.id for m in modules if not m.enabled}

        symbols = self._prepare(batch.symbols, _canonical_symbol, lambda s: s.id)
        symbols = self._unique(symbols, lambda s: s.id, "duplicate_symbol", "symbol")
        files = self._prepare(batch.files, _canonical_file, lambda f: f.id)
        files = self._unique(files, lambda f: f.id, "general", "file")

        result = FactBatch(
            collector=batch.collector,
            modules=tuple(modules),
            symbols=tuple(s for s in symbols if s.module not in disabled),
            files=tuple(files),
            preferences=self._facts(
                batch.preferences,
                _canonical_preference,
                lambda p: p.interface and p.implementation,
                disabled,
            ),
            interceptions=self._facts(
                batch.interceptions,
                _canonical_interception,
                lambda i: i.target and i.interceptor and i.methods,
                disabled,
            ),
            subscriptions=self._facts(
                batch.subscriptions,
                _canonical_subscription,
                lambda s: s.event and s.subscriber and s.method,
                disabled,
            ),
            entry_points=self._facts(
                batch.entry_points,
                _canonical_entry_point,
                lambda e: e.identifier and e.implementation,
                disabled,
            ),
            dispatches=self._facts(
                batch.dispatches,
                _canonical_dispatch,
                lambda d: d.event and d.dispatcher and d.method,
                disabled,
            ),
        )

        if disabled:
            logger.info("disabled_modules_excluded", modules=sorted(disabled))
        logger.info("facts_canonicalized", **result.counts())
        return result

    def _prepare(
        self,
        records: Iterable[T],
        canonical: Callable[[T], T],
        has_id: Callable[[T], Any],
    ) -> list[T]:
        kept: set[T] = set()
        for record in records:
            c = canonical(record)
            if not has_id(c):
                self._warnings.add("general", f"{type(c).__name__} with an empty id dropped")
                continue
            if not c.evidence:  # type: ignore[attr-defined]
                self._reject_unevidenced(c)
                continue
            kept.add(c)
        return sorted(kept, key=_full_key)

    def _unique(
        self,
        records: list[T],
        key: Callable[[T], str],
        category: str,
        label: str,
    ) -> list[T]:
        """First record per id after canonical sort wins."""
        winners: dict[str, T] = {}
        for record in records:
            k = key(record)
            if k in winners:
                self._warnings.add(
                    category,
                    f"duplicate {label} '{k}': kept first after canonical sort",
                    source=_first_source(record),
                )
                continue
            winners[k] = record
        return list(winners.values())

    def _facts(
        self,
        records: Iterable[T],
        canonical: Callable[[T], T],
        has_id: Callable[[T], Any],
        disabled: set[str],
    ) -> tuple[T, ...]:
        kept = self._prepare(records, canonical, has_id)
        return tuple(r for r in kept if r.module not in disabled)  # type: ignore[attr-defined]

    def _reject_unevidenced(self, record: Any) -> None:
        self._warnings.add(
            "missing_evidence",
            f"{record.fact_type} fact without evidence rejected: {_describe(record)}",
        )


def _first_source(record: Any) -> str:
    return record.evidence[0].source_file if record.evidence else ""


def _describe(record: Any) -> str:
    key = _sort_key(record)
    return " ".join(str(k) for k in key[:3])


def canonicalize(batch: FactBatch, warnings: WarningCollector) -> FactBatch:
    return Canonicalizer(warnings).run(batch)
