"""Interceptor chain resolution.

For a (class, method, scope) the applicable declarations are those on the
class or any of its ancestors at any scope in the scope's chain. When one
(interceptor, kind) pair is declared more than once, the most specific
declaration wins: nearest scope first, then nearest type, then latest-loaded
module. Disabled winners are dropped.

The chain is totally ordered by:
    1. ascending order key
    2. declaring module load position
    3. interceptor id
    4. kind rank (before, around, after)

Invocation: ``before`` hooks run ascending, ``around`` hooks nest with the
lowest order outermost, ``after`` hooks run descending.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ctxcompiler.facts.models import Evidence, InterceptionFact, InterceptorKind
from ctxcompiler.resolution.hierarchy import TypeHierarchy
from ctxcompiler.resolution.module_order import ModuleOrder
from ctxcompiler.resolution.scopes import ScopeTree

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class Declaration:
    """One interception fact exploded to a single target method."""

    target: str
    method: str
    interceptor: str
    kind: InterceptorKind
    scope: str
    module: str
    order: int
    name: str
    disabled: bool
    evidence: tuple[Evidence, ...]


@dataclass(frozen=True, slots=True)
class ChainEntry:
    interceptor: str
    kind: InterceptorKind
    order: int
    module: str
    declared_on: str
    declared_scope: str
    hook: str
    name: str
    evidence: tuple[Evidence, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "interceptor": self.interceptor,
            "kind": self.kind.value,
            "order": self.order,
            "module": self.module,
            "declared_on": self.declared_on,
            "declared_scope": self.declared_scope,
            "hook": self.hook,
            "name": self.name,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass(frozen=True, slots=True)
class InterceptorChain:
    """Ordered interceptors of ``target::method`` at ``scope``."""

    target: str
    method: str
    scope: str
    entries: tuple[ChainEntry, ...]

    def call_plan(self) -> dict[str, list[ChainEntry]]:
        """Nesting structure: before list, around frames (outermost first), after list."""
        return {
            "before": [e for e in self.entries if e.kind is InterceptorKind.BEFORE],
            "around": [e for e in self.entries if e.kind is InterceptorKind.AROUND],
            "after": [e for e in reversed(self.entries) if e.kind is InterceptorKind.AFTER],
        }

    def invocation_sequence(self) -> list[dict[str, str]]:
        """Flat call/return events for one invocation of the intercepted method."""
        plan = self.call_plan()
        events: list[dict[str, str]] = []
        for e in plan["before"]:
            events.append({"event": "call", "interceptor": e.interceptor, "hook": e.hook})
        for e in plan["around"]:
            events.append({"event": "enter", "interceptor": e.interceptor, "hook": e.hook})
        events.append({"event": "call", "interceptor": self.target, "hook": self.method})
        events.append({"event": "return", "interceptor": self.target, "hook": self.method})
        for e in reversed(plan["around"]):
            events.append({"event": "exit", "interceptor": e.interceptor, "hook": e.hook})
        for e in plan["after"]:
            events.append({"event": "call", "interceptor": e.interceptor, "hook": e.hook})
        return events

    def to_dict(self) -> dict[str, Any]:
        plan = self.call_plan()
        return {
            "entries": [e.to_dict() for e in self.entries],
            "call_plan": {
                part: [f"{e.interceptor}::{e.hook}" for e in items] for part, items in plan.items()
            },
            "invocation_sequence": self.invocation_sequence(),
        }


def hook_name(kind: InterceptorKind, method: str) -> str:
    return f"{kind.value}{method}"


def explode(facts: Iterable[InterceptionFact]) -> list[Declaration]:
    return [
        Declaration(
            target=f.target,
            method=m,
            interceptor=f.interceptor,
            kind=f.kind,
            scope=f.scope,
            module=f.module,
            order=f.order,
            name=f.name,
            disabled=f.disabled,
            evidence=f.evidence,
        )
        for f in facts
        for m in f.methods
    ]


class InterceptionResolver:
    """Computes and materializes interceptor chains for every intercepted method."""

    def __init__(
        self,
        facts: Iterable[InterceptionFact],
        hierarchy: TypeHierarchy,
        scopes: ScopeTree,
        order: ModuleOrder,
    ) -> None:
        self._hierarchy = hierarchy
        self._scopes = scopes
        self._order = order
        self._by_method: dict[str, list[Declaration]] = defaultdict(list)
        for d in explode(facts):
            self._by_method[d.method].append(d)
        self._materialized: dict[tuple[str, str], dict[str, InterceptorChain]] = {}
        self._materialize()

    def _materialize(self) -> None:
        targets_by_method: dict[str, set[str]] = defaultdict(set)
        for method, decls in self._by_method.items():
            targets_by_method[method].update(d.target for d in decls)

        types = set(self._hierarchy.known())
        for decls in self._by_method.values():
            types.update(d.target for d in decls)

        for type_id in sorted(types):
            ancestry = self._hierarchy.distances(type_id)
            for method in sorted(self._by_method):
                if not targets_by_method[method].intersection(ancestry):
                    continue
                applicable = [d for d in self._by_method[method] if d.target in ancestry]
                scopes = {self._scopes.root} | {d.scope for d in applicable}
                self._materialized[(type_id, method)] = {
                    s: self.compute(type_id, method, s) for s in sorted(scopes)
                }

        logger.debug("interception_chains_materialized", methods=len(self._materialized))

    def compute(self, type_id: str, method: str, scope: str) -> InterceptorChain:
        """Resolve the chain from declarations, without the materialized cache."""
        chain = self._scopes.chain(scope)
        specificity = {s: i for i, s in enumerate(chain)}
        ancestry = self._hierarchy.distances(type_id)

        best: dict[tuple[str, InterceptorKind], tuple[tuple[Any, ...], Declaration]] = {}
        for d in self._by_method.get(method, ()):
            if d.target not in ancestry or d.scope not in specificity:
                continue
            rank = (
                specificity[d.scope],
                ancestry[d.target],
                -self._order.position(d.module),
                d.disabled,
                d.order,
                d.name,
                d.target,
            )
            key = (d.interceptor, d.kind)
            current = best.get(key)
            if current is None or rank < current[0]:
                best[key] = (rank, d)

        winners = [d for _, d in best.values() if not d.disabled]
        winners.sort(
            key=lambda d: (
                d.order,
                self._order.position(d.module),
                d.interceptor,
                d.kind.rank,
            )
        )
        entries = tuple(
            ChainEntry(
                interceptor=d.interceptor,
                kind=d.kind,
                order=d.order,
                module=d.module,
                declared_on=d.target,
                declared_scope=d.scope,
                hook=hook_name(d.kind, method),
                name=d.name,
                evidence=d.evidence,
            )
            for d in winners
        )
        return InterceptorChain(target=type_id, method=method, scope=scope, entries=entries)

    def chain_for(self, type_id: str, method: str, scope: str) -> InterceptorChain:
        """Materialized chain at the nearest materialized scope in ``scope``'s chain."""
        by_scope = self._materialized.get((type_id, method))
        if by_scope is None:
            return InterceptorChain(target=type_id, method=method, scope=scope, entries=())
        for s in self._scopes.chain(scope):
            if s in by_scope:
                return by_scope[s]
        return InterceptorChain(target=type_id, method=method, scope=scope, entries=())

    def chains(self) -> dict[tuple[str, str], dict[str, InterceptorChain]]:
        return self._materialized

    def to_document(self) -> dict[str, Any]:
        return {
            "chains": {
                f"{type_id}::{method}": {scope: c.to_dict() for scope, c in by_scope.items()}
                for (type_id, method), by_scope in self._materialized.items()
            },
        }
