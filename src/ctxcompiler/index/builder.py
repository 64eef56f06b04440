"""Cross-reference index builder.

One aggregation pass over the canonical fact set and everything derived from
it produces:

- symbol index: symbol id -> file, module, kind, ancestry, operations
- file index:   file id -> module, layer, size
- reverse index: by_symbol, by_module, by_event, by_entry_point, each key
  holding every fact, resolution and execution path that references it as
  ``refs`` plus ``ref_count`` and a weighted ``score``; by_event keys also
  carry the subscription fan-out of each declaring scope

Completeness: every symbol, every referenced module, event and entry point
is a key of its reverse map, even with no refs. A missing key is an
IntegrityViolation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from ctxcompiler.config.models import WeightsConfig
from ctxcompiler.core.errors import IntegrityViolation
from ctxcompiler.facts.models import FactBatch
from ctxcompiler.paths.reconstructor import ExecutionPath
from ctxcompiler.resolution.hierarchy import TypeHierarchy
from ctxcompiler.resolution.preferences import PreferenceResolver
from ctxcompiler.resolution.subscriptions import SubscriptionResolver

logger = structlog.get_logger()

REVERSE_MAPS = ("by_symbol", "by_module", "by_event", "by_entry_point")


@dataclass
class IndexSet:
    symbol_index: dict[str, dict[str, Any]] = field(default_factory=dict)
    file_index: dict[str, dict[str, Any]] = field(default_factory=dict)
    reverse: dict[str, dict[str, list[dict[str, Any]]]] = field(
        default_factory=lambda: {name: {} for name in REVERSE_MAPS}
    )
    fan_out: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)

    def reverse_document(self, weights: WeightsConfig) -> dict[str, Any]:
        doc: dict[str, Any] = {}
        for name in REVERSE_MAPS:
            entries: dict[str, Any] = {}
            for key, refs in self.reverse[name].items():
                entry: dict[str, Any] = {
                    "refs": refs,
                    "ref_count": len(refs),
                    "score": round(sum(weights.for_fact(r["fact"]) for r in refs), 4),
                }
                if name == "by_event":
                    entry["fan_out"] = self.fan_out.get(key, {})
                entries[key] = entry
            doc[name] = entries
        return doc


class IndexBuilder:
    def __init__(
        self,
        facts: FactBatch,
        hierarchy: TypeHierarchy,
        preferences: PreferenceResolver | None = None,
        subscriptions: SubscriptionResolver | None = None,
        paths: Mapping[str, ExecutionPath] | None = None,
    ) -> None:
        self._facts = facts
        self._hierarchy = hierarchy
        self._preferences = preferences
        self._subscriptions = subscriptions
        self._paths = paths or {}
        self._index = IndexSet()
        self._expected: dict[str, set[str]] = {name: set() for name in REVERSE_MAPS}

    def _key(self, index: str, key: str) -> None:
        self._expected[index].add(key)
        self._index.reverse[index].setdefault(key, [])

    def _ref(self, index: str, key: str, fact: str, role: str, **context: Any) -> None:
        self._key(index, key)
        self._index.reverse[index][key].append({"fact": fact, "role": role, **context})

    def build(self) -> IndexSet:
        facts = self._facts
        idx = self._index

        for m in facts.modules:
            self._ref("by_module", m.id, "module", "declared", root=m.root)
            for dep in m.sequence:
                self._ref("by_module", m.id, "dependency", "depends_on", module=dep)
                self._ref("by_module", dep, "dependency", "required_by", module=m.id)

        for f in facts.files:
            idx.file_index[f.id] = {"module": f.module, "layer": f.layer.value, "size": f.size}
            self._ref("by_module", f.module, "file", "contains", file=f.id)

        for s in facts.symbols:
            idx.symbol_index[s.id] = {
                "file": s.file,
                "module": s.module,
                "kind": s.kind.value,
                "extends": list(s.extends),
                "implements": list(s.implements),
                "ancestry": list(self._hierarchy.ancestors(s.id)),
                "operations": list(s.operations),
                "evidence": [e.to_dict() for e in s.evidence],
            }
            self._ref("by_symbol", s.id, "symbol", "declared", file=s.file, module=s.module)
            self._ref("by_module", s.module, "symbol", "owns", symbol=s.id)
            for parent in s.extends:
                self._ref("by_symbol", parent, "symbol", "extended_by", symbol=s.id)
            for parent in s.implements:
                self._ref("by_symbol", parent, "symbol", "implemented_by", symbol=s.id)

        for p in facts.preferences:
            ctx = {
                "interface": p.interface,
                "implementation": p.implementation,
                "scope": p.scope,
                "module": p.module,
            }
            self._ref("by_symbol", p.interface, "preference", "interface", **ctx)
            self._ref("by_symbol", p.implementation, "preference", "implementation", **ctx)
            self._ref("by_module", p.module, "preference", "declares", **ctx)

        for i in facts.interceptions:
            for method in i.methods:
                ctx = {
                    "target": i.target,
                    "method": method,
                    "interceptor": i.interceptor,
                    "kind": i.kind.value,
                    "scope": i.scope,
                    "order": i.order,
                    "module": i.module,
                    "disabled": i.disabled,
                }
                self._ref("by_symbol", i.target, "interception", "intercepted", **ctx)
                self._ref("by_symbol", i.interceptor, "interception", "interceptor", **ctx)
                self._ref("by_module", i.module, "interception", "declares", **ctx)

        for s in facts.subscriptions:
            ctx = {
                "event": s.event,
                "subscriber": s.subscriber,
                "method": s.method,
                "scope": s.scope,
                "module": s.module,
                "disabled": s.disabled,
            }
            self._ref("by_event", s.event, "subscription", "subscriber", **ctx)
            self._ref("by_symbol", s.subscriber, "subscription", "subscriber", **ctx)
            self._ref("by_module", s.module, "subscription", "declares", **ctx)

        for e in facts.entry_points:
            ctx = {
                "entry_point": e.id,
                "implementation": e.implementation,
                "method": e.method,
                "scope": e.scope,
                "module": e.module,
            }
            self._ref("by_entry_point", e.id, "entry_point", "entry", **ctx)
            self._ref("by_symbol", e.implementation, "entry_point", "implementation", **ctx)
            self._ref("by_module", e.module, "entry_point", "declares", **ctx)

        for d in facts.dispatches:
            ctx = {
                "event": d.event,
                "dispatcher": d.dispatcher,
                "method": d.method,
                "module": d.module,
            }
            self._ref("by_event", d.event, "dispatch", "dispatched", **ctx)
            self._ref("by_symbol", d.dispatcher, "dispatch", "dispatcher", **ctx)
            self._ref("by_module", d.module, "dispatch", "declares", **ctx)

        self._add_resolutions()
        self._add_fan_out()
        self._add_paths()

        for symbol_id in idx.symbol_index:
            self._key("by_symbol", symbol_id)
        for file_entry in idx.file_index.values():
            self._key("by_module", file_entry["module"])

        check_completeness(idx, self._expected)
        logger.info(
            "indexes_built",
            symbols=len(idx.symbol_index),
            files=len(idx.file_index),
            **{name: len(idx.reverse[name]) for name in REVERSE_MAPS},
        )
        return idx

    def _add_resolutions(self) -> None:
        if self._preferences is None:
            return
        for scope, resolved in self._preferences.resolution_map().items():
            for interface, r in resolved.items():
                ctx = {
                    "interface": interface,
                    "implementation": r.implementation,
                    "scope": scope,
                    "declared_scope": r.declared_scope,
                    "confidence": r.confidence,
                }
                self._ref("by_symbol", interface, "resolution", "interface", **ctx)
                self._ref("by_symbol", r.implementation, "resolution", "winner", **ctx)
                self._ref("by_module", r.module, "resolution", "winner", **ctx)
                losers = [c for c in r.candidates if c.implementation != r.implementation]
                for impl in sorted({c.implementation for c in losers}):
                    self._ref("by_symbol", impl, "resolution", "candidate", **ctx)
                for module in sorted({c.module for c in losers}):
                    self._ref("by_module", module, "resolution", "candidate", **ctx)

    def _add_fan_out(self) -> None:
        if self._subscriptions is None:
            return
        for group in self._subscriptions.groups():
            self._key("by_event", group.event)
            self._index.fan_out.setdefault(group.event, {})[group.scope] = {
                "subscriber_count": len(group.subscribers),
                "cross_module_count": group.cross_module_count,
                "risk": group.risk,
                "high_fanout": group.high_fanout,
            }

    def _add_paths(self) -> None:
        for ep_id, path in self._paths.items():
            self._ref(
                "by_entry_point",
                ep_id,
                "execution_path",
                "path",
                entry_point=ep_id,
                scope=path.scope,
                node_count=len(path.nodes),
                truncated=path.truncated,
                truncation_reasons=list(path.truncation_reasons),
            )
            for node in path.nodes:
                ctx = {
                    "entry_point": ep_id,
                    "class": node.resolved,
                    "method": node.method,
                    "depth": node.depth,
                    "via_event": node.via_event,
                    "truncated": node.truncated,
                }
                self._ref("by_entry_point", ep_id, "execution_path", "node", **ctx)
                self._ref("by_symbol", node.resolved, "execution_path", "node", **ctx)
                for i in node.interceptors:
                    hook = {
                        "entry_point": ep_id,
                        "target": node.resolved,
                        "method": node.method,
                        "interceptor": i["interceptor"],
                        "kind": i["kind"],
                    }
                    self._ref("by_entry_point", ep_id, "execution_path", "interceptor", **hook)
                    self._ref(
                        "by_symbol", i["interceptor"], "execution_path", "interceptor", **hook
                    )
                for ev in node.events:
                    self._ref(
                        "by_event",
                        ev["event"],
                        "execution_path",
                        "reached",
                        entry_point=ep_id,
                        source=node.resolved,
                        method=node.method,
                        subscriber_count=ev["subscriber_count"],
                    )


def check_completeness(index: IndexSet, expected: dict[str, set[str]]) -> None:
    """Raise IntegrityViolation naming the first missing reverse-index key."""
    for symbol_id in sorted(index.symbol_index):
        if symbol_id not in index.reverse["by_symbol"]:
            raise IntegrityViolation.index_incomplete("by_symbol", symbol_id)
    for name in REVERSE_MAPS:
        missing = sorted(expected.get(name, set()) - set(index.reverse[name]))
        if missing:
            raise IntegrityViolation.index_incomplete(name, missing[0])


def build_indexes(
    facts: FactBatch,
    hierarchy: TypeHierarchy,
    preferences: PreferenceResolver | None = None,
    subscriptions: SubscriptionResolver | None = None,
    paths: Mapping[str, ExecutionPath] | None = None,
) -> IndexSet:
    return IndexBuilder(facts, hierarchy, preferences, subscriptions, paths).build()
