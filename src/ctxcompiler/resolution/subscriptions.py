"""Event subscription fan-out.

Subscribers visible at a scope are those declared anywhere in the scope's
chain; a (subscriber, method) pair declared at several scopes takes its most
specific declaration, so a disabled declaration hides the subscriber at its
scope and below. Risk grows with the number of distinct declaring modules.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ctxcompiler.facts.models import Evidence, SubscriptionFact
from ctxcompiler.resolution.module_order import ModuleOrder
from ctxcompiler.resolution.scopes import ScopeTree

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class Subscriber:
    subscriber: str
    method: str
    module: str
    declared_scope: str
    name: str
    evidence: tuple[Evidence, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscriber": self.subscriber,
            "method": self.method,
            "module": self.module,
            "declared_scope": self.declared_scope,
            "name": self.name,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass(frozen=True, slots=True)
class SubscriptionGroup:
    event: str
    scope: str
    subscribers: tuple[Subscriber, ...]
    cross_module_count: int
    risk: float
    high_fanout: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscribers": [s.to_dict() for s in self.subscribers],
            "subscriber_count": len(self.subscribers),
            "cross_module_count": self.cross_module_count,
            "risk": self.risk,
            "high_fanout": self.high_fanout,
        }


def risk_score(cross_module_count: int) -> float:
    """``1 - 0.5 ** n``: 0 for a single module, approaching 1 as modules add up."""
    return round(1.0 - 0.5 ** max(0, cross_module_count), 4)


class SubscriptionResolver:
    def __init__(
        self,
        facts: Iterable[SubscriptionFact],
        scopes: ScopeTree,
        order: ModuleOrder,
        fanout_threshold: int = 10,
    ) -> None:
        self._scopes = scopes
        self._order = order
        self._threshold = fanout_threshold
        self._by_event: dict[str, list[SubscriptionFact]] = defaultdict(list)
        for f in facts:
            self._by_event[f.event].append(f)
        self._groups: dict[str, dict[str, SubscriptionGroup]] = {}
        for event in sorted(self._by_event):
            scopes_declared = {scopes.root} | {f.scope for f in self._by_event[event]}
            self._groups[event] = {s: self.compute(event, s) for s in sorted(scopes_declared)}
        logger.debug("subscriptions_resolved", events=len(self._groups))

    def events(self) -> tuple[str, ...]:
        return tuple(self._groups)

    def groups(self) -> tuple[SubscriptionGroup, ...]:
        """Every computed group, by event then declaring scope."""
        return tuple(g for by_scope in self._groups.values() for g in by_scope.values())

    def compute(self, event: str, scope: str) -> SubscriptionGroup:
        chain = self._scopes.chain(scope)
        specificity = {s: i for i, s in enumerate(chain)}

        best: dict[tuple[str, str], tuple[tuple[Any, ...], SubscriptionFact]] = {}
        for f in self._by_event.get(event, ()):
            if f.scope not in specificity:
                continue
            rank = (specificity[f.scope], -self._order.position(f.module), f.disabled, f.name)
            key = (f.subscriber, f.method)
            current = best.get(key)
            if current is None or rank < current[0]:
                best[key] = (rank, f)

        visible = sorted(
            (f for _, f in best.values() if not f.disabled),
            key=lambda f: (self._order.position(f.module), f.subscriber, f.method),
        )
        modules = {f.module for f in visible}
        cross = max(0, len(modules) - 1)
        return SubscriptionGroup(
            event=event,
            scope=scope,
            subscribers=tuple(
                Subscriber(f.subscriber, f.method, f.module, f.scope, f.name, f.evidence)
                for f in visible
            ),
            cross_module_count=cross,
            risk=risk_score(cross),
            high_fanout=len(visible) > self._threshold,
        )

    def group_for(self, event: str, scope: str) -> SubscriptionGroup:
        by_scope = self._groups.get(event)
        if by_scope is not None:
            for s in self._scopes.chain(scope):
                if s in by_scope:
                    return by_scope[s]
        return SubscriptionGroup(event, scope, (), 0, 0.0, False)

    def subscribers(self, event: str, scope: str) -> tuple[Subscriber, ...]:
        return self.group_for(event, scope).subscribers

    def to_document(self) -> dict[str, Any]:
        return {
            "events": {
                event: {scope: g.to_dict() for scope, g in by_scope.items()}
                for event, by_scope in self._groups.items()
            },
        }
