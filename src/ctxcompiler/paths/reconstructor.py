"""Execution path reconstruction.

Each entry point expands into an ordered list of class+method nodes:

1. the entry node: the implementing class, DI-resolved at the entry scope;
2. for the node and each of its interceptor hooks, every event dispatched
   from there (by event id);
3. each event's visible subscribers (in subscription order), DI-resolved,
   expanded the same way.

Traversal uses an explicit stack and an arena of visited (class, method)
keys per path. Revisiting a key ends that branch with reason ``cycle``;
reaching the depth limit with work left ends it with reason ``depth``.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ctxcompiler.core.cancel import CancellationToken
from ctxcompiler.facts.models import DispatchFact, EntryPointFact
from ctxcompiler.resolution.interception import InterceptionResolver
from ctxcompiler.resolution.preferences import PreferenceResolver
from ctxcompiler.resolution.subscriptions import SubscriptionResolver

logger = structlog.get_logger()

TRUNCATED_CYCLE = "cycle"
TRUNCATED_DEPTH = "depth"


@dataclass(frozen=True, slots=True)
class PathNode:
    index: int
    parent: int | None
    depth: int
    declared: str
    resolved: str
    method: str
    via_event: str | None
    interceptors: tuple[dict[str, Any], ...]
    events: tuple[dict[str, Any], ...]
    terminal: bool
    truncated: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "parent": self.parent,
            "depth": self.depth,
            "declared": self.declared,
            "class": self.resolved,
            "method": self.method,
            "via_event": self.via_event,
            "interceptors": list(self.interceptors),
            "events": list(self.events),
            "terminal": self.terminal,
            "truncated": self.truncated,
        }


@dataclass(frozen=True, slots=True)
class ExecutionPath:
    entry_point: str
    kind: str
    scope: str
    module: str
    nodes: tuple[PathNode, ...]
    truncated: bool
    truncation_reasons: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "scope": self.scope,
            "module": self.module,
            "nodes": [n.to_dict() for n in self.nodes],
            "node_count": len(self.nodes),
            "truncated": self.truncated,
            "truncation_reasons": list(self.truncation_reasons),
        }


@dataclass(frozen=True, slots=True)
class _Frame:
    declared: str
    method: str
    depth: int
    parent: int | None
    via_event: str | None


class PathReconstructor:
    def __init__(
        self,
        preferences: PreferenceResolver,
        interception: InterceptionResolver,
        subscriptions: SubscriptionResolver,
        dispatches: Iterable[DispatchFact],
        max_depth: int = 8,
    ) -> None:
        self._preferences = preferences
        self._interception = interception
        self._subscriptions = subscriptions
        self._max_depth = max_depth
        self._dispatched: dict[tuple[str, str], set[str]] = defaultdict(set)
        for d in dispatches:
            self._dispatched[(d.dispatcher, d.method)].add(d.event)

    def reconstruct_all(
        self,
        entry_points: Iterable[EntryPointFact],
        token: CancellationToken | None = None,
    ) -> dict[str, ExecutionPath]:
        paths: dict[str, ExecutionPath] = {}
        for ep in sorted(entry_points, key=lambda e: e.id):
            if token is not None:
                token.check("path reconstruction")
            if ep.id in paths:
                continue
            paths[ep.id] = self.reconstruct(ep)
        truncated = sum(1 for p in paths.values() if p.truncated)
        logger.info("execution_paths_reconstructed", paths=len(paths), truncated=truncated)
        return paths

    def reconstruct(self, ep: EntryPointFact) -> ExecutionPath:
        scope = ep.scope
        nodes: list[PathNode] = []
        visited: set[tuple[str, str]] = set()
        reasons: set[str] = set()

        stack = [_Frame(ep.implementation, ep.method, 0, None, None)]
        while stack:
            frame = stack.pop()
            resolved = self._preferences.resolve_type(frame.declared, scope)
            key = (resolved, frame.method)
            index = len(nodes)

            if key in visited:
                reasons.add(TRUNCATED_CYCLE)
                nodes.append(self._node(index, frame, resolved, (), (), True, TRUNCATED_CYCLE))
                continue
            visited.add(key)

            chain = self._interception.chain_for(resolved, frame.method, scope)
            sources = [(resolved, frame.method)] + [(e.interceptor, e.hook) for e in chain.entries]
            events = sorted({ev for src in sources for ev in self._dispatched.get(src, ())})

            children: list[_Frame] = []
            event_info: list[dict[str, Any]] = []
            for event in events:
                group = self._subscriptions.group_for(event, scope)
                event_info.append(
                    {
                        "event": event,
                        "subscriber_count": len(group.subscribers),
                        "risk": group.risk,
                    }
                )
                for sub in group.subscribers:
                    children.append(
                        _Frame(sub.subscriber, sub.method, frame.depth + 1, index, event)
                    )

            interceptors = tuple(
                {"interceptor": e.interceptor, "kind": e.kind.value, "order": e.order}
                for e in chain.entries
            )

            truncated: str | None = None
            if children and frame.depth >= self._max_depth:
                truncated = TRUNCATED_DEPTH
                reasons.add(TRUNCATED_DEPTH)
                children = []

            nodes.append(
                self._node(
                    index,
                    frame,
                    resolved,
                    interceptors,
                    tuple(event_info),
                    not children,
                    truncated,
                )
            )
            stack.extend(reversed(children))

        return ExecutionPath(
            entry_point=ep.id,
            kind=ep.kind.value,
            scope=scope,
            module=ep.module,
            nodes=tuple(nodes),
            truncated=bool(reasons),
            truncation_reasons=tuple(sorted(reasons)),
        )

    @staticmethod
    def _node(
        index: int,
        frame: _Frame,
        resolved: str,
        interceptors: tuple[dict[str, Any], ...],
        events: tuple[dict[str, Any], ...],
        terminal: bool,
        truncated: str | None,
    ) -> PathNode:
        return PathNode(
            index=index,
            parent=frame.parent,
            depth=frame.depth,
            declared=frame.declared,
            resolved=resolved,
            method=frame.method,
            via_event=frame.via_event,
            interceptors=interceptors,
            events=events,
            terminal=terminal,
            truncated=truncated,
        )


def paths_document(paths: dict[str, ExecutionPath]) -> dict[str, Any]:
    return {"paths": {ep_id: p.to_dict() for ep_id, p in paths.items()}}
