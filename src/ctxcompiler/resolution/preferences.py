"""Preference (override) resolution.

Preferences are grouped by (interface, scope). Within a group the candidate
declared by the latest-loaded module wins; ties go to the lexicographically
greatest implementation id. Across scopes, the most specific scope in the
requested scope's chain that has any candidate decides, regardless of load
order.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.facts.models import Evidence, PreferenceFact
from ctxcompiler.resolution.confidence import ConfidencePolicy, reciprocal_decay
from ctxcompiler.resolution.module_order import ModuleOrder
from ctxcompiler.resolution.scopes import ScopeTree

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class Candidate:
    implementation: str
    module: str
    evidence: tuple[Evidence, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "implementation": self.implementation,
            "module": self.module,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass(frozen=True, slots=True)
class Resolution:
    """Winning implementation of ``interface`` as seen from ``scope``."""

    interface: str
    scope: str
    declared_scope: str
    implementation: str
    module: str
    confidence: float
    candidates: tuple[Candidate, ...]

    @property
    def ambiguous(self) -> bool:
        return self.confidence < 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "implementation": self.implementation,
            "module": self.module,
            "declared_scope": self.declared_scope,
            "confidence": self.confidence,
            "candidates": [c.to_dict() for c in self.candidates],
        }


class PreferenceResolver:
    """Resolves every (interface, scope) conflict set once, then answers lookups."""

    def __init__(
        self,
        facts: Iterable[PreferenceFact],
        scopes: ScopeTree,
        order: ModuleOrder,
        policy: ConfidencePolicy = reciprocal_decay,
        warnings: WarningCollector | None = None,
    ) -> None:
        self._scopes = scopes
        self._order = order
        self._policy = policy
        self._groups: dict[tuple[str, str], Resolution] = {}
        self._interfaces: set[str] = set()

        grouped: dict[tuple[str, str], list[PreferenceFact]] = defaultdict(list)
        for fact in facts:
            grouped[(fact.interface, fact.scope)].append(fact)

        for key in sorted(grouped):
            resolution = self._resolve_group(key[0], key[1], grouped[key])
            self._groups[key] = resolution
            self._interfaces.add(key[0])
            if resolution.ambiguous and warnings is not None:
                warnings.add(
                    "ambiguous_resolution",
                    f"{len({c.implementation for c in resolution.candidates})} implementations "
                    f"compete for '{key[0]}' at scope '{key[1]}'; "
                    f"chose '{resolution.implementation}' ({resolution.confidence})",
                    source=resolution.module,
                )

        logger.debug("preferences_resolved", groups=len(self._groups))

    @property
    def group_count(self) -> int:
        return len(self._groups)

    def _resolve_group(
        self, interface: str, scope: str, facts: list[PreferenceFact]
    ) -> Resolution:
        candidates = sorted(
            (Candidate(f.implementation, f.module, f.evidence) for f in facts),
            key=lambda c: (self._order.position(c.module), c.implementation, c.module),
        )
        winner = candidates[-1]
        distinct = len({c.implementation for c in candidates})
        return Resolution(
            interface=interface,
            scope=scope,
            declared_scope=scope,
            implementation=winner.implementation,
            module=winner.module,
            confidence=self._policy(distinct),
            candidates=tuple(candidates),
        )

    def resolve(self, interface: str, scope: str) -> Resolution | None:
        """Result of the most specific scope in ``scope``'s chain that declares one."""
        for s in self._scopes.chain(scope):
            group = self._groups.get((interface, s))
            if group is not None:
                if s == scope:
                    return group
                return Resolution(
                    interface=group.interface,
                    scope=scope,
                    declared_scope=group.declared_scope,
                    implementation=group.implementation,
                    module=group.module,
                    confidence=group.confidence,
                    candidates=group.candidates,
                )
        return None

    def resolve_type(self, type_id: str, scope: str) -> str:
        """Follow preference chains (A -> B -> C) to the concrete type."""
        seen = {type_id}
        current = type_id
        while True:
            resolution = self.resolve(current, scope)
            if resolution is None or resolution.implementation in seen:
                return current
            current = resolution.implementation
            seen.add(current)

    def resolution_map(self) -> dict[str, dict[str, Resolution]]:
        """Every scope node -> every interface resolvable there."""
        out: dict[str, dict[str, Resolution]] = {}
        for scope in self._scopes.nodes():
            resolved: dict[str, Resolution] = {}
            for interface in sorted(self._interfaces):
                r = self.resolve(interface, scope)
                if r is not None:
                    resolved[interface] = r
            out[scope] = resolved
        return out

    def to_document(self) -> dict[str, Any]:
        return {
            "resolutions": {
                scope: {iface: r.to_dict() for iface, r in resolved.items()}
                for scope, resolved in self.resolution_map().items()
            },
        }
