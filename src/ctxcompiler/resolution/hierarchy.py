"""Type ancestry over ``extends`` / ``implements`` edges."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from ctxcompiler.facts.models import Symbol


class TypeHierarchy:
    """Breadth-first ancestry with a seen-set, safe on cyclic declarations."""

    def __init__(self, symbols: Iterable[Symbol]) -> None:
        self._parents: dict[str, tuple[str, ...]] = {
            s.id: tuple(sorted(s.parents)) for s in symbols
        }
        self._cache: dict[str, dict[str, int]] = {}

    def distances(self, type_id: str) -> dict[str, int]:
        """``type_id`` and every ancestor mapped to its edge distance (self is 0)."""
        cached = self._cache.get(type_id)
        if cached is not None:
            return cached

        dist = {type_id: 0}
        queue = deque([type_id])
        while queue:
            current = queue.popleft()
            for parent in self._parents.get(current, ()):
                if parent not in dist:
                    dist[parent] = dist[current] + 1
                    queue.append(parent)

        self._cache[type_id] = dist
        return dist

    def ancestors(self, type_id: str) -> tuple[str, ...]:
        return tuple(sorted(k for k in self.distances(type_id) if k != type_id))

    def known(self) -> tuple[str, ...]:
        return tuple(sorted(self._parents))
