"""Deterministic module load order.

A lexicographic topological sort of the sequence dependency graph: a
dependency always loads before its dependents, and among modules that are
ready at the same time the smallest id loads first.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import networkx as nx
import structlog

from ctxcompiler.core.errors import IntegrityViolation
from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.facts.models import Module

logger = structlog.get_logger()


@dataclass(frozen=True)
class ModuleOrder:
    """Load order of declared modules followed by undeclared referenced ones."""

    order: tuple[str, ...]
    declared: frozenset[str] = frozenset()
    _positions: dict[str, int] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        self._positions.update({m: i for i, m in enumerate(self.order)})

    def position(self, module: str) -> int:
        """Load position; modules never seen sort after everything known."""
        return self._positions.get(module, len(self.order))

    def to_document(self) -> dict[str, Any]:
        return {
            "order": [
                {"module": m, "position": i, "declared": m in self.declared}
                for i, m in enumerate(self.order)
            ],
        }


def _dependency_graph(
    declared: dict[str, Module], warnings: WarningCollector | None
) -> nx.DiGraph:
    """Edge ``a -> b`` means module ``a`` depends on ``b``."""
    graph = nx.DiGraph()
    graph.add_nodes_from(sorted(declared))
    for mid in sorted(declared):
        for dep in declared[mid].sequence:
            if dep == mid:
                continue
            if dep not in declared:
                if warnings is not None:
                    warnings.add(
                        "missing_module",
                        f"module '{mid}' depends on undeclared module '{dep}'",
                        source=mid,
                    )
                continue
            graph.add_edge(mid, dep)
    return graph


def compute_module_order(
    modules: Iterable[Module],
    referenced: Iterable[str] = (),
    warnings: WarningCollector | None = None,
) -> ModuleOrder:
    """Topologically order modules.

    Raises:
        IntegrityViolation: The sequence dependencies contain a cycle.
    """
    declared = {m.id: m for m in modules}
    graph = _dependency_graph(declared, warnings)

    try:
        order = list(nx.lexicographical_topological_sort(graph.reverse(copy=False)))
    except nx.NetworkXUnfeasible as e:
        edges = nx.find_cycle(graph)
        cycle = [u for u, _ in edges] + [edges[0][0]]
        logger.error("module_cycle", cycle=cycle)
        raise IntegrityViolation.module_cycle(cycle) from e

    extra = sorted(set(referenced) - set(declared))
    logger.debug("module_order_computed", declared=len(order), undeclared=len(extra))
    return ModuleOrder(order=tuple(order + extra), declared=frozenset(declared))
