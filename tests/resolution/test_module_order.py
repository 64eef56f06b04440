"""Tests for module load order."""

import random

import pytest

from ctxcompiler.core.errors import IntegrityViolation
from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.facts.models import Module
from ctxcompiler.resolution.module_order import compute_module_order


def mod(mid: str, *deps: str) -> Module:
    return Module(mid, f"app/code/{mid}", sequence=deps)


class TestComputeModuleOrder:
    def test_dependencies_load_first(self) -> None:
        order = compute_module_order([mod("C", "B"), mod("B", "A"), mod("A")])

        assert order.order == ("A", "B", "C")
        assert order.position("A") < order.position("C")

    def test_ties_broken_lexicographically(self) -> None:
        order = compute_module_order([mod("Zed"), mod("Alpha"), mod("Mid", "Zed")])

        assert order.order == ("Alpha", "Zed", "Mid")

    def test_input_order_does_not_matter(self) -> None:
        modules = [mod("A"), mod("B", "A"), mod("C", "A"), mod("D", "B", "C"), mod("E")]
        shuffled = modules[:]
        random.Random(3).shuffle(shuffled)

        assert compute_module_order(modules).order == compute_module_order(shuffled).order

    def test_undeclared_dependency_warns_and_is_ignored(self) -> None:
        warnings = WarningCollector()

        order = compute_module_order([mod("A", "Ghost")], warnings=warnings)

        assert order.order == ("A",)
        assert warnings.count_by_category()["missing_module"] == 1

    def test_referenced_undeclared_modules_sort_last(self) -> None:
        order = compute_module_order([mod("B")], referenced=["Zulu", "Alpha", "B"])

        assert order.order == ("B", "Alpha", "Zulu")
        assert order.declared == frozenset({"B"})
        assert order.position("never_seen") == 3

    def test_cycle_is_fatal_and_named(self) -> None:
        with pytest.raises(IntegrityViolation) as exc_info:
            compute_module_order([mod("A", "B"), mod("B", "A"), mod("C")])

        cycle = exc_info.value.details["cycle"]
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"A", "B"}

    def test_cycle_names_only_its_members(self) -> None:
        """A module that merely depends on a cycle is not part of it."""
        with pytest.raises(IntegrityViolation) as exc_info:
            compute_module_order([mod("A", "B"), mod("B", "C"), mod("C", "B")])

        assert exc_info.value.details["cycle"] == ["B", "C", "B"]
        assert "B -> C -> B" in exc_info.value.message

    def test_document_lists_positions(self) -> None:
        doc = compute_module_order([mod("B", "A"), mod("A")], referenced=["X"]).to_document()

        assert doc["order"] == [
            {"module": "A", "position": 0, "declared": True},
            {"module": "B", "position": 1, "declared": True},
            {"module": "X", "position": 2, "declared": False},
        ]
