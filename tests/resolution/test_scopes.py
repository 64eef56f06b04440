"""Tests for the scope tree."""

import pytest

from ctxcompiler.config.models import ScopeConfig
from ctxcompiler.core.errors import ConfigError
from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.resolution.scopes import ScopeTree


def make_tree(**parents: str) -> ScopeTree:
    return ScopeTree.build(ScopeConfig(parents=parents))


class TestScopeTree:
    def test_chain_runs_most_specific_first(self) -> None:
        tree = make_tree(frontend="global", checkout="frontend")

        assert tree.chain("checkout") == ("checkout", "frontend", "global")
        assert tree.chain("global") == ("global",)
        assert tree.depth("checkout") == 2

    def test_unknown_scope_is_child_of_root(self) -> None:
        tree = make_tree(frontend="global")

        assert tree.chain("Admin") == ("admin", "global")

    def test_nodes_root_first_then_sorted(self) -> None:
        tree = make_tree(frontend="global", adminhtml="global", checkout="frontend")

        assert tree.nodes() == ("global", "adminhtml", "checkout", "frontend")
        assert "checkout" in tree
        assert "nowhere" not in tree

    def test_observed_scopes_attached_with_warning(self) -> None:
        """Scopes that facts use but config lacks hang under the root."""
        # Given
        warnings = WarningCollector()

        # When
        tree = ScopeTree.build(
            ScopeConfig(parents={"frontend": "global"}),
            observed=["checkout", "frontend", "global"],
            warnings=warnings,
        )

        # Then
        assert tree.parents["checkout"] == "global"
        assert warnings.count_by_category()["unknown_scope"] == 1

    def test_contradictory_config_raises(self) -> None:
        with pytest.raises(ConfigError):
            ScopeTree.build(ScopeConfig(parents={"a": "b", "b": "a"}))
