"""Tests for directory pruning rules."""

import pytest

from ctxcompiler.core.excludes import ALWAYS_PRUNED, pruned_dirs


class TestPrunedDirs:
    @pytest.mark.parametrize("name", [".git", ".ctxcompiler", ".ai-context", "generated", "var"])
    def test_prunes_known_dirs(self, name: str) -> None:
        assert name in pruned_dirs()

    @pytest.mark.parametrize("name", ["app", "code", "Model", "etc", "Plugin"])
    def test_keeps_source_dirs(self, name: str) -> None:
        assert name not in pruned_dirs()

    def test_extra_dirs_are_added(self) -> None:
        assert "Test" in pruned_dirs(["Test/"])
        assert "Test" not in pruned_dirs()

    def test_extra_never_removes_defaults(self) -> None:
        assert ALWAYS_PRUNED <= pruned_dirs([" ", "fixtures"])
