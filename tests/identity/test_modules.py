"""Tests for module location and manifests."""

from pathlib import Path

import pytest

from ctxcompiler.config.constants import UNASSIGNED_MODULE
from ctxcompiler.core.cancel import CancellationToken
from ctxcompiler.core.errors import CompilationCancelled
from ctxcompiler.identity.modules import ModuleLocator, parse_module_manifest

MANIFEST = """<?xml version="1.0"?>
<config>
    <module name="{name}">
        <sequence>{deps}</sequence>
    </module>
</config>
"""


def make_module(repo: Path, root: str, name: str | None = None, deps: tuple[str, ...] = ()) -> Path:
    """Create a module root with registration.php and optionally etc/module.xml."""
    base = repo / root
    (base / "etc").mkdir(parents=True, exist_ok=True)
    (base / "registration.php").write_text("<?php\n")
    if name is not None:
        seq = "".join(f'<module name="{d}"/>' for d in deps)
        (base / "etc" / "module.xml").write_text(MANIFEST.format(name=name, deps=seq))
    return base


class CancelAfterChecks(CancellationToken):
    """Token that requests cancellation once ``allowed`` checks have passed."""

    def __init__(self, allowed: int) -> None:
        super().__init__()
        self.allowed = allowed
        self.checks = 0

    def check(self, phase: str) -> None:
        self.checks += 1
        if self.checks > self.allowed:
            self.cancel()
        super().check(phase)


class TestParseModuleManifest:
    def test_reads_name_and_sequence(self, tmp_path: Path) -> None:
        base = make_module(tmp_path, "m", "Pay_Gateway", ("Magento_Sales", "Magento_Quote"))

        manifest = parse_module_manifest(base / "etc" / "module.xml")

        assert manifest.name == "Pay_Gateway"
        assert manifest.sequence == ("Magento_Sales", "Magento_Quote")

    def test_malformed_xml_raises_value_error(self, tmp_path: Path) -> None:
        path = tmp_path / "module.xml"
        path.write_text("<config><module name=")

        with pytest.raises(ValueError, match="malformed"):
            parse_module_manifest(path)

    def test_missing_name_raises_value_error(self, tmp_path: Path) -> None:
        path = tmp_path / "module.xml"
        path.write_text("<config><module/></config>")

        with pytest.raises(ValueError):
            parse_module_manifest(path)


class TestModuleLocator:
    """File ownership from one pruned walk."""

    def test_given_modules_when_built_then_roots_and_files_found(self, tmp_path: Path) -> None:
        # Given
        make_module(tmp_path, "app/code/Pay/Gateway", "Pay_Gateway")
        model = tmp_path / "app/code/Pay/Gateway/Model/Charge.php"
        model.parent.mkdir(parents=True)
        model.write_text("<?php\n")

        # When
        locator = ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"])

        # Then
        assert locator.roots == {"app/code/Pay/Gateway": "Pay_Gateway"}
        assert "app/code/Pay/Gateway/Model/Charge.php" in locator.files
        assert locator.files == sorted(locator.files)
        assert locator.module_id("app/code/Pay/Gateway/Model/Charge.php") == "Pay_Gateway"

    def test_given_no_manifest_when_built_then_fallback_id(self, tmp_path: Path) -> None:
        make_module(tmp_path, "app/code/Acme/Tools")

        locator = ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"])

        assert locator.roots["app/code/Acme/Tools"] == "Acme_Tools"

    def test_given_nested_roots_when_resolved_then_nearest_wins(self, tmp_path: Path) -> None:
        make_module(tmp_path, "app/code/Outer/Mod", "Outer_Mod")
        make_module(tmp_path, "app/code/Outer/Mod/Inner", "Inner_Mod")

        locator = ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"])

        assert locator.module_id("app/code/Outer/Mod/Inner/A.php") == "Inner_Mod"
        assert locator.module_id("app/code/Outer/Mod/B.php") == "Outer_Mod"

    def test_given_file_outside_roots_when_resolved_then_unassigned(self, tmp_path: Path) -> None:
        make_module(tmp_path, "app/code/Pay/Gateway", "Pay_Gateway")

        locator = ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"])

        assert locator.module_id("lib/internal/Thing.php") == UNASSIGNED_MODULE
        assert locator.module_id("app/code/Pay/GatewayExtra/X.php") == UNASSIGNED_MODULE

    def test_given_prunable_dirs_when_walked_then_skipped(self, tmp_path: Path) -> None:
        make_module(tmp_path, "app/code/Pay/Gateway", "Pay_Gateway")
        junk = tmp_path / "app/code/Pay/Gateway/node_modules/x.js"
        junk.parent.mkdir(parents=True)
        junk.write_text("")

        locator = ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"])

        assert not any("node_modules" in f for f in locator.files)

    def test_given_exclude_dirs_when_walked_then_skipped(self, tmp_path: Path) -> None:
        make_module(tmp_path, "app/code/Pay/Gateway", "Pay_Gateway")
        fixture = tmp_path / "app/code/Pay/Gateway/Test/Fixture.php"
        fixture.parent.mkdir(parents=True)
        fixture.write_text("<?php\n")

        locator = ModuleLocator.build(
            tmp_path, ["app/code"], ["registration.php"], exclude_dirs=["Test"]
        )

        assert not any("/Test/" in f for f in locator.files)
        assert locator.roots == {"app/code/Pay/Gateway": "Pay_Gateway"}

    def test_given_missing_scan_path_when_built_then_empty(self, tmp_path: Path) -> None:
        locator = ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"])

        assert locator.roots == {}
        assert locator.files == []

    def test_given_symlinked_file_and_dir_when_walked_then_one_id_per_file(
        self, tmp_path: Path
    ) -> None:
        # Given
        make_module(tmp_path, "app/code/Pay/Gateway", "Pay_Gateway")
        model = tmp_path / "app/code/Pay/Gateway/Model"
        model.mkdir()
        (model / "Charge.php").write_text("<?php\n")
        (model / "Link.php").symlink_to(model / "Charge.php")
        (tmp_path / "app/code/Pay/Gateway/Alias").symlink_to(model, target_is_directory=True)

        # When
        locator = ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"])

        # Then
        assert locator.files.count("app/code/Pay/Gateway/Model/Charge.php") == 1
        assert not any("Link.php" in f or "/Alias/" in f for f in locator.files)

    def test_given_links_leaving_repo_or_dangling_when_walked_then_skipped(
        self, tmp_path: Path
    ) -> None:
        repo = tmp_path / "repo"
        make_module(repo, "app/code/Pay/Gateway", "Pay_Gateway")
        outside = tmp_path / "outside.php"
        outside.write_text("<?php\n")
        (repo / "app/code/Pay/Gateway/External.php").symlink_to(outside)
        (repo / "app/code/Pay/Gateway/Gone.php").symlink_to(repo / "missing.php")

        locator = ModuleLocator.build(repo, ["app/code"], ["registration.php"])

        assert locator.files == [
            "app/code/Pay/Gateway/etc/module.xml",
            "app/code/Pay/Gateway/registration.php",
        ]

    def test_given_cancel_mid_walk_when_built_then_raises(self, tmp_path: Path) -> None:
        # Given
        for name in ("Alpha", "Beta", "Gamma"):
            make_module(tmp_path, f"app/code/Pay/{name}", f"Pay_{name}")
        token = CancelAfterChecks(2)

        # When / Then
        with pytest.raises(CompilationCancelled) as exc_info:
            ModuleLocator.build(tmp_path, ["app/code"], ["registration.php"], token=token)
        assert exc_info.value.details["phase"] == "module walk"
        assert token.checks == 3
