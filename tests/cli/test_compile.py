"""Tests for ctxc compile command."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from ctxcompiler.cli.main import cli
from ctxcompiler.compiler import DOCUMENTS
from ctxcompiler.config.constants import CONFIG_DIR, DEFAULT_OUTPUT_DIR, FACTS_DIR, MANIFEST_NAME

runner = CliRunner()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """One module and a fact document with a single preference."""
    module = tmp_path / "app/code/Pay/Gateway"
    (module / "etc").mkdir(parents=True)
    (module / "registration.php").write_text("<?php\n")
    (module / "etc/module.xml").write_text('<config><module name="Pay_Gateway"/></config>')
    facts = tmp_path / FACTS_DIR
    facts.mkdir(parents=True)
    (facts / "pay.yaml").write_text(
        "module: Pay_Gateway\n"
        "preferences:\n"
        "  - interface: Pay\\Gateway\\ChargeInterface\n"
        "    implementation: Pay\\Gateway\\DefaultCharge\n"
    )
    return tmp_path


class TestCompileCommand:
    """ctxc compile command tests."""

    def test_given_repo_when_compile_then_writes_documents(self, repo: Path) -> None:
        # When
        result = runner.invoke(cli, ["compile", str(repo)])

        # Then
        assert result.exit_code == 0, result.output
        out = repo / DEFAULT_OUTPUT_DIR
        assert {p.name for p in out.iterdir()} == {*DOCUMENTS, MANIFEST_NAME}
        assert "Build hash" in result.output

    def test_given_out_option_when_compile_then_writes_there(self, repo: Path) -> None:
        result = runner.invoke(cli, ["compile", str(repo), "--out", "build/ctx"])

        assert result.exit_code == 0, result.output
        assert (repo / "build/ctx" / MANIFEST_NAME).is_file()
        assert not (repo / DEFAULT_OUTPUT_DIR).exists()

    def test_given_dry_run_when_compile_then_nothing_written(self, repo: Path) -> None:
        result = runner.invoke(cli, ["compile", str(repo), "--dry-run"])

        assert result.exit_code == 0, result.output
        assert not (repo / DEFAULT_OUTPUT_DIR).exists()
        assert "dry run" in result.output

    def test_given_json_flag_when_compile_then_prints_manifest(self, repo: Path) -> None:
        result = runner.invoke(cli, ["compile", str(repo), "--json"])

        assert result.exit_code == 0, result.output
        manifest = json.loads(result.stdout)
        assert manifest["tool"] == "ctxcompiler"
        assert len(manifest["documents"]) == len(DOCUMENTS)

    def test_given_invalid_config_when_compile_then_exits_with_config_code(
        self, repo: Path
    ) -> None:
        # Given
        (repo / CONFIG_DIR / "config.yaml").write_text("traversal: [unclosed\n")

        # When
        result = runner.invoke(cli, ["compile", str(repo)])

        # Then
        assert result.exit_code == 2
        assert "CONFIG_PARSE_ERROR" in result.output
        assert not (repo / DEFAULT_OUTPUT_DIR).exists()

    def test_given_module_cycle_when_compile_then_exits_with_integrity_code(
        self, tmp_path: Path
    ) -> None:
        (tmp_path / CONFIG_DIR).mkdir()
        for name, dep in (("A_One", "B_Two"), ("B_Two", "A_One")):
            module = tmp_path / "app/code" / name
            (module / "etc").mkdir(parents=True)
            (module / "etc/module.xml").write_text(
                f'<config><module name="{name}"><sequence><module name="{dep}"/>'
                "</sequence></module></config>"
            )

        result = runner.invoke(cli, ["compile", str(tmp_path)])

        assert result.exit_code == 4
        assert "INTEGRITY_MODULE_CYCLE" in result.output

    def test_given_verbose_when_compile_then_configured_log_file_written(
        self, repo: Path
    ) -> None:
        # Given
        log_file = repo / "logs" / "ctxc.log"
        (repo / CONFIG_DIR).mkdir(exist_ok=True)
        (repo / CONFIG_DIR / "config.yaml").write_text(
            "logging:\n"
            "  outputs:\n"
            "    - destination: stderr\n"
            f"    - destination: {log_file}\n"
            "      format: json\n"
        )

        # When
        result = runner.invoke(cli, ["-v", "compile", str(repo)])

        # Then
        assert result.exit_code == 0, result.output
        assert '"compile_done"' in log_file.read_text()
