"""End-to-end tests for the compilation pipeline."""

import json
from pathlib import Path

import pytest

from ctxcompiler.compiler import DOCUMENTS, Compiler
from ctxcompiler.config.constants import FACTS_DIR, MANIFEST_NAME
from ctxcompiler.config.models import CtxCompilerConfig
from ctxcompiler.core.cancel import CancellationToken
from ctxcompiler.core.errors import CompilationCancelled, ErrorCode, IntegrityViolation

MODULE_XML = '<config><module name="{name}"><sequence>{deps}</sequence></module></config>'

FACTS_YAML = """\
module: Pay_Gateway
preferences:
  - interface: Pay\\Gateway\\ChargeInterface
    implementation: Pay\\Gateway\\DefaultCharge
  - interface: Pay\\Gateway\\ChargeInterface
    implementation: Pay\\Gateway\\FastCharge
    scope: frontend
interceptions:
  - target: Pay\\Gateway\\FastCharge
    methods: [execute]
    interceptor: Pay\\Gateway\\Plugin\\Audit
    kind: around
    order: 10
subscriptions:
  - event: charge_done
    subscriber: Acme\\Base\\Observer\\Log
    module: Acme_Base
entry_points:
  - kind: route
    identifier: checkout/charge
    implementation: Pay\\Gateway\\ChargeInterface
    scope: frontend
dispatches:
  - event: charge_done
    dispatcher: Pay\\Gateway\\FastCharge
    method: execute
"""


def add_module(repo: Path, path: str, name: str, deps: tuple[str, ...] = ()) -> None:
    root = repo / path
    (root / "etc").mkdir(parents=True)
    (root / "registration.php").write_text("<?php\n")
    sequence = "".join(f'<module name="{d}"/>' for d in deps)
    (root / "etc/module.xml").write_text(MODULE_XML.format(name=name, deps=sequence))


def make_repo(tmp_path: Path) -> Path:
    add_module(tmp_path, "app/code/Pay/Gateway", "Pay_Gateway", ("Acme_Base",))
    add_module(tmp_path, "app/code/Acme/Base", "Acme_Base")
    (tmp_path / "app/code/Pay/Gateway/Model").mkdir()
    (tmp_path / "app/code/Pay/Gateway/Model/FastCharge.php").write_text("<?php\n")
    facts = tmp_path / FACTS_DIR
    facts.mkdir(parents=True)
    (facts / "pay.yaml").write_text(FACTS_YAML)
    return tmp_path


def read_docs(out_dir: Path) -> dict[str, bytes]:
    return {p.name: p.read_bytes() for p in sorted(out_dir.iterdir())}


class TestCompile:
    def test_writes_every_document_and_manifest(self, tmp_path: Path) -> None:
        # Given
        repo = make_repo(tmp_path)

        # When
        result = Compiler(repo, CtxCompilerConfig()).run()

        # Then
        assert result.written is True
        assert set(read_docs(result.out_dir)) == {*DOCUMENTS, MANIFEST_NAME}
        manifest = json.loads((result.out_dir / MANIFEST_NAME).read_text())
        assert manifest["build_hash"] == result.build_hash
        assert manifest["summary"]["execution_paths"] == 1

    def test_second_run_is_byte_identical(self, tmp_path: Path) -> None:
        """Unchanged input gives identical bytes, manifest included."""
        # Given
        repo = make_repo(tmp_path)
        first = Compiler(repo, CtxCompilerConfig()).run()
        before = read_docs(first.out_dir)

        # When
        second = Compiler(repo, CtxCompilerConfig()).run()

        # Then
        assert read_docs(second.out_dir) == before
        assert second.build_hash == first.build_hash

    def test_scope_specific_preference_wins_below_its_scope(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path)

        result = Compiler(repo, CtxCompilerConfig()).run()

        resolutions = json.loads(result.rendered["preferences.json"])["resolutions"]
        iface = "pay\\gateway\\chargeinterface"
        assert resolutions["global"][iface]["implementation"] == "pay\\gateway\\defaultcharge"
        assert resolutions["frontend"][iface]["implementation"] == "pay\\gateway\\fastcharge"
        assert resolutions["adminhtml"][iface]["implementation"] == "pay\\gateway\\defaultcharge"

    def test_execution_path_follows_di_and_events(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path)

        result = Compiler(repo, CtxCompilerConfig()).run()

        path = json.loads(result.rendered["execution_paths.json"])["paths"]["route:checkout/charge"]
        assert [n["class"] for n in path["nodes"]] == [
            "pay\\gateway\\fastcharge",
            "acme\\base\\observer\\log",
        ]
        assert path["nodes"][0]["interceptors"][0]["interceptor"] == "pay\\gateway\\plugin\\audit"
        assert path["nodes"][1]["via_event"] == "charge_done"
        assert path["truncated"] is False

    def test_reverse_index_links_resolutions_and_paths(self, tmp_path: Path) -> None:
        # Given
        repo = make_repo(tmp_path)

        # When
        result = Compiler(repo, CtxCompilerConfig()).run()

        # Then
        reverse = json.loads(result.rendered["reverse_index.json"])
        entry = reverse["by_entry_point"]["route:checkout/charge"]["refs"]
        assert {r["class"] for r in entry if r["role"] == "node"} == {
            "pay\\gateway\\fastcharge",
            "acme\\base\\observer\\log",
        }
        hooks = [r["interceptor"] for r in entry if r["role"] == "interceptor"]
        assert hooks == ["pay\\gateway\\plugin\\audit"]
        fast = reverse["by_symbol"]["pay\\gateway\\fastcharge"]["refs"]
        winner_scopes = {
            r["scope"] for r in fast if (r["fact"], r["role"]) == ("resolution", "winner")
        }
        assert winner_scopes == {"frontend"}
        fan_out = reverse["by_event"]["charge_done"]["fan_out"]
        assert fan_out["global"]["subscriber_count"] == 1
        assert fan_out["global"]["risk"] == 0.0

    def test_module_order_respects_sequence(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path)

        result = Compiler(repo, CtxCompilerConfig()).run()

        doc = json.loads(result.rendered["module_order.json"])
        order = [entry["module"] for entry in doc["order"]]
        assert order.index("Acme_Base") < order.index("Pay_Gateway")
        assert doc["scopes"]["frontend"]["chain"] == ["frontend", "global"]

    def test_dry_run_writes_nothing(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path)

        result = Compiler(repo, CtxCompilerConfig()).run(write=False)

        assert result.written is False
        assert not result.out_dir.exists()
        assert sorted(result.rendered) == result.documents


class TestFailures:
    def test_module_cycle_aborts_before_writing(self, tmp_path: Path) -> None:
        # Given
        add_module(tmp_path, "app/code/A/One", "A_One", ("B_Two",))
        add_module(tmp_path, "app/code/B/Two", "B_Two", ("A_One",))
        compiler = Compiler(tmp_path, CtxCompilerConfig())

        # When
        with pytest.raises(IntegrityViolation) as exc_info:
            compiler.run()

        # Then
        assert exc_info.value.code == ErrorCode.INTEGRITY_MODULE_CYCLE
        assert not compiler.out_dir.exists()

    def test_cancellation_keeps_previous_output(self, tmp_path: Path) -> None:
        # Given
        repo = make_repo(tmp_path)
        first = Compiler(repo, CtxCompilerConfig()).run()
        before = read_docs(first.out_dir)
        token = CancellationToken()
        token.cancel()

        # When
        with pytest.raises(CompilationCancelled):
            Compiler(repo, CtxCompilerConfig(), token=token).run()

        # Then
        assert read_docs(first.out_dir) == before

    def test_bad_fact_document_degrades_integrity(self, tmp_path: Path) -> None:
        repo = make_repo(tmp_path)
        (repo / FACTS_DIR / "broken.yaml").write_text("preferences: [{interface: x}]\n")

        result = Compiler(repo, CtxCompilerConfig()).run(write=False)

        warnings = result.manifest["warnings"]
        assert warnings["counts"]["fact_collection"] == 1
        assert warnings["degraded"] is True
