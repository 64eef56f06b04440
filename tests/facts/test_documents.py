"""Tests for the fact document schema."""

import pytest
from pydantic import ValidationError

from ctxcompiler.config.constants import UNASSIGNED_MODULE
from ctxcompiler.facts.documents import FactDocument
from ctxcompiler.facts.models import EvidenceType, InterceptorKind


def owner(path: str) -> str:
    return "Pay_Gateway" if path.startswith("app/code/Pay/Gateway/") else UNASSIGNED_MODULE


class TestFactDocument:
    """Validation and conversion to fact records."""

    def test_given_mixed_records_when_converted_then_batch_filled(self) -> None:
        # Given
        doc = FactDocument.model_validate(
            {
                "module": "Pay_Gateway",
                "preferences": [
                    {
                        "interface": "Pay\\Gateway\\ChargeInterface",
                        "implementation": "Pay\\Gateway\\DefaultCharge",
                    }
                ],
                "interceptions": [
                    {
                        "target": "Pay\\Gateway\\DefaultCharge",
                        "methods": ["save"],
                        "interceptor": "Pay\\Gateway\\Plugin\\Audit",
                        "kind": "around",
                        "order": 10,
                    }
                ],
            }
        )

        # When
        batch = doc.to_batch("facts/pay.yaml", "fact_document", owner, UNASSIGNED_MODULE)

        # Then
        assert batch.collector == "fact_document"
        pref = batch.preferences[0]
        assert pref.scope == "global"
        assert pref.module == "Pay_Gateway"
        icpt = batch.interceptions[0]
        assert icpt.kind is InterceptorKind.AROUND
        assert icpt.methods == ("save",)
        assert icpt.order == 10

    def test_given_no_evidence_key_when_converted_then_points_at_document(self) -> None:
        """Records without an evidence key cite the document and their position."""
        doc = FactDocument.model_validate(
            {"subscriptions": [{"event": "order_placed", "subscriber": "A\\Obs"}]}
        )

        batch = doc.to_batch("facts/a.yaml", "fact_document", owner, "Default_Mod")

        evidence = batch.subscriptions[0].evidence
        assert len(evidence) == 1
        assert evidence[0].type is EvidenceType.DOCUMENT
        assert evidence[0].source_file == "facts/a.yaml"
        assert evidence[0].notes == "subscriptions[0]"
        assert batch.subscriptions[0].module == "Default_Mod"

    def test_given_explicit_empty_evidence_when_converted_then_none(self) -> None:
        doc = FactDocument.model_validate(
            {"dispatches": [{"event": "e", "dispatcher": "A", "method": "run", "evidence": []}]}
        )

        batch = doc.to_batch("facts/a.yaml", "fact_document", owner, UNASSIGNED_MODULE)

        assert batch.dispatches[0].evidence == ()

    def test_given_explicit_evidence_when_converted_then_kept(self) -> None:
        doc = FactDocument.model_validate(
            {
                "entry_points": [
                    {
                        "kind": "route",
                        "identifier": "checkout/index",
                        "implementation": "Pay\\Controller\\Index",
                        "evidence": [
                            {"type": "xml", "source_file": "etc/routes.xml", "line_start": 3}
                        ],
                    }
                ]
            }
        )

        batch = doc.to_batch("facts/a.yaml", "fact_document", owner, UNASSIGNED_MODULE)

        ep = batch.entry_points[0]
        assert ep.id == "route:checkout/index"
        assert ep.evidence[0].type is EvidenceType.XML
        assert ep.evidence[0].line_start == 3

    def test_given_symbol_with_file_when_converted_then_module_from_locator(self) -> None:
        """A symbol naming a file inside a module belongs to that module."""
        doc = FactDocument.model_validate(
            {
                "module": "Doc_Module",
                "symbols": [
                    {"id": "Pay\\Gateway\\Charge", "file": "app/code/Pay/Gateway/Charge.php"},
                    {"id": "Lib\\Thing", "file": "lib/Thing.php"},
                ],
            }
        )

        batch = doc.to_batch("facts/a.yaml", "fact_document", owner, UNASSIGNED_MODULE)

        modules = {s.id: s.module for s in batch.symbols}
        assert modules == {"Pay\\Gateway\\Charge": "Pay_Gateway", "Lib\\Thing": "Doc_Module"}

    @pytest.mark.parametrize(
        "data",
        [
            {
                "interceptions": [
                    {"target": "A", "methods": [], "interceptor": "B", "kind": "around"}
                ]
            },
            {
                "interceptions": [
                    {"target": "A", "methods": ["x"], "interceptor": "B", "kind": "wrap"}
                ]
            },
            {"entry_points": [{"kind": "webhook", "identifier": "x", "implementation": "A"}]},
            {"preferences": [{"interface": "A"}]},
            {"unknown_section": []},
        ],
    )
    def test_given_invalid_document_when_validated_then_rejected(self, data: dict) -> None:
        with pytest.raises(ValidationError):
            FactDocument.model_validate(data)
