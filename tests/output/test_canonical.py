"""Tests for canonical document form."""

from ctxcompiler.output.canonical import (
    CanonicalStats,
    canonicalize,
    dumps,
    first_difference,
    sha256,
)


class TestCanonicalize:
    def test_keys_sorted_at_every_level(self) -> None:
        doc = canonicalize({"b": {"z": 1, "a": 2}, "a": 0})

        assert list(doc) == ["a", "b"]
        assert list(doc["b"]) == ["a", "z"]

    def test_unnamed_lists_sorted_by_content(self) -> None:
        doc = canonicalize({"modules": ["b", "a", "c"], "refs": [{"k": 2}, {"k": 1}]})

        assert doc["modules"] == ["a", "b", "c"]
        assert doc["refs"] == [{"k": 1}, {"k": 2}]

    def test_ordered_collections_keep_computed_order(self) -> None:
        """Chains, call plans and path nodes are meaningful in the order given."""
        doc = canonicalize({"entries": ["p2", "p1"], "after": [3, 1, 2], "chain": ["b", "a"]})

        assert doc == {"after": [3, 1, 2], "chain": ["b", "a"], "entries": ["p2", "p1"]}

    def test_events_sorted_by_event_id(self) -> None:
        doc = canonicalize({"events": [{"event": "b", "risk": 0}, {"event": "a", "risk": 1}]})

        assert [e["event"] for e in doc["events"]] == ["a", "b"]

    def test_manifest_warnings_sorted_by_category_then_source(self) -> None:
        items = [
            {"category": "general", "code": 1, "source": "b", "message": "a"},
            {"category": "general", "code": 9, "source": "a", "message": "z"},
        ]

        doc = canonicalize({"warnings": {"items": items}})

        assert [w["source"] for w in doc["warnings"]["items"]] == ["a", "b"]

    def test_evidence_sorted_then_capped(self) -> None:
        # Given
        evidence = [
            {"type": "xml", "source_file": "c.xml"},
            {"type": "xml", "source_file": "a.xml", "line_start": 9},
            {"type": "xml", "source_file": "a.xml", "line_start": 2},
            {"type": "xml", "source_file": "b.xml"},
        ]
        stats = CanonicalStats()

        # When
        doc = canonicalize({"evidence": evidence}, evidence_cap=2, stats=stats)

        # Then
        assert [(e["source_file"], e.get("line_start")) for e in doc["evidence"]] == [
            ("a.xml", 2),
            ("a.xml", 9),
        ]
        assert stats.truncated_evidence_lists == 1

    def test_input_order_does_not_matter(self) -> None:
        a = {"refs": [{"x": 1}, {"y": 2}], "meta": {"b": 1, "a": 2}}
        b = {"meta": {"a": 2, "b": 1}, "refs": [{"y": 2}, {"x": 1}]}

        assert dumps(canonicalize(a)) == dumps(canonicalize(b))


class TestSerialization:
    def test_dumps_format(self) -> None:
        text = dumps({"b": 1, "a": "é"})

        assert text == '{\n  "a": "é",\n  "b": 1\n}\n'

    def test_sha256_of_utf8(self) -> None:
        assert sha256("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


class TestFirstDifference:
    def test_equal_values(self) -> None:
        assert first_difference({"a": [1, 2]}, {"a": [1, 2]}) is None

    def test_reports_key_path(self) -> None:
        assert first_difference({"a": {"b": [1, 2]}}, {"a": {"b": [1, 3]}}) == "$.a.b[1]"

    def test_missing_key_and_length(self) -> None:
        assert first_difference({"a": 1}, {"a": 1, "b": 2}) == "$.b"
        assert first_difference([1], [1, 2]) == "$[1]"
        assert first_difference({"a": 1}, {"a": "1"}) == "$.a"
