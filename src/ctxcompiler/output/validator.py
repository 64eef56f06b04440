"""Determinism validation: canonical rendering, resource ceilings, verification."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from ctxcompiler.config.constants import MANIFEST_NAME, MIN_REVERSE_INDEX_REFS_PER_KEY
from ctxcompiler.config.models import LimitsConfig
from ctxcompiler.core.errors import IntegrityViolation, ResourceLimitExceeded
from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.index.builder import REVERSE_MAPS
from ctxcompiler.output.canonical import (
    CanonicalStats,
    canonicalize,
    dumps,
    first_difference,
    sha256,
)

logger = structlog.get_logger()

REVERSE_INDEX_NAME = "reverse_index.json"


def _truncate_refs(doc: dict[str, Any], cap: int) -> tuple[dict[str, Any], int]:
    """Keep the first ``cap`` refs per key. Keys are never dropped."""
    truncated = 0
    out: dict[str, Any] = {}
    for name, entries in doc.items():
        if name not in REVERSE_MAPS:
            out[name] = entries
            continue
        new_entries: dict[str, Any] = {}
        for key, entry in entries.items():
            refs = entry.get("refs", [])
            if len(refs) > cap:
                truncated += 1
                new_entries[key] = {**entry, "refs": refs[:cap], "truncated": True}
            else:
                new_entries[key] = entry
        out[name] = new_entries
    return out, truncated


class DeterminismValidator:
    """Renders documents canonically and verifies written output byte for byte."""

    def __init__(self, limits: LimitsConfig, warnings: WarningCollector) -> None:
        self._limits = limits
        self._warnings = warnings

    def render(self, name: str, document: dict[str, Any]) -> str:
        cap = self._limits.max_evidence_per_fact
        stats = CanonicalStats()
        doc = canonicalize(document, evidence_cap=cap, stats=stats)
        if stats.truncated_evidence_lists:
            self._warnings.add_error(
                ResourceLimitExceeded.evidence_cap(name, stats.truncated_evidence_lists, cap),
                "resource_limit",
                source=name,
            )
        if name == REVERSE_INDEX_NAME:
            doc = self._apply_ceilings(doc)
        return dumps(doc)

    def _apply_ceilings(self, doc: dict[str, Any]) -> dict[str, Any]:
        cap = self._limits.max_reverse_index_refs_per_key
        ceiling = int(self._limits.max_reverse_index_size_mb * 1024 * 1024)

        result, truncated = _truncate_refs(doc, cap)
        if truncated:
            self._warnings.add_error(
                ResourceLimitExceeded.index_ceiling("refs per key", truncated, cap),
                "resource_limit",
                source=REVERSE_INDEX_NAME,
            )

        size = len(dumps(result).encode("utf-8"))
        if size <= ceiling:
            return result

        original_size = size
        while size > ceiling and cap > MIN_REVERSE_INDEX_REFS_PER_KEY:
            cap = max(MIN_REVERSE_INDEX_REFS_PER_KEY, cap // 2)
            result, _ = _truncate_refs(doc, cap)
            size = len(dumps(result).encode("utf-8"))

        self._warnings.add_error(
            ResourceLimitExceeded.index_ceiling("size in bytes", original_size, ceiling),
            "resource_limit",
            source=REVERSE_INDEX_NAME,
        )
        logger.warning(
            "reverse_index_shrunk",
            original_bytes=original_size,
            final_bytes=size,
            refs_per_key=cap,
        )
        return result

    def verify(self, directory: Path, rendered: dict[str, str]) -> None:
        """Reload every written document and compare it to its in-memory canonical form.

        Raises:
            IntegrityViolation: A document differs; names it and the first differing key path.
        """
        for name in sorted(rendered):
            expected = rendered[name]
            text = (directory / name).read_text(encoding="utf-8")
            reloaded = json.loads(text)
            again = dumps(canonicalize(reloaded))
            if text != expected or again != expected:
                path = first_difference(json.loads(expected), reloaded)
                if path is None:
                    path = first_difference(json.loads(expected), json.loads(again)) or "$"
                logger.error("determinism_mismatch", document=name, key_path=path)
                raise IntegrityViolation.determinism_mismatch(name, path)
        logger.debug("output_verified", documents=len(rendered))


def verify_output(out_dir: Path) -> list[IntegrityViolation]:
    """Check an existing output directory against its manifest.

    Every listed document must exist, match its recorded sha256 and already be
    in canonical form.
    """
    problems: list[IntegrityViolation] = []
    manifest_path = out_dir / MANIFEST_NAME
    if not manifest_path.is_file():
        return [IntegrityViolation.determinism_mismatch(MANIFEST_NAME, "$ (missing)")]

    manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    for doc in manifest.get("documents", []):
        name = doc["name"]
        path = out_dir / name
        if not path.is_file():
            problems.append(IntegrityViolation.determinism_mismatch(name, "$ (missing)"))
            continue
        text = path.read_text(encoding="utf-8")
        if sha256(text) != doc["sha256"]:
            problems.append(IntegrityViolation.determinism_mismatch(name, "$ (sha256)"))
            continue
        loaded = json.loads(text)
        again = dumps(canonicalize(loaded))
        if again != text:
            key_path = first_difference(loaded, json.loads(again)) or "$ (formatting)"
            problems.append(IntegrityViolation.determinism_mismatch(name, key_path))

    logger.info(
        "output_checked",
        documents=len(manifest.get("documents", [])),
        problems=len(problems),
    )
    return problems
