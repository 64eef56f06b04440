"""Atomic output writing and the run manifest.

Documents are written into a temporary sibling of the output directory,
verified there, and swapped in with directory renames. A failed run leaves
the previous output untouched; the output directory is owned by ctxcompiler
and replaced as a whole.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Any

import structlog

from ctxcompiler.config.constants import SCHEMA_VERSION, TOOL_NAME, TOOL_VERSION
from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.output.canonical import sha256
from ctxcompiler.output.validator import DeterminismValidator

logger = structlog.get_logger()


def build_hash(rendered: dict[str, str]) -> str:
    """Hash over every document's name and content hash, in name order."""
    lines = "".join(f"{name}:{sha256(rendered[name])}\n" for name in sorted(rendered))
    return sha256(lines)


def build_manifest(
    rendered: dict[str, str],
    warnings: WarningCollector,
    summary: dict[str, Any],
) -> dict[str, Any]:
    """Manifest without timestamps or durations, so unchanged input gives identical bytes."""
    return {
        "tool": TOOL_NAME,
        "version": TOOL_VERSION,
        "schema_version": SCHEMA_VERSION,
        "documents": [
            {
                "name": name,
                "sha256": sha256(rendered[name]),
                "bytes": len(rendered[name].encode("utf-8")),
            }
            for name in sorted(rendered)
        ],
        "build_hash": build_hash(rendered),
        "summary": summary,
        "warnings": {
            "items": warnings.to_list(),
            **warnings.summary(),
        },
    }


class OutputWriter:
    def __init__(
        self,
        out_dir: Path,
        validator: DeterminismValidator,
        verify: bool = True,
    ) -> None:
        self.out_dir = out_dir
        self._validator = validator
        self._verify = verify

    def write(self, rendered: dict[str, str]) -> None:
        """Write, verify and swap in all documents, or leave the old output as it was."""
        parent = self.out_dir.parent
        parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{self.out_dir.name}.", suffix=".tmp", dir=parent))

        try:
            for name in sorted(rendered):
                with (staging / name).open("w", encoding="utf-8", newline="\n") as f:
                    f.write(rendered[name])
            if self._verify:
                self._validator.verify(staging, rendered)
            self._swap(staging)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info("output_written", out_dir=str(self.out_dir), documents=len(rendered))

    def _swap(self, staging: Path) -> None:
        backup: Path | None = None
        if self.out_dir.exists():
            backup = staging.with_name(staging.name + ".old")
            self.out_dir.rename(backup)
        try:
            staging.rename(self.out_dir)
        except OSError:
            if backup is not None:
                backup.rename(self.out_dir)
            raise
        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)
