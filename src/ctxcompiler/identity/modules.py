"""File -> module ownership.

One pruned walk over the configured scan paths locates every module root (a
directory containing any configured marker file) and records every file seen.
A file belongs to the nearest enclosing module root; files outside every root
belong to ``unassigned``.
"""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import structlog

from ctxcompiler.config.constants import UNASSIGNED_MODULE
from ctxcompiler.core.cancel import CancellationToken
from ctxcompiler.core.errors import InternalError
from ctxcompiler.core.excludes import pruned_dirs
from ctxcompiler.identity.ids import file_id, normalize_file_id
from ctxcompiler.identity.ids import module_id as normalize_module_id

logger = structlog.get_logger()

MODULE_MANIFEST = "etc/module.xml"


@dataclass(frozen=True, slots=True)
class ModuleManifest:
    """Declared name and load-order dependencies from ``etc/module.xml``."""

    name: str
    sequence: tuple[str, ...] = ()


def parse_module_manifest(path: Path) -> ModuleManifest:
    """Parse ``<module name="..."><sequence><module name="..."/></sequence></module>``.

    Raises:
        ValueError: The file is not well-formed or declares no module name.
    """
    try:
        tree = ET.parse(path)
    except ET.ParseError as e:
        raise ValueError(f"malformed XML: {e}") from e

    root = tree.getroot()
    node = root if root.tag == "module" else root.find("module")
    if node is None or not node.get("name", "").strip():
        raise ValueError("no <module name=...> element")

    sequence: list[str] = []
    seq = node.find("sequence")
    if seq is not None:
        for dep in seq.findall("module"):
            dep_name = dep.get("name", "").strip()
            if dep_name:
                sequence.append(normalize_module_id(dep_name))

    return ModuleManifest(name=normalize_module_id(node.get("name", "")), sequence=tuple(sequence))


def _fallback_module_id(root: str) -> str:
    """``app/code/Pay/Gateway`` -> ``Pay_Gateway``."""
    parts = PurePosixPath(root).parts
    if len(parts) >= 2:
        return f"{parts[-2]}_{parts[-1]}"
    return parts[-1] if parts else UNASSIGNED_MODULE


@dataclass
class ModuleLocator:
    """Maps repo-relative paths to owning module ids.

    Usage::

        locator = ModuleLocator.build(repo_root, ["app/code"], ["registration.php"])
        locator.module_id("app/code/Pay/Gateway/Model/Charge.php")  # "Pay_Gateway"
    """

    repo_root: Path
    roots: dict[str, str] = field(default_factory=dict)  # root path -> module id
    files: list[str] = field(default_factory=list)
    _cache: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def build(
        cls,
        repo_root: Path,
        scan_paths: list[str],
        markers: list[str],
        exclude_dirs: list[str] | None = None,
        token: CancellationToken | None = None,
    ) -> ModuleLocator:
        locator = cls(repo_root=repo_root)
        marker_suffixes = [normalize_file_id(m) for m in markers]
        found_roots: set[str] = set()
        files: set[str] = set()
        pruned = pruned_dirs(exclude_dirs or ())

        for scan_path in scan_paths:
            base = repo_root / normalize_file_id(scan_path)
            if not base.is_dir():
                logger.debug("scan_path_missing", path=scan_path)
                continue
            for rel in _walk_with_pruning(base, repo_root, pruned, token):
                files.add(rel)
                for marker in marker_suffixes:
                    if rel == marker:
                        found_roots.add("")
                    elif rel.endswith("/" + marker):
                        found_roots.add(rel[: -len(marker) - 1])

        for root in sorted(found_roots):
            locator.roots[root] = locator._declared_id(root)
        locator.files = sorted(files)

        logger.info(
            "modules_located",
            modules=len(locator.roots),
            files=len(locator.files),
        )
        return locator

    def _declared_id(self, root: str) -> str:
        manifest_path = self.repo_root / root / MODULE_MANIFEST
        if manifest_path.is_file():
            try:
                return parse_module_manifest(manifest_path).name
            except ValueError as e:
                logger.debug("module_manifest_unreadable", root=root, error=str(e))
        return _fallback_module_id(root)

    def module_id(self, path: str) -> str:
        """Owning module of a repo-relative path; nearest enclosing root wins."""
        path = normalize_file_id(path)
        cached = self._cache.get(path)
        if cached is not None:
            return cached

        result = UNASSIGNED_MODULE
        current = PurePosixPath(path)
        candidates = [str(current), *(str(p) for p in current.parents)]
        for candidate in candidates:
            key = "" if candidate == "." else candidate
            if key in self.roots:
                result = self.roots[key]
                break

        self._cache[path] = result
        return result


def _walk_with_pruning(
    base: Path,
    repo_root: Path,
    pruned: frozenset[str],
    token: CancellationToken | None = None,
) -> list[str]:
    """File ids of every file under base, skipping pruned directories.

    Directory links are not descended and file links are recorded under
    their target's id, so each file is seen once whichever way it is reached.
    Dangling links and links leaving the repository are skipped.
    """
    results: list[str] = []
    for dirpath, dirnames, filenames in os.walk(base):
        if token is not None:
            token.check("module walk")
        dirnames[:] = sorted(d for d in dirnames if d not in pruned)
        for filename in filenames:
            full = Path(dirpath) / filename
            if not full.exists():
                logger.debug("dangling_link_skipped", path=str(full))
                continue
            try:
                results.append(file_id(full, repo_root))
            except InternalError:
                logger.debug("external_link_skipped", path=str(full))
    return results
