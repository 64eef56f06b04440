"""Fact collectors and parallel collection.

Collectors are a fixed, explicitly enumerated set behind one protocol. They
run concurrently, each returning an immutable FactBatch, and the batches are
merged in registry order so the merged set never depends on scheduling.

A unit (one module manifest, one file, one fact document) that cannot be
analyzed is excluded and recorded as a ``fact_collection`` warning.
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml
from pydantic import ValidationError

from ctxcompiler.config.constants import UNASSIGNED_MODULE
from ctxcompiler.config.models import CtxCompilerConfig
from ctxcompiler.core.cancel import CancellationToken
from ctxcompiler.core.errors import FactCollectionError
from ctxcompiler.core.warnings import RecordedWarning
from ctxcompiler.facts.documents import FactDocument
from ctxcompiler.facts.models import (
    Evidence,
    EvidenceType,
    FactBatch,
    File,
    Layer,
    Module,
)
from ctxcompiler.identity.ids import file_id, normalize_file_id
from ctxcompiler.identity.modules import MODULE_MANIFEST, ModuleLocator, parse_module_manifest

logger = structlog.get_logger()

DOCUMENT_SUFFIXES = (".yaml", ".yml", ".json")

# First match wins, checked in declaration order.
LAYER_PATTERNS: tuple[tuple[Layer, tuple[str, ...]], ...] = (
    (
        Layer.PRESENTATION,
        ("/Controller/", "/Block/", "/ViewModel/", "/view/", "/Plugin/", "/Ui/", "/CustomerData/"),
    ),
    (Layer.SERVICE, ("/Api/", "/Service/")),
    (Layer.DOMAIN, ("/Model/", "/ResourceModel/", "/Repository/", "/Entity/", "/Collection/")),
    (
        Layer.INFRASTRUCTURE,
        (
            "/Setup/",
            "/Cron/",
            "/Queue/",
            "/Console/",
            "/Logger/",
            "/Config/",
            "/Gateway/",
            "/Import/",
            "/Export/",
        ),
    ),
    (Layer.FRAMEWORK, ("/Helper/", "/Observer/", "/registration.php")),
)


def classify_layer(path: str) -> Layer:
    """Classify a repo-relative path by its directory segments."""
    normalized = "/" + path
    for layer, patterns in LAYER_PATTERNS:
        for pattern in patterns:
            if pattern in normalized:
                return layer
    return Layer.UNKNOWN


@dataclass(frozen=True)
class CollectionContext:
    """Read-only inputs shared by all collectors of one run."""

    repo_root: Path
    config: CtxCompilerConfig
    locator: ModuleLocator
    token: CancellationToken = field(default_factory=CancellationToken)


class FactCollector(Protocol):
    """Capability interface implemented by every collector."""

    name: str

    def collect(self, ctx: CollectionContext) -> FactBatch: ...


def _unit_failed(collector: str, unit: str, reason: str) -> RecordedWarning:
    err = FactCollectionError.unit_failed(collector, unit, reason)
    logger.warning("fact_unit_failed", collector=collector, unit=unit, reason=reason)
    return RecordedWarning("fact_collection", err.message, collector, err.code.value)


class ModuleManifestCollector:
    """Reads ``etc/module.xml`` under every located module root."""

    name = "module_manifest"

    def collect(self, ctx: CollectionContext) -> FactBatch:
        modules: list[Module] = []
        warnings: list[RecordedWarning] = []

        for root, located_id in ctx.locator.roots.items():
            ctx.token.check(self.name)
            manifest_path = ctx.repo_root / root / MODULE_MANIFEST
            unit = f"{root}/{MODULE_MANIFEST}" if root else MODULE_MANIFEST

            if not manifest_path.is_file():
                # Marker without manifest: the module exists but declares no order.
                modules.append(
                    Module(
                        id=located_id,
                        root=root,
                        evidence=(Evidence(EvidenceType.FILESYSTEM, root, notes="module marker"),),
                    )
                )
                continue

            try:
                manifest = parse_module_manifest(manifest_path)
            except (OSError, ValueError) as e:
                warnings.append(_unit_failed(self.name, unit, str(e)))
                continue

            modules.append(
                Module(
                    id=manifest.name,
                    root=root,
                    sequence=manifest.sequence,
                    evidence=(Evidence(EvidenceType.XML, unit, notes="module declaration"),),
                )
            )

        logger.debug("modules_collected", count=len(modules))
        return FactBatch(collector=self.name, modules=tuple(modules), warnings=tuple(warnings))


class FileInventoryCollector:
    """Emits one File record per walked file with owner, layer and size."""

    name = "file_inventory"

    def collect(self, ctx: CollectionContext) -> FactBatch:
        files: list[File] = []
        warnings: list[RecordedWarning] = []

        for rel in ctx.locator.files:
            ctx.token.check(self.name)
            try:
                size = (ctx.repo_root / rel).stat().st_size
            except OSError as e:
                warnings.append(_unit_failed(self.name, rel, str(e)))
                continue
            files.append(
                File(
                    id=rel,
                    module=ctx.locator.module_id(rel),
                    layer=classify_layer(rel),
                    size=size,
                    evidence=(Evidence(EvidenceType.FILESYSTEM, rel),),
                )
            )

        logger.debug("files_collected", count=len(files))
        return FactBatch(collector=self.name, files=tuple(files), warnings=tuple(warnings))


class FactDocumentCollector:
    """Loads YAML/JSON fact documents. One document is one unit."""

    name = "fact_document"

    def collect(self, ctx: CollectionContext) -> FactBatch:
        batches: list[FactBatch] = []
        warnings: list[RecordedWarning] = []

        for path in self._documents(ctx):
            ctx.token.check(self.name)
            unit = file_id(path, ctx.repo_root)
            try:
                batches.append(self._load(path, unit, ctx))
            except FactCollectionError as e:
                logger.warning("fact_document_rejected", unit=unit, reason=e.details.get("reason"))
                warnings.append(
                    RecordedWarning("fact_collection", e.message, self.name, e.code.value)
                )

        merged = FactBatch.merge(batches)
        logger.debug("fact_documents_collected", documents=len(batches), **merged.counts())
        return FactBatch(
            collector=self.name,
            modules=merged.modules,
            symbols=merged.symbols,
            files=merged.files,
            preferences=merged.preferences,
            interceptions=merged.interceptions,
            subscriptions=merged.subscriptions,
            entry_points=merged.entry_points,
            dispatches=merged.dispatches,
            warnings=tuple(warnings),
        )

    def _documents(self, ctx: CollectionContext) -> list[Path]:
        found: set[Path] = set()
        for fact_path in ctx.config.scan.fact_paths:
            base = ctx.repo_root / normalize_file_id(fact_path)
            if base.is_file() and base.suffix in DOCUMENT_SUFFIXES:
                found.add(base)
            elif base.is_dir():
                found.update(
                    p for p in base.rglob("*") if p.is_file() and p.suffix in DOCUMENT_SUFFIXES
                )
        return sorted(found, key=lambda p: p.relative_to(ctx.repo_root).as_posix())

    def _load(self, path: Path, unit: str, ctx: CollectionContext) -> FactBatch:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FactCollectionError.unit_failed(self.name, unit, str(e)) from e

        data: Any
        try:
            data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise FactCollectionError.invalid_document(unit, f"parse error: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise FactCollectionError.invalid_document(unit, "top level must be a mapping")

        try:
            document = FactDocument.model_validate(data)
        except ValidationError as e:
            err = e.errors()[0]
            where = ".".join(str(loc) for loc in err["loc"])
            raise FactCollectionError.invalid_document(unit, f"{where}: {err['msg']}") from e

        return document.to_batch(
            source=unit,
            collector=self.name,
            module_of_file=ctx.locator.module_id,
            default_module=ctx.locator.module_id(unit) or UNASSIGNED_MODULE,
        )


def default_collectors() -> list[FactCollector]:
    """The collector registry. Order here is the merge order."""
    return [
        ModuleManifestCollector(),
        FileInventoryCollector(),
        FactDocumentCollector(),
    ]


def collect_facts(
    ctx: CollectionContext,
    collectors: list[FactCollector] | None = None,
) -> FactBatch:
    """Run collectors concurrently and merge their batches in registry order."""
    collectors = collectors if collectors is not None else default_collectors()
    workers = max(1, min(ctx.config.scan.max_workers, len(collectors) or 1))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="collector") as pool:
        futures = [pool.submit(c.collect, ctx) for c in collectors]
        batches = [f.result() for f in futures]

    merged = FactBatch.merge(batches)
    logger.info("facts_collected", collectors=len(collectors), **merged.counts())
    return merged
