"""Compilation pipeline.

collect -> canonicalize -> module order -> scopes -> preferences ->
interception -> subscriptions -> paths -> indexes -> render -> write/verify

Every phase consumes an immutable snapshot of the previous phase's output and
checks for cancellation before it starts. Nothing is written unless every
phase succeeded.
"""

from __future__ import annotations

import json
import time
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from ctxcompiler.config.constants import MANIFEST_NAME
from ctxcompiler.config.models import CtxCompilerConfig
from ctxcompiler.core.cancel import CancellationToken
from ctxcompiler.core.logging import bind_phase, set_run_id
from ctxcompiler.core.progress import task
from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.facts.canonicalize import canonicalize
from ctxcompiler.facts.collectors import CollectionContext, FactCollector, collect_facts
from ctxcompiler.facts.models import FactBatch
from ctxcompiler.identity.modules import ModuleLocator
from ctxcompiler.index.builder import IndexSet, build_indexes
from ctxcompiler.output.validator import DeterminismValidator
from ctxcompiler.output.writer import OutputWriter, build_manifest
from ctxcompiler.paths.reconstructor import ExecutionPath, PathReconstructor, paths_document
from ctxcompiler.resolution.confidence import get_policy
from ctxcompiler.resolution.hierarchy import TypeHierarchy
from ctxcompiler.resolution.interception import InterceptionResolver
from ctxcompiler.resolution.module_order import ModuleOrder, compute_module_order
from ctxcompiler.resolution.preferences import PreferenceResolver
from ctxcompiler.resolution.scopes import ScopeTree
from ctxcompiler.resolution.subscriptions import SubscriptionResolver

logger = structlog.get_logger()

SYMBOL_INDEX = "symbol_index.json"
FILE_INDEX = "file_index.json"
REVERSE_INDEX = "reverse_index.json"
PREFERENCES = "preferences.json"
INTERCEPTION_CHAINS = "interception_chains.json"
SUBSCRIPTIONS = "subscriptions.json"
EXECUTION_PATHS = "execution_paths.json"
MODULE_ORDER = "module_order.json"

DOCUMENTS: tuple[str, ...] = (
    SYMBOL_INDEX,
    FILE_INDEX,
    REVERSE_INDEX,
    PREFERENCES,
    INTERCEPTION_CHAINS,
    SUBSCRIPTIONS,
    EXECUTION_PATHS,
    MODULE_ORDER,
)


@dataclass(frozen=True)
class SemanticModel:
    """Everything derived from one canonical fact set."""

    facts: FactBatch
    module_order: ModuleOrder
    scopes: ScopeTree
    hierarchy: TypeHierarchy
    preferences: PreferenceResolver
    interception: InterceptionResolver
    subscriptions: SubscriptionResolver
    paths: dict[str, ExecutionPath]
    indexes: IndexSet


@dataclass
class CompileResult:
    out_dir: Path
    documents: list[str]
    build_hash: str
    manifest: dict[str, Any]
    warnings: WarningCollector
    written: bool
    rendered: dict[str, str] = field(default_factory=dict, repr=False)


def referenced_modules(facts: FactBatch) -> set[str]:
    refs: set[str] = set()
    for m in facts.modules:
        refs.add(m.id)
        refs.update(m.sequence)
    for group in (
        facts.files,
        facts.symbols,
        facts.preferences,
        facts.interceptions,
        facts.subscriptions,
        facts.entry_points,
        facts.dispatches,
    ):
        refs.update(r.module for r in group)
    return refs


def observed_scopes(facts: FactBatch) -> set[str]:
    scopes: set[str] = set()
    for group in (facts.preferences, facts.interceptions, facts.subscriptions, facts.entry_points):
        scopes.update(r.scope for r in group)
    return scopes


class Compiler:
    """Runs the full pipeline for one repository.

    Usage::

        config = load_config(repo_root)
        result = Compiler(repo_root, config).run()
        print(result.build_hash)
    """

    def __init__(
        self,
        repo_root: Path,
        config: CtxCompilerConfig,
        collectors: list[FactCollector] | None = None,
        token: CancellationToken | None = None,
        show_progress: bool = False,
    ) -> None:
        self.repo_root = repo_root.resolve()
        self.config = config
        self.collectors = collectors
        self.token = token or CancellationToken()
        self.show_progress = show_progress
        self.warnings = WarningCollector()

    @property
    def out_dir(self) -> Path:
        out = Path(self.config.output.dir)
        return out if out.is_absolute() else self.repo_root / out

    @contextmanager
    def _phase(self, name: str) -> Iterator[None]:
        self.token.check(name)
        start = time.perf_counter()
        logger.debug("phase_start", phase=name)
        with bind_phase(name), task(name) if self.show_progress else nullcontext():
            yield
        logger.debug("phase_done", phase=name, elapsed_s=round(time.perf_counter() - start, 3))

    def collect(self) -> FactBatch:
        scan = self.config.scan
        with self._phase("Collecting facts"):
            locator = ModuleLocator.build(
                self.repo_root,
                scan.paths,
                scan.module_markers,
                scan.exclude_dirs,
                token=self.token,
            )
            ctx = CollectionContext(
                repo_root=self.repo_root,
                config=self.config,
                locator=locator,
                token=self.token,
            )
            merged = collect_facts(ctx, self.collectors)
        with self._phase("Canonicalizing"):
            return canonicalize(merged, self.warnings)

    def analyze(self, facts: FactBatch) -> SemanticModel:
        with self._phase("Ordering modules"):
            order = compute_module_order(facts.modules, referenced_modules(facts), self.warnings)
            scopes = ScopeTree.build(self.config.scopes, observed_scopes(facts), self.warnings)
            hierarchy = TypeHierarchy(facts.symbols)

        with self._phase("Resolving overrides"):
            preferences = PreferenceResolver(
                facts.preferences,
                scopes,
                order,
                policy=get_policy(self.config.resolution.confidence_policy),
                warnings=self.warnings,
            )
            self.warnings.set_total_resolutions(preferences.group_count)
            interception = InterceptionResolver(facts.interceptions, hierarchy, scopes, order)
            subscriptions = SubscriptionResolver(
                facts.subscriptions,
                scopes,
                order,
                fanout_threshold=self.config.resolution.fanout_threshold,
            )

        with self._phase("Reconstructing execution paths"):
            reconstructor = PathReconstructor(
                preferences,
                interception,
                subscriptions,
                facts.dispatches,
                max_depth=self.config.traversal.max_depth,
            )
            paths = reconstructor.reconstruct_all(facts.entry_points, self.token)

        with self._phase("Building indexes"):
            indexes = build_indexes(facts, hierarchy, preferences, subscriptions, paths)

        return SemanticModel(
            facts=facts,
            module_order=order,
            scopes=scopes,
            hierarchy=hierarchy,
            preferences=preferences,
            interception=interception,
            subscriptions=subscriptions,
            paths=paths,
            indexes=indexes,
        )

    def documents(self, model: SemanticModel) -> dict[str, dict[str, Any]]:
        return {
            SYMBOL_INDEX: {"symbols": model.indexes.symbol_index},
            FILE_INDEX: {"files": model.indexes.file_index},
            REVERSE_INDEX: model.indexes.reverse_document(self.config.weights),
            PREFERENCES: model.preferences.to_document(),
            INTERCEPTION_CHAINS: model.interception.to_document(),
            SUBSCRIPTIONS: model.subscriptions.to_document(),
            EXECUTION_PATHS: paths_document(model.paths),
            MODULE_ORDER: {
                **model.module_order.to_document(),
                "scopes": {
                    s: {"chain": list(model.scopes.chain(s)), "depth": model.scopes.depth(s)}
                    for s in model.scopes.nodes()
                },
            },
        }

    @staticmethod
    def summary(model: SemanticModel) -> dict[str, Any]:
        return {
            "facts": model.facts.counts(),
            "resolutions": model.preferences.group_count,
            "interception_chains": len(model.interception.chains()),
            "events": len(model.subscriptions.events()),
            "execution_paths": len(model.paths),
            "truncated_paths": sum(1 for p in model.paths.values() if p.truncated),
        }

    def render(self, model: SemanticModel, validator: DeterminismValidator) -> dict[str, str]:
        with self._phase("Rendering documents"):
            rendered = {
                name: validator.render(name, doc) for name, doc in self.documents(model).items()
            }
            manifest = build_manifest(rendered, self.warnings, self.summary(model))
            rendered[MANIFEST_NAME] = validator.render(MANIFEST_NAME, manifest)
        return rendered

    def run(self, write: bool = True) -> CompileResult:
        run_id = set_run_id()
        started = time.perf_counter()
        logger.info("compile_start", repo_root=str(self.repo_root), run_id=run_id)

        facts = self.collect()
        model = self.analyze(facts)
        validator = DeterminismValidator(self.config.limits, self.warnings)
        rendered = self.render(model, validator)

        if write:
            with self._phase("Writing output"):
                OutputWriter(self.out_dir, validator, verify=self.config.output.verify).write(
                    rendered
                )

        manifest = json.loads(rendered[MANIFEST_NAME])
        result = CompileResult(
            out_dir=self.out_dir,
            documents=sorted(rendered),
            build_hash=manifest["build_hash"],
            manifest=manifest,
            warnings=self.warnings,
            written=write,
            rendered=rendered,
        )
        summary = self.warnings.summary()
        logger.info(
            "compile_done",
            documents=len(rendered),
            build_hash=result.build_hash,
            warnings=summary["total"],
            integrity=summary["analysis_integrity_score"],
            elapsed_s=round(time.perf_counter() - started, 3),
        )
        return result
