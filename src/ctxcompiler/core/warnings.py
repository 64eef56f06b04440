"""Typed warning collection and analysis integrity scoring.

Recoverable problems never abort a run. They are recorded here, logged, and
summarized in the ``warnings`` section of ``manifest.json``.

Integrity score starts at 1.0 and degrades by capped, ratio-based penalties:

- fact_collection:      min(0.3, failed_units * 0.05)
- ambiguous_resolution: min(0.2, ambiguous / total_resolutions * 0.2)
- unknown_scope:        min(0.1, count * 0.02)
- missing_module:       min(0.1, count * 0.05)
- missing_evidence:     min(0.2, count * 0.02)

Clamped to [0, 1]. ``degraded`` is true whenever the score is below 1.0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from ctxcompiler.core.errors import CtxCompilerError

logger = structlog.get_logger()

WarningCategory = Literal[
    "fact_collection",
    "unknown_scope",
    "missing_module",
    "ambiguous_resolution",
    "duplicate_symbol",
    "missing_evidence",
    "resource_limit",
    "general",
]

ALL_CATEGORIES: tuple[str, ...] = (
    "fact_collection",
    "unknown_scope",
    "missing_module",
    "ambiguous_resolution",
    "duplicate_symbol",
    "missing_evidence",
    "resource_limit",
    "general",
)


@dataclass(frozen=True, slots=True)
class RecordedWarning:
    """One recoverable problem, attributed to the component that saw it."""

    category: str
    message: str
    source: str = ""
    code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "category": self.category,
            "message": self.message,
            "source": self.source,
        }
        if self.code is not None:
            out["code"] = self.code
        return out


@dataclass
class WarningCollector:
    """Accumulates warnings for one run."""

    _warnings: list[RecordedWarning] = field(default_factory=list)
    _total_resolutions: int = 1

    def add(self, category: str, message: str, source: str = "") -> None:
        if category not in ALL_CATEGORIES:
            category = "general"
        self._warnings.append(RecordedWarning(category, message, source))
        logger.warning("analysis_warning", category=category, source=source, detail=message)

    def add_error(self, error: CtxCompilerError, category: str, source: str = "") -> None:
        """Record a non-fatal typed error (FactCollectionError, ResourceLimitExceeded)."""
        if category not in ALL_CATEGORIES:
            category = "general"
        self._warnings.append(RecordedWarning(category, error.message, source, error.code.value))
        logger.warning(
            "analysis_warning",
            category=category,
            source=source,
            error=error.error_name,
            detail=error.message,
        )

    def extend(self, warnings: list[RecordedWarning] | tuple[RecordedWarning, ...]) -> None:
        self._warnings.extend(warnings)

    def all(self) -> list[RecordedWarning]:
        return list(self._warnings)

    def set_total_resolutions(self, total: int) -> None:
        self._total_resolutions = max(1, total)

    def count_by_category(self) -> dict[str, int]:
        counts = dict.fromkeys(ALL_CATEGORIES, 0)
        for w in self._warnings:
            counts[w.category] += 1
        return counts

    def integrity_score(self) -> float:
        counts = self.count_by_category()
        score = 1.0
        score -= min(0.3, counts["fact_collection"] * 0.05)
        score -= min(0.2, counts["ambiguous_resolution"] / self._total_resolutions * 0.2)
        score -= min(0.1, counts["unknown_scope"] * 0.02)
        score -= min(0.1, counts["missing_module"] * 0.05)
        score -= min(0.2, counts["missing_evidence"] * 0.02)
        return round(max(0.0, min(1.0, score)), 3)

    def summary(self) -> dict[str, Any]:
        counts = self.count_by_category()
        score = self.integrity_score()
        return {
            "counts": counts,
            "total": sum(counts.values()),
            "analysis_integrity_score": score,
            "degraded": score < 1.0,
        }

    def to_list(self) -> list[dict[str, Any]]:
        return [w.to_dict() for w in self._warnings]
