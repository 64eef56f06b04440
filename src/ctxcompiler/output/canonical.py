"""Canonical document form.

- Mapping keys are sorted at every level.
- Lists named in ``ORDERED_COLLECTIONS`` keep the order the resolvers
  computed (chains, call plans, path nodes); their items are still
  canonicalized.
- Lists named in ``SORT_KEYS`` are sorted by that key.
- Any other list is sorted by the canonical JSON text of its items.
- ``evidence`` lists are truncated to a cap after sorting.

The serialized form is JSON with sorted keys, two-space indent, UTF-8 and a
trailing newline.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

ORDERED_COLLECTIONS: frozenset[str] = frozenset(
    {
        "entries",  # interceptor chain order
        "before",  # call plan: ascending
        "around",  # call plan: outermost first
        "after",  # call plan: descending
        "invocation_sequence",
        "interceptors",  # chain order on path nodes
        "nodes",  # path node preorder
        "subscribers",  # subscription order
        "candidates",  # load order, winner last
        "order",  # module load order
        "sequence",
        "chain",  # scope chain, most specific first
    }
)


def _evidence_key(e: dict[str, Any]) -> tuple[Any, ...]:
    return (
        e.get("source_file", ""),
        e.get("line_start") if e.get("line_start") is not None else -1,
        e.get("line_end") if e.get("line_end") is not None else -1,
        e.get("type", ""),
        e.get("notes", ""),
    )


SORT_KEYS: dict[str, Callable[[Any], Any]] = {
    "evidence": _evidence_key,
    "events": lambda e: e.get("event", ""),
    # manifest warnings
    "items": lambda w: (w.get("category", ""), w.get("source", ""), w.get("message", "")),
    "documents": lambda d: d.get("name", ""),
}


def canonical_text(value: Any) -> str:
    """Compact canonical JSON, used as the fallback list sort key."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass
class CanonicalStats:
    truncated_evidence_lists: int = 0


def canonicalize(
    value: Any,
    *,
    evidence_cap: int | None = None,
    stats: CanonicalStats | None = None,
    _name: str | None = None,
) -> Any:
    """Return the canonical form of a JSON-compatible value."""
    if isinstance(value, dict):
        return {
            str(k): canonicalize(v, evidence_cap=evidence_cap, stats=stats, _name=str(k))
            for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))
        }

    if isinstance(value, (list, tuple)):
        items = [canonicalize(v, evidence_cap=evidence_cap, stats=stats) for v in value]
        if _name in ORDERED_COLLECTIONS:
            return items
        key = SORT_KEYS.get(_name or "")
        if key is not None:
            items.sort(key=key)
        else:
            items.sort(key=canonical_text)
        if _name == "evidence" and evidence_cap is not None and len(items) > evidence_cap:
            items = items[:evidence_cap]
            if stats is not None:
                stats.truncated_evidence_lists += 1
        return items

    return value


def dumps(document: Any) -> str:
    return json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


def sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def first_difference(a: Any, b: Any, path: str = "$") -> str | None:
    """Key path of the first place two JSON values differ, or None if equal."""
    if type(a) is not type(b):
        return path
    if isinstance(a, dict):
        for k in sorted(set(a) | set(b)):
            if k not in a or k not in b:
                return f"{path}.{k}"
            diff = first_difference(a[k], b[k], f"{path}.{k}")
            if diff is not None:
                return diff
        return None
    if isinstance(a, list):
        for i, (x, y) in enumerate(zip(a, b, strict=False)):
            diff = first_difference(x, y, f"{path}[{i}]")
            if diff is not None:
                return diff
        if len(a) != len(b):
            return f"{path}[{min(len(a), len(b))}]"
        return None
    return None if a == b else path
