"""Canonical identifiers for every addressable entity.

All collectors and resolvers produce ids through these functions so that
documents join on identical keys:

- symbol:      ``pay\\gateway\\chargeinterface`` (separators unified, lowercased)
- method:      ``<symbol>::<method>``
- event:       trimmed event name, case preserved
- scope:       trimmed, lowercased
- entry point: ``<kind>:<identifier>``
- file:        repo-relative posix path
- module:      trimmed declared name, case preserved
"""

from __future__ import annotations

import re
from pathlib import Path

from ctxcompiler.core.errors import InternalError

_SEPARATORS = re.compile(r"[\\/.]+")


def symbol_id(fqn: str) -> str:
    """Normalize a fully-qualified type name.

    ``\\Pay\\Gateway\\ChargeInterface``, ``Pay/Gateway/ChargeInterface`` and
    ``pay.gateway.ChargeInterface`` all map to ``pay\\gateway\\chargeinterface``.
    Returns an empty string for names with no segments.
    """
    unified = _SEPARATORS.sub("\\\\", fqn.strip())
    return unified.strip("\\").lower()


def method_id(fqn: str, method: str) -> str:
    return f"{symbol_id(fqn)}::{method.strip().lower()}"


def event_id(name: str) -> str:
    return name.strip()


def scope_id(name: str) -> str:
    return name.strip().lower()


def module_id(name: str) -> str:
    return name.strip()


def entry_point_id(kind: str, identifier: str) -> str:
    return f"{kind.strip().lower()}:{identifier.strip()}"


def file_id(path: Path, repo_root: Path) -> str:
    """Repo-relative, symlink-free, forward-slash path.

    Raises:
        InternalError: ``path`` does not resolve inside ``repo_root``.
    """
    resolved = path.resolve()
    root = repo_root.resolve()
    try:
        rel = resolved.relative_to(root)
    except ValueError as e:
        raise InternalError.path_outside_root(str(path), str(repo_root)) from e
    return rel.as_posix()


def normalize_file_id(raw: str) -> str:
    """Normalize an already repo-relative path string (as found in fact documents)."""
    cleaned = raw.strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    cleaned = re.sub(r"/{2,}", "/", cleaned)
    return cleaned.strip("/")

