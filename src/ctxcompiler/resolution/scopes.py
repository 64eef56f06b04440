"""Scope hierarchy: ``global`` -> area -> store context.

Resolution walks a scope's chain from most specific to the root. Scopes that
facts mention but configuration does not know are attached directly under the
root, with an ``unknown_scope`` warning.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import structlog

from ctxcompiler.config.models import ScopeConfig
from ctxcompiler.core.errors import ConfigError
from ctxcompiler.core.warnings import WarningCollector
from ctxcompiler.identity.ids import scope_id

logger = structlog.get_logger()


@dataclass(frozen=True)
class ScopeTree:
    root: str
    parents: Mapping[str, str]

    @classmethod
    def build(
        cls,
        config: ScopeConfig,
        observed: Iterable[str] = (),
        warnings: WarningCollector | None = None,
    ) -> ScopeTree:
        """Build from configuration plus scopes observed in facts.

        Raises:
            ConfigError: The configured mapping is not a single tree.
        """
        reason = config.contradiction()
        if reason is not None:
            raise ConfigError.contradiction("scopes.parents", reason)

        root = scope_id(config.root)
        parents = dict(config.parents)
        for scope in sorted(set(observed)):
            if scope == root or scope in parents:
                continue
            parents[scope] = root
            if warnings is not None:
                warnings.add(
                    "unknown_scope",
                    f"scope '{scope}' is not configured; attached under '{root}'",
                )
            logger.debug("unknown_scope_attached", scope=scope, parent=root)

        return cls(root=root, parents=MappingProxyType(dict(sorted(parents.items()))))

    def chain(self, scope: str) -> tuple[str, ...]:
        """Scopes from ``scope`` up to the root, most specific first.

        A scope outside the tree is treated as a direct child of the root.
        """
        scope = scope_id(scope)
        if scope == self.root:
            return (self.root,)
        out = [scope]
        current = self.parents.get(scope, self.root)
        while current != self.root:
            out.append(current)
            current = self.parents[current]
        out.append(self.root)
        return tuple(out)

    def depth(self, scope: str) -> int:
        return len(self.chain(scope)) - 1

    def nodes(self) -> tuple[str, ...]:
        """Every scope in the tree, root first, then by name."""
        return (self.root, *sorted(self.parents))

    def __contains__(self, scope: object) -> bool:
        return scope == self.root or scope in self.parents
