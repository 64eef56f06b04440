"""Canonical identity scheme and module ownership."""

from ctxcompiler.identity.ids import (
    entry_point_id,
    event_id,
    file_id,
    method_id,
    module_id,
    normalize_file_id,
    scope_id,
    symbol_id,
)
from ctxcompiler.identity.modules import ModuleLocator, ModuleManifest, parse_module_manifest

__all__ = [
    "symbol_id",
    "method_id",
    "event_id",
    "scope_id",
    "module_id",
    "entry_point_id",
    "file_id",
    "normalize_file_id",
    "ModuleLocator",
    "ModuleManifest",
    "parse_module_manifest",
]
