"""Canonical output, determinism validation and atomic writing."""

from ctxcompiler.output.canonical import (
    ORDERED_COLLECTIONS,
    SORT_KEYS,
    canonicalize,
    dumps,
    first_difference,
    sha256,
)
from ctxcompiler.output.validator import DeterminismValidator, verify_output
from ctxcompiler.output.writer import OutputWriter, build_hash, build_manifest

__all__ = [
    "ORDERED_COLLECTIONS",
    "SORT_KEYS",
    "canonicalize",
    "dumps",
    "first_difference",
    "sha256",
    "DeterminismValidator",
    "verify_output",
    "OutputWriter",
    "build_hash",
    "build_manifest",
]
