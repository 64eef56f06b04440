"""Confidence decay policies.

A policy maps the number of distinct competing implementations at the winning
scope to a confidence in [0, 1]. Every policy returns 1.0 for a single
candidate and is non-increasing in the candidate count.
"""

from __future__ import annotations

from collections.abc import Callable

from ctxcompiler.core.errors import ConfigError

ConfidencePolicy = Callable[[int], float]


def reciprocal_decay(candidates: int) -> float:
    """1/n: two candidates give 0.5, three give 0.333."""
    if candidates <= 1:
        return 1.0
    return round(1.0 / candidates, 4)


def geometric_decay(candidates: int) -> float:
    """0.8^(n-1): a gentler decay for codebases where overrides are routine."""
    if candidates <= 1:
        return 1.0
    return round(0.8 ** (candidates - 1), 4)


POLICIES: dict[str, ConfidencePolicy] = {
    "reciprocal": reciprocal_decay,
    "geometric": geometric_decay,
}


def get_policy(name: str) -> ConfidencePolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ConfigError.invalid_value(
            "resolution.confidence_policy", name, f"expected one of {sorted(POLICIES)}"
        ) from None
