"""Override resolution: scopes, module order, preferences, interception, subscriptions."""

from ctxcompiler.resolution.confidence import (
    POLICIES,
    ConfidencePolicy,
    geometric_decay,
    get_policy,
    reciprocal_decay,
)
from ctxcompiler.resolution.hierarchy import TypeHierarchy
from ctxcompiler.resolution.interception import (
    ChainEntry,
    InterceptionResolver,
    InterceptorChain,
)
from ctxcompiler.resolution.module_order import ModuleOrder, compute_module_order
from ctxcompiler.resolution.preferences import Candidate, PreferenceResolver, Resolution
from ctxcompiler.resolution.scopes import ScopeTree
from ctxcompiler.resolution.subscriptions import (
    Subscriber,
    SubscriptionGroup,
    SubscriptionResolver,
    risk_score,
)

__all__ = [
    "ScopeTree",
    "TypeHierarchy",
    "ModuleOrder",
    "compute_module_order",
    "ConfidencePolicy",
    "POLICIES",
    "get_policy",
    "reciprocal_decay",
    "geometric_decay",
    "Candidate",
    "Resolution",
    "PreferenceResolver",
    "ChainEntry",
    "InterceptorChain",
    "InterceptionResolver",
    "Subscriber",
    "SubscriptionGroup",
    "SubscriptionResolver",
    "risk_score",
]
