# SPDX-License-Identifier: MIT
"""diffrules – differentiation-rule dispatch for automatic differentiation.

Components that know the derivative of an operation register a *rule* for it;
differentiation engines ask :func:`frule` / :func:`rrule` before tracing into a
call and fall back to their own strategy when the answer is :data:`NO_RULE`.

Resolution is tiered: rules scoped to the engine's capability descriptor
(:class:`RuleConfig` subclasses) first, then descriptor-free rules, then
:data:`NO_RULE`.  Within a tier the most specific argument signature wins.
"""

from __future__ import annotations

from .capabilities import (
    HasForwardsMode,
    HasReverseMode,
    NoForwardsMode,
    NoReverseMode,
    RuleConfig,
)
from .differentials import ZERO, ZeroTangent, is_zero
from .errors import (
    AmbiguousRuleError,
    RuleError,
    RuleRedefinitionWarning,
    ViaADNotSupported,
)
from .rules import (
    FRULES,
    NO_RULE,
    RRULES,
    RuleTable,
    frule,
    frule_kw,
    opt_out_frule,
    opt_out_rrule,
    register_frule,
    register_rrule,
    rrule,
    rrule_kw,
)
from .scalar_rule import scalar_rule

# Re-export torch helpers -------------------------------------------------------
from .torch_autograd import RuleFunction, call_with_rule
from .torch_config import TorchConfig

__all__ = [
    # dispatch
    "frule",
    "rrule",
    "frule_kw",
    "rrule_kw",
    "NO_RULE",
    # registration
    "RuleTable",
    "FRULES",
    "RRULES",
    "register_frule",
    "register_rrule",
    "opt_out_frule",
    "opt_out_rrule",
    "scalar_rule",
    # capabilities
    "RuleConfig",
    "HasReverseMode",
    "NoReverseMode",
    "HasForwardsMode",
    "NoForwardsMode",
    # differentials
    "ZERO",
    "ZeroTangent",
    "is_zero",
    # errors
    "RuleError",
    "AmbiguousRuleError",
    "ViaADNotSupported",
    "RuleRedefinitionWarning",
    # torch
    "TorchConfig",
    "RuleFunction",
    "call_with_rule",
]
