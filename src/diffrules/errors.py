"""Exception and warning types raised by *diffrules*.

A missing rule is **not** an error: dispatch returns :data:`~diffrules.NO_RULE`
for that.  The types below cover genuinely broken states only.
"""

from __future__ import annotations

__all__ = [
    "RuleError",
    "AmbiguousRuleError",
    "ViaADNotSupported",
    "RuleRedefinitionWarning",
]


class RuleError(Exception):
    """Base class for all *diffrules* errors."""


class AmbiguousRuleError(RuleError, TypeError):
    """Two or more applicable rules are equally specific.

    Raised when unrelated capability classes both match a descriptor, or when
    no single argument signature is more specific than every other applicable
    one.  Fix it by registering a rule for the intersection.
    """


class ViaADNotSupported(RuleError, NotImplementedError):
    """The descriptor's engine cannot differentiate a call on a rule's behalf."""


class RuleRedefinitionWarning(UserWarning):
    """A registration replaced an existing rule with an identical key."""
