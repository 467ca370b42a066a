"""Capability descriptors.

A differentiation engine describes what it supports by passing an instance of a
:class:`RuleConfig` subclass as the first argument of :func:`~diffrules.frule`
or :func:`~diffrules.rrule`.  The class hierarchy *is* the capability
hierarchy: a rule registered for ``HasReverseMode`` is reachable from every
descriptor whose class derives from ``HasReverseMode``.

Example
-------
>>> from diffrules import HasReverseMode, NoForwardsMode
>>> class MyEngine(HasReverseMode, NoForwardsMode):
...     def rrule_via_ad(self, f, *args):
...         ...
>>> cfg = MyEngine()
"""

from __future__ import annotations

from typing import Any

from .errors import ViaADNotSupported

__all__ = [
    "RuleConfig",
    "HasReverseMode",
    "NoReverseMode",
    "HasForwardsMode",
    "NoForwardsMode",
    "is_config",
]


class RuleConfig:
    """Root of every capability descriptor.

    Rules registered with ``config=RuleConfig`` apply to any descriptor but
    still never to a descriptor-free call.
    """

    __slots__ = ()

    def frule_via_ad(self, differentials: tuple, f: Any, *args: Any):
        """Forward-differentiate ``f(*args)`` with the owning engine.

        Rules registered for :class:`HasForwardsMode` may call this to
        differentiate through a callable they received as an argument.
        """
        raise ViaADNotSupported(
            f"{type(self).__name__} cannot push forward {f!r}; "
            "the engine does not implement frule_via_ad."
        )

    def rrule_via_ad(self, f: Any, *args: Any):
        """Reverse-differentiate ``f(*args)`` with the owning engine.

        Returns ``(primal, pullback)`` like :func:`~diffrules.rrule` but never
        :data:`~diffrules.NO_RULE`.
        """
        raise ViaADNotSupported(
            f"{type(self).__name__} cannot pull back through {f!r}; "
            "the engine does not implement rrule_via_ad."
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------------------------------------------------------------------------
# Mode traits – mix into an engine's descriptor class
# ---------------------------------------------------------------------------


class HasReverseMode(RuleConfig):
    """The engine implements :meth:`RuleConfig.rrule_via_ad`."""

    __slots__ = ()


class NoReverseMode(RuleConfig):
    __slots__ = ()


class HasForwardsMode(RuleConfig):
    """The engine implements :meth:`RuleConfig.frule_via_ad`."""

    __slots__ = ()


class NoForwardsMode(RuleConfig):
    __slots__ = ()


def is_config(obj: Any) -> bool:
    return isinstance(obj, RuleConfig)
