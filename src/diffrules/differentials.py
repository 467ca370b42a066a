"""The zero-sentinel differential.

The tangent/cotangent algebra lives outside this package.  Dispatch only has to
recognise one value: :data:`ZERO`, meaning *exactly no contribution*.  It is
deliberately distinct from ``0``, ``0.0`` or ``torch.zeros(...)`` so that rules
can short-circuit without allocating or computing anything.
"""

from __future__ import annotations

from typing import Any

__all__ = ["ZeroTangent", "ZERO", "is_zero"]


class ZeroTangent:
    """Singleton type of :data:`ZERO`.

    The handful of arithmetic hooks below let rule bodies accumulate into a
    sentinel without branching:  ``ZERO + d is d`` and ``ZERO * c is ZERO``.
    """

    __slots__ = ()
    _instance: "ZeroTangent | None" = None

    def __new__(cls) -> "ZeroTangent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ZERO"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (ZeroTangent, ())

    # ------------------------------------------------------------------
    # Absorbing / neutral arithmetic
    # ------------------------------------------------------------------

    def __add__(self, other: Any) -> Any:
        return other

    __radd__ = __add__

    def __sub__(self, other: Any) -> Any:
        return -other

    def __rsub__(self, other: Any) -> Any:
        return other

    def __mul__(self, other: Any) -> "ZeroTangent":
        return self

    __rmul__ = __mul__

    def __truediv__(self, other: Any) -> "ZeroTangent":
        return self

    def __neg__(self) -> "ZeroTangent":
        return self


ZERO = ZeroTangent()


def is_zero(d: Any) -> bool:
    """``True`` only for the zero-sentinel, never for a numeric zero."""
    return d is ZERO
