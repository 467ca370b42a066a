"""Argument signatures and their specificity order.

A :class:`Signature` is a tuple of positional argument types, optionally
followed by a variadic tail type.  Matching is done on ``type(arg)`` only so the
outcome for a given tuple of argument types never changes and can be cached.

Specificity
-----------
For a call with *n* arguments both signatures are expanded to length *n*.
``A`` is at least as specific as ``B`` when every expanded type of ``A`` is a
subclass of the matching type of ``B``.  When the expansions coincide a fixed
arity beats a variadic tail.  If the applicable signatures have no single
minimum, :class:`~diffrules.errors.AmbiguousRuleError` is raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence, TypeVar

from .errors import AmbiguousRuleError

__all__ = ["Signature", "most_specific"]

T = TypeVar("T")


def _as_type(t: Any) -> type:
    if t is Any:
        return object
    if not isinstance(t, type):
        raise TypeError(f"Signature entries must be types, got {t!r}.")
    return t


@dataclass(frozen=True, slots=True)
class Signature:
    types: tuple[type, ...] = ()
    varargs: type | None = None

    @classmethod
    def of(cls, *types: Any, varargs: Any = None) -> "Signature":
        """Build a signature, normalising ``typing.Any`` to ``object``."""
        tail = None if varargs is None else _as_type(varargs)
        return cls(tuple(_as_type(t) for t in types), tail)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def accepts_arity(self, n: int) -> bool:
        if self.varargs is None:
            return n == len(self.types)
        return n >= len(self.types)

    def expand(self, n: int) -> tuple[type, ...]:
        if n <= len(self.types):
            return self.types[:n]
        return self.types + (self.varargs,) * (n - len(self.types))  # type: ignore[operator]

    def matches(self, arg_types: Sequence[type]) -> bool:
        n = len(arg_types)
        if not self.accepts_arity(n):
            return False
        return all(issubclass(a, t) for a, t in zip(arg_types, self.expand(n)))

    def at_least_as_specific(self, other: "Signature", n: int) -> bool:
        mine, theirs = self.expand(n), other.expand(n)
        if not all(issubclass(a, b) for a, b in zip(mine, theirs)):
            return False
        if mine == theirs:
            # Same expansion: only a variadic tail can make ``self`` broader.
            return self.varargs is None or other.varargs is not None
        return True

    def __repr__(self) -> str:
        parts = [t.__qualname__ for t in self.types]
        if self.varargs is not None:
            parts.append(f"*{self.varargs.__qualname__}")
        return f"({', '.join(parts)})"


def most_specific(
    candidates: Iterable[T],
    arg_types: Sequence[type],
    signature_of=lambda c: c.signature,
) -> T | None:
    """Pick the applicable candidate with the most specific signature.

    Returns ``None`` when nothing applies.
    """
    n = len(arg_types)
    applicable = [c for c in candidates if signature_of(c).matches(arg_types)]
    if not applicable:
        return None
    if len(applicable) == 1:
        return applicable[0]

    best = [
        c
        for c in applicable
        if all(
            signature_of(c).at_least_as_specific(signature_of(o), n)
            for o in applicable
            if o is not c
        )
    ]
    if len(best) != 1:
        sigs = ", ".join(repr(signature_of(c)) for c in applicable)
        raise AmbiguousRuleError(
            f"No most specific signature among {sigs} for argument types "
            f"({', '.join(t.__qualname__ for t in arg_types)})."
        )
    return best[0]
