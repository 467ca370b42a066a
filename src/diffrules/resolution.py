"""Tiered rule resolution shared by the forward and reverse tables.

Given every rule registered for one callable, :func:`resolve` picks the entry a
call should use:

1. If the call carries a descriptor, the rules scoped to capability classes the
   descriptor is an instance of.  The most specific such class wins; two
   unrelated classes that both supply an applicable rule are an
   :class:`~diffrules.errors.AmbiguousRuleError`.
2. Otherwise, or if tier 1 found nothing applicable, the descriptor-free rules.
3. Otherwise ``None``, which the tables report as :data:`~diffrules.NO_RULE`.

Within a tier the argument signature decides (see
:mod:`diffrules.signatures`).  Nothing here looks at argument *values*.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .errors import AmbiguousRuleError
from .signatures import Signature, most_specific

__all__ = ["RuleEntry", "resolve"]


@dataclass(frozen=True, slots=True)
class RuleEntry:
    """One registered rule.

    ``rule`` is ``None`` for an opt-out: selecting the entry yields
    :data:`~diffrules.NO_RULE` instead of falling through to broader tiers.
    """

    target: Any
    signature: Signature
    rule: Callable[..., Any] | None
    config: type | None = None
    accepts_kwargs: bool = False
    functor: bool = False
    name: str = field(default="", compare=False)

    @property
    def opted_out(self) -> bool:
        return self.rule is None

    @property
    def key(self) -> tuple:
        return (self.config, self.functor, self.signature)


def _scoped(
    entries: Sequence[RuleEntry],
    config_type: type,
    pick: Callable[[list[RuleEntry]], RuleEntry | None],
) -> RuleEntry | None:
    by_cap: dict[type, list[RuleEntry]] = {}
    for e in entries:
        by_cap.setdefault(e.config, []).append(e)  # type: ignore[arg-type]

    winners: dict[type, RuleEntry] = {}
    for cap, group in by_cap.items():
        hit = pick(group)
        if hit is not None:
            winners[cap] = hit
    if not winners:
        return None

    caps = list(winners)
    narrowest = [
        c for c in caps if not any(o is not c and issubclass(o, c) for o in caps)
    ]
    if len(narrowest) > 1:
        names = ", ".join(c.__qualname__ for c in narrowest)
        raise AmbiguousRuleError(
            f"{config_type.__qualname__} matches rules scoped to unrelated "
            f"capabilities {names}; register a rule for their combination."
        )
    return winners[narrowest[0]]


def resolve(
    entries: Sequence[RuleEntry],
    config_type: type | None,
    arg_types: Sequence[type],
    *,
    callable_type: type = object,
    with_kwargs: bool = False,
) -> RuleEntry | None:
    """Select the entry for a call, or ``None`` if no tier applies.

    ``entries`` mixes rules keyed on the callable itself and functor rules
    keyed on its class.  Functor signatures carry the callable class as their
    first type and are matched against ``(callable_type, *arg_types)``.  The
    capability decides first; among rules of the same capability (or among
    the descriptor-free rules) one for the callable itself is preferred over a
    functor rule.
    """
    if with_kwargs:
        entries = [e for e in entries if e.accepts_kwargs]
    functor_types = (callable_type, *arg_types)

    def pick(pool: list[RuleEntry]) -> RuleEntry | None:
        own = [e for e in pool if not e.functor]
        hit = most_specific(own, arg_types) if own else None
        if hit is None:
            shared = [e for e in pool if e.functor]
            if shared:
                hit = most_specific(shared, functor_types)
        return hit

    if config_type is not None:
        scoped = [
            e for e in entries
            if e.config is not None and issubclass(config_type, e.config)
        ]
        if scoped:
            hit = _scoped(scoped, config_type, pick)
            if hit is not None:
                return hit

    free = [e for e in entries if e.config is None]
    return pick(free) if free else None
