"""Define forward and reverse rules for a scalar function in one call.

Most rules for elementwise math look the same: evaluate ``f``, multiply each
input differential by the matching partial derivative and add the pieces up
(forward), or scale the output sensitivity by every partial (reverse).
:func:`scalar_rule` writes both rules from the list of partials:

>>> import math
>>> from diffrules import scalar_rule, frule, rrule, ZERO
>>> scalar_rule(math.sin, math.cos)
>>> frule((ZERO, 1.0), math.sin, 0.0)
(0.0, 1.0)
"""

from __future__ import annotations

from numbers import Number
from typing import Any, Callable, Sequence

from .differentials import ZERO, is_zero
from .rules import FRULES, RRULES, RuleTable

__all__ = ["scalar_rule"]


def scalar_rule(
    f: Callable[..., Any],
    *partials: Callable[..., Any],
    types: Sequence[Any] | None = None,
    config: type | None = None,
    frules: RuleTable = FRULES,
    rrules: RuleTable = RRULES,
) -> None:
    """Register an frule and an rrule for ``f`` from its partial derivatives.

    Parameters
    ----------
    f:
        Scalar function of ``len(partials)`` positional arguments.
    partials:
        ``partials[i](*args)`` is ``∂f/∂argsᵢ`` evaluated at ``args``.
    types:
        Argument types to register for.  Defaults to ``numbers.Number`` for
        every argument.
    config:
        Optional capability class to scope both rules to.
    frules, rrules:
        Tables to register into; the process-wide ones by default.

    The callable itself is treated as having no differentiable state, so its
    slot is always :data:`~diffrules.ZERO`.  Zero-sentinel differentials are
    skipped on the way in and a zero-sentinel sensitivity produces
    zero-sentinels for every input without evaluating a single partial.
    """
    if not partials:
        raise ValueError("scalar_rule needs at least one partial derivative.")
    n = len(partials)
    if types is None:
        types = (Number,) * n
    if len(types) != n:
        raise ValueError(f"Got {len(types)} argument types for {n} partials.")

    def _push(dargs: Sequence[Any], args: tuple) -> Any:
        out = ZERO
        for partial, dx in zip(partials, dargs[1:]):
            if is_zero(dx):
                continue
            out = out + partial(*args) * dx
        return out

    def _pullback_for(args: tuple) -> Callable[[Any], tuple]:
        def pullback(dy: Any) -> tuple:
            if is_zero(dy):
                return (ZERO,) * (n + 1)
            return (ZERO, *(partial(*args) * dy for partial in partials))

        return pullback

    if config is None:

        @frules.register(f, *types)
        def _frule(dargs, fn, *args):
            return fn(*args), _push(dargs, args)

        @rrules.register(f, *types)
        def _rrule(fn, *args):
            return fn(*args), _pullback_for(args)

    else:

        @frules.register(f, *types, config=config)
        def _frule_cfg(cfg, dargs, fn, *args):
            return fn(*args), _push(dargs, args)

        @rrules.register(f, *types, config=config)
        def _rrule_cfg(cfg, fn, *args):
            return fn(*args), _pullback_for(args)
