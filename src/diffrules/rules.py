"""Forward and reverse rule dispatch.

Two structurally identical tables answer the question every differentiation
engine asks before tracing into a call: *is there an analytic rule for this?*

* :func:`frule` – ``frule([config,] (df, dx...), f, x...)`` returns
  ``(Ω, ΔΩ)`` where ``Ω = f(x...)`` and ``ΔΩ`` is the pushed-forward
  differential, or :data:`NO_RULE`.
* :func:`rrule` – ``rrule([config,] f, x...)`` returns ``(Ω, pullback)`` where
  ``pullback(Ω̄) == (f̄, x̄...)``, or :data:`NO_RULE`.

The leading ``df`` / ``f̄`` slot is the differential of the callable itself, so
closures over differentiable data can be handled like any other argument.

Rules are registered once, usually at import time, and read concurrently
afterwards:

>>> from numbers import Real
>>> from diffrules import register_rrule, rrule, ZERO
>>> def square(x):
...     return x * x
>>> @register_rrule(square, Real)
... def _(f, x):
...     return square(x), lambda dy: (ZERO, 2 * x * dy)
>>> y, pb = rrule(square, 5)
>>> y, pb(1)
(25, (ZERO, 10))

Calls carrying keyword arguments go through the separate :func:`frule_kw` /
:func:`rrule_kw` entry points so the positional path never bundles them.
"""

from __future__ import annotations

import logging
import warnings
from typing import Any, Callable, Mapping

from . import config as _config
from .capabilities import RuleConfig, is_config
from .errors import RuleRedefinitionWarning
from .resolution import RuleEntry, resolve
from .signatures import Signature

__all__ = [
    "NO_RULE",
    "RuleTable",
    "FRULES",
    "RRULES",
    "frule",
    "rrule",
    "frule_kw",
    "rrule_kw",
    "register_frule",
    "register_rrule",
    "opt_out_frule",
    "opt_out_rrule",
]

logger = logging.getLogger(__name__)

NO_RULE = None
"""Returned when no rule applies at any tier.  Not an error."""

_MISS = object()


def _label(obj: Any) -> str:
    return getattr(obj, "__qualname__", None) or repr(obj)


class RuleTable:
    """Rules for one mode of differentiation, indexed by callable.

    Parameters
    ----------
    name:
        Used in messages only.
    leading:
        Number of protocol arguments between the optional descriptor and the
        callable: ``1`` for forward rules (the differentials tuple), ``0`` for
        reverse rules.
    """

    def __init__(self, name: str, *, leading: int):
        self.name = name
        self._leading = leading
        self._by_callable: dict[Any, list[RuleEntry]] = {}
        self._by_class: dict[type, list[RuleEntry]] = {}
        self._cache: dict[tuple, RuleEntry | None] = {}

    def __repr__(self) -> str:
        n = sum(map(len, self._by_callable.values())) + sum(map(len, self._by_class.values()))
        return f"RuleTable({self.name!r}, rules={n})"

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        f: Any,
        *types: Any,
        config: type | None = None,
        varargs: Any = None,
        accepts_kwargs: bool = False,
        functor: bool = False,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a rule for calls ``f(x...)`` matching *types*.

        With ``config`` set the rule is only reachable from descriptors that
        are instances of that :class:`RuleConfig` subclass, and it receives the
        descriptor as its first argument.  With ``functor=True`` *f* must be a
        class and the rule applies to every instance of it.
        """
        signature = self._signature(f, types, config, varargs, functor)

        def decorator(rule: Callable[..., Any]) -> Callable[..., Any]:
            if not callable(rule):
                raise TypeError(f"A rule must be callable, got {rule!r}.")
            self._add(
                RuleEntry(
                    target=f,
                    signature=signature,
                    rule=rule,
                    config=config,
                    accepts_kwargs=accepts_kwargs,
                    functor=functor,
                    name=_label(rule),
                )
            )
            return rule

        return decorator

    def opt_out(
        self,
        f: Any,
        *types: Any,
        config: type | None = None,
        varargs: Any = None,
        accepts_kwargs: bool = True,
        functor: bool = False,
    ) -> None:
        """Declare that calls matching *types* have no rule.

        The opt-out competes on specificity like a real rule; when it wins the
        table answers :data:`NO_RULE` instead of using a broader rule.  It
        covers keyword calls as well unless ``accepts_kwargs=False``.
        """
        signature = self._signature(f, types, config, varargs, functor)
        self._add(
            RuleEntry(
                target=f,
                signature=signature,
                rule=None,
                config=config,
                accepts_kwargs=accepts_kwargs,
                functor=functor,
                name="<opt-out>",
            )
        )

    @staticmethod
    def _signature(f, types, config, varargs, functor) -> Signature:
        if not callable(f):
            raise TypeError(f"Rules can only be registered for callables, got {f!r}.")
        if config is not None and not (
            isinstance(config, type) and issubclass(config, RuleConfig)
        ):
            raise TypeError(f"config must be a RuleConfig subclass, got {config!r}.")
        signature = Signature.of(*types, varargs=varargs)
        if functor:
            if not isinstance(f, type):
                raise TypeError("functor=True requires the callable's class.")
            signature = Signature((f, *signature.types), signature.varargs)
        return signature

    def _add(self, entry: RuleEntry) -> None:
        index = self._by_class if entry.functor else self._by_callable
        bucket = index.setdefault(entry.target, [])
        for i, old in enumerate(bucket):
            if old.key == entry.key:
                if _config.WARN_ON_REDEFINITION:
                    warnings.warn(
                        f"{self.name} for {_label(entry.target)}{entry.signature!r} "
                        f"redefined: {old.name} replaced by {entry.name}.",
                        RuleRedefinitionWarning,
                        stacklevel=3,
                    )
                bucket[i] = entry
                break
        else:
            bucket.append(entry)
        self._cache.clear()
        logger.debug(
            "%s: registered %s for %s%r (config=%s)",
            self.name,
            entry.name,
            _label(entry.target),
            entry.signature,
            None if entry.config is None else entry.config.__qualname__,
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def rules_for(self, f: Any) -> tuple[RuleEntry, ...]:
        """Every entry that could apply to calls of *f*, own rules first."""
        own, shared = self._entries(f)
        return (*own, *shared)

    def _entries(self, f: Any) -> tuple[list[RuleEntry], list[RuleEntry]]:
        try:
            own = self._by_callable.get(f) or []
        except TypeError:  # unhashable callable: only functor rules can match
            own = []
        shared: list[RuleEntry] = []
        if self._by_class:
            for cls in type(f).__mro__:
                shared.extend(self._by_class.get(cls, ()))
        return own, shared

    def lookup(
        self,
        config: RuleConfig | None,
        f: Any,
        args: tuple,
        *,
        with_kwargs: bool = False,
    ) -> RuleEntry | None:
        """Return the entry a call would use, without calling it."""
        own, shared = self._entries(f)
        if not own and not shared:
            return None
        entries = own + shared if shared else own
        config_type = None if config is None else type(config)
        arg_types = tuple(map(type, args))

        if not _config.CACHE_RESOLUTION:
            return resolve(
                entries, config_type, arg_types,
                callable_type=type(f), with_kwargs=with_kwargs,
            )

        # Without own rules only the callable's class can matter.
        fkey = ("own", f) if own else ("cls", type(f))
        key = (config_type, fkey, arg_types, with_kwargs)
        hit = self._cache.get(key, _MISS)
        if hit is _MISS:
            hit = self._cache[key] = resolve(
                entries, config_type, arg_types,
                callable_type=type(f), with_kwargs=with_kwargs,
            )
        return hit  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _split(self, args: tuple) -> tuple[RuleConfig | None, tuple]:
        config = None
        if args and is_config(args[0]):
            config, args = args[0], args[1:]
        if len(args) <= self._leading:
            raise TypeError(
                f"{self.name} needs {self._leading + 1} or more positional "
                f"arguments after the optional config, got {len(args)}."
            )
        return config, args

    def __call__(self, *args: Any) -> Any:
        config, args = self._split(args)
        f = args[self._leading]
        entry = self.lookup(config, f, args[self._leading + 1:])
        if entry is None or entry.rule is None:
            return NO_RULE
        if entry.config is None:
            return entry.rule(*args)
        return entry.rule(config, *args)

    def call_kw(self, kwargs: Mapping[str, Any], *args: Any) -> Any:
        """Keyword-argument variant of :meth:`__call__`."""
        if not kwargs:
            return self(*args)
        config, args = self._split(args)
        f = args[self._leading]
        entry = self.lookup(config, f, args[self._leading + 1:], with_kwargs=True)
        if entry is None or entry.rule is None:
            return NO_RULE
        if entry.config is None:
            return entry.rule(*args, **kwargs)
        return entry.rule(config, *args, **kwargs)


FRULES = RuleTable("frule", leading=1)
RRULES = RuleTable("rrule", leading=0)

register_frule = FRULES.register
register_rrule = RRULES.register
opt_out_frule = FRULES.opt_out
opt_out_rrule = RRULES.opt_out


def frule(*args: Any) -> Any:
    """``frule([config,] (df, dx...), f, x...) -> (Ω, ΔΩ) | NO_RULE``

    ``Ω`` is ``f(x...)``.  ``ΔΩ`` is the differential of the output; when ``f``
    returns a compound value (a tuple, say) ``ΔΩ`` is one aggregate
    differential shaped like ``Ω``, not a tuple of independent ones.

    When the first argument is a :class:`RuleConfig`, rules scoped to its
    capabilities are tried first and the descriptor-free ones after that.
    """
    return FRULES(*args)


def rrule(*args: Any) -> Any:
    """``rrule([config,] f, x...) -> (Ω, pullback) | NO_RULE``

    ``pullback(Ω̄)`` returns ``(f̄, x̄₁, ..., x̄ₙ)``: one sensitivity for the
    callable's own captured state followed by one per argument.  The
    descriptor, if given, only selects the rule.
    """
    return RRULES(*args)


def frule_kw(kwargs: Mapping[str, Any], *args: Any) -> Any:
    """:func:`frule` for calls with keyword arguments.

    An empty mapping behaves exactly like :func:`frule`.  Otherwise only rules
    registered with ``accepts_kwargs=True`` are considered and receive the
    keywords.
    """
    return FRULES.call_kw(kwargs, *args)


def rrule_kw(kwargs: Mapping[str, Any], *args: Any) -> Any:
    """:func:`rrule` for calls with keyword arguments; see :func:`frule_kw`."""
    return RRULES.call_kw(kwargs, *args)
