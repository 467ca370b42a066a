"""Tests for the forward / reverse dispatch entry points."""

from __future__ import annotations

from numbers import Real

import pytest
from hypothesis import given, strategies as st

from diffrules import (
    FRULES,
    NO_RULE,
    RRULES,
    ZERO,
    HasReverseMode,
    RuleConfig,
    RuleRedefinitionWarning,
    TorchConfig,
    frule,
    frule_kw,
    is_zero,
    register_frule,
    register_rrule,
    rrule,
    rrule_kw,
    scalar_rule,
)
from diffrules import config

finite = st.floats(min_value=-10.0, max_value=10.0, allow_nan=False, allow_infinity=False)

# -----------------------------------------------------------------------------
# Functions under test – registered once at import
# -----------------------------------------------------------------------------


def double(x):
    return 2 * x


def triple(x):
    return 3 * x


def square(x):
    return x * x


def negate(x):
    return -x


@register_frule(double, Real)
def _double_frule(dargs, f, x):
    return f(x), 2 * dargs[1]


@register_rrule(double, Real)
def _double_rrule(f, x):
    return f(x), lambda dy: (ZERO, 2 * dy)


@register_rrule(square, Real)
def _square_rrule(f, x):
    return f(x), lambda dy: (ZERO, 2 * x * dy)


scalar_rule(negate, lambda x: -1)


class Engine(HasReverseMode):
    pass


class Unrelated(RuleConfig):
    pass


CONFIGS = [None, RuleConfig(), Engine(), Unrelated(), TorchConfig()]


def _with(cfg, *args):
    return args if cfg is None else (cfg, *args)


# -----------------------------------------------------------------------------
# Concrete scenarios
# -----------------------------------------------------------------------------


def test_double_frule():
    assert frule((ZERO, 1), double, 3) == (6, 2)


def test_unregistered_frule_is_no_rule():
    assert frule((ZERO, 1), triple, 3) is NO_RULE


def test_square_rrule():
    y, pb = rrule(square, 5)
    assert y == 25
    assert pb(1) == (ZERO, 10)


# -----------------------------------------------------------------------------
# Properties
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("cfg", CONFIGS)
@pytest.mark.parametrize("kwargs", [None, {}, {"mode": "fast"}])
def test_no_rule_anywhere(cfg, kwargs):
    """Unregistered callables yield NO_RULE on every path."""
    if kwargs is None:
        assert frule(*_with(cfg, (ZERO, 1.0), triple, 1.0)) is NO_RULE
        assert rrule(*_with(cfg, triple, 1.0)) is NO_RULE
    else:
        assert frule_kw(kwargs, *_with(cfg, (ZERO, 1.0), triple, 1.0)) is NO_RULE
        assert rrule_kw(kwargs, *_with(cfg, triple, 1.0)) is NO_RULE


@pytest.mark.parametrize("cfg", CONFIGS)
def test_descriptor_free_rule_reachable_from_any_descriptor(cfg):
    y, pb = rrule(*_with(cfg, square, 3))
    assert y == 9
    assert pb(1.0) == (ZERO, 6.0)
    assert frule(*_with(cfg, (ZERO, 0.5), double, 4)) == (8, 1.0)


@given(finite)
def test_rrule_primal_matches_direct_call(x):
    y, _ = rrule(square, x)
    assert y == square(x)


@given(finite)
def test_zero_sensitivity_in_zero_out(x):
    for f in (double, negate):
        _, pb = rrule(f, x)
        out = pb(ZERO)
        assert len(out) == 2
        assert all(is_zero(s) for s in out)


@given(finite, st.sampled_from(CONFIGS))
def test_empty_kwargs_matches_positional(x, cfg):
    assert frule_kw({}, *_with(cfg, (ZERO, 1.0), double, x)) == frule(
        *_with(cfg, (ZERO, 1.0), double, x)
    )
    y_kw, pb_kw = rrule_kw({}, *_with(cfg, square, x))
    y, pb = rrule(*_with(cfg, square, x))
    assert y_kw == y
    assert pb_kw(1.0) == pb(1.0)


def test_argument_types_outside_signature_fall_through():
    assert rrule(square, "ab") is NO_RULE
    assert rrule(square, 1.0, 2.0) is NO_RULE


def test_rule_runs_primal_exactly_once(rtable):
    calls = []

    def f(x):
        calls.append(x)
        return x + 1

    @rtable.register(f, Real)
    def _(fn, x):
        return fn(x), lambda dy: (ZERO, dy)

    y, _ = rtable(f, 1)
    assert y == 2
    assert calls == [1]


def test_rule_errors_propagate(rtable):
    def f(x):
        raise ZeroDivisionError("boom")

    @rtable.register(f, Real)
    def _(fn, x):
        return fn(x), None

    with pytest.raises(ZeroDivisionError, match="boom"):
        rtable(f, 1)


def test_unhashable_callable_without_rules():
    class Unhashable:
        __hash__ = None  # type: ignore[assignment]

        def __call__(self, x):
            return x

    assert rrule(Unhashable(), 1.0) is NO_RULE
    assert frule((ZERO, 1.0), Unhashable(), 1.0) is NO_RULE


def test_missing_callable_is_type_error():
    with pytest.raises(TypeError):
        rrule()
    with pytest.raises(TypeError):
        frule((ZERO,))
    with pytest.raises(TypeError):
        rrule(TorchConfig())


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


def test_redefinition_warns_and_replaces(rtable):
    @rtable.register(square, Real)
    def first(f, x):
        return "first", None

    with pytest.warns(RuleRedefinitionWarning, match="first replaced by"):

        @rtable.register(square, Real)
        def second(f, x):
            return "second", None

    assert rtable(square, 1)[0] == "second"
    assert len(rtable.rules_for(square)) == 1


def test_redefinition_warning_can_be_silenced(rtable, monkeypatch, recwarn):
    monkeypatch.setattr(config, "WARN_ON_REDEFINITION", False)
    for _ in range(2):
        rtable.register(square, Real)(lambda f, x: (f(x), None))
    assert not [w for w in recwarn if issubclass(w.category, RuleRedefinitionWarning)]


def test_register_validates_arguments(rtable):
    with pytest.raises(TypeError):
        rtable.register(42, Real)
    with pytest.raises(TypeError):
        rtable.register(square, 3.0)
    with pytest.raises(TypeError):
        rtable.register(square, Real, config=TorchConfig())
    with pytest.raises(TypeError):
        rtable.register(square, Real, functor=True)
    with pytest.raises(TypeError):
        rtable.register(square, Real)("not callable")


def test_registration_clears_cache(rtable):
    @rtable.register(square, Real)
    def generic(f, x):
        return "generic", None

    assert rtable(square, 2)[0] == "generic"

    @rtable.register(square, int)
    def narrow(f, x):
        return "narrow", None

    assert rtable(square, 2)[0] == "narrow"
    assert rtable(square, 2.0)[0] == "generic"


@pytest.mark.parametrize("cached", [True, False])
def test_lookup_with_and_without_cache(rtable, monkeypatch, cached):
    monkeypatch.setattr(config, "CACHE_RESOLUTION", cached)

    @rtable.register(square, Real)
    def rule(f, x):
        return f(x), None

    entry = rtable.lookup(None, square, (3,))
    assert entry is not None and entry.rule is rule
    assert rtable.lookup(None, triple, (3,)) is None
    assert rtable(square, 3)[0] == 9


def test_global_tables_are_separate():
    assert FRULES.rules_for(square) == ()
    assert RRULES.rules_for(square)
    assert "rrule" in repr(RRULES)
