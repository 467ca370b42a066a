"""Capability descriptor for engines built on PyTorch.

:class:`TorchConfig` advertises both modes.  Its ``*_via_ad`` hooks consult the
rule tables first, scoped to the descriptor, and only when no rule exists fall
back to differentiating through ``f``'s body with ``torch.autograd`` (reverse)
or ``torch.func.jvp`` (forward).

Floating-point / complex tensors are differentiated, and so are plain real or
complex scalars, which are promoted to 0-d tensors (real ones in the default
dtype) first.  Integers, integer tensors and every other object are constants:
reverse mode gives them :data:`~diffrules.ZERO` and forward mode rejects a
non-zero tangent for them.  The callable's own slot is always ``ZERO``:
captured state is not traced.
"""

from __future__ import annotations

from numbers import Complex, Integral, Real
from typing import Any, Callable, Sequence

import torch
from torch import Tensor

from .capabilities import HasForwardsMode, HasReverseMode
from .differentials import ZERO, is_zero
from .rules import NO_RULE, frule, rrule

__all__ = ["TorchConfig"]


def _differentiable(x: Any) -> bool:
    return isinstance(x, Tensor) and (x.is_floating_point() or x.is_complex())


def _promote(x: Any) -> Any:
    """Turn a real / complex scalar into a 0-d tensor; leave the rest alone."""
    if isinstance(x, Tensor) or not isinstance(x, Complex) or isinstance(x, Integral):
        return x
    if isinstance(x, Real):
        return torch.as_tensor(x, dtype=torch.get_default_dtype())
    return torch.as_tensor(x)


def _like(d: Any, ref: Tensor) -> Tensor:
    """Coerce a differential to a tensor with ``ref``'s shape, dtype and device."""
    t = torch.as_tensor(d, dtype=ref.dtype, device=ref.device)
    return t if t.shape == ref.shape else torch.broadcast_to(t, ref.shape)


def _detach(out: Any) -> Any:
    if isinstance(out, Tensor):
        return out.detach()
    if isinstance(out, tuple):
        return tuple(_detach(o) for o in out)
    return out


class TorchConfig(HasReverseMode, HasForwardsMode):
    """Descriptor for a ``torch.autograd`` based engine."""

    __slots__ = ()

    # ------------------------------------------------------------------
    # Reverse mode
    # ------------------------------------------------------------------

    def rrule_via_ad(self, f: Callable[..., Any], *args: Any):
        res = rrule(self, f, *args)
        if res is not NO_RULE:
            return res

        inputs = tuple(
            a.detach().requires_grad_(True) if _differentiable(a) else a
            for a in map(_promote, args)
        )
        with torch.enable_grad():
            out = f(*inputs)

        compound = isinstance(out, tuple)
        outputs = out if compound else (out,)
        wrt = [i for i, x in enumerate(inputs) if isinstance(x, Tensor) and x.requires_grad]

        def pullback(dout: Any) -> tuple:
            sens: list[Any] = [ZERO] * len(args)
            if is_zero(dout) or not wrt:
                return (ZERO, *sens)
            douts = dout if compound else (dout,)
            pairs = [
                (o, _like(d, o))
                for o, d in zip(outputs, douts)
                if isinstance(o, Tensor) and o.requires_grad and not is_zero(d)
            ]
            if not pairs:
                return (ZERO, *sens)
            grads = torch.autograd.grad(
                [o for o, _ in pairs],
                [inputs[i] for i in wrt],
                grad_outputs=[d for _, d in pairs],
                retain_graph=True,
                allow_unused=True,
            )
            for i, g in zip(wrt, grads):
                if g is not None:
                    sens[i] = g
            return (ZERO, *sens)

        return _detach(out), pullback

    # ------------------------------------------------------------------
    # Forward mode
    # ------------------------------------------------------------------

    def frule_via_ad(self, differentials: Sequence[Any], f: Callable[..., Any], *args: Any):
        res = frule(self, differentials, f, *args)
        if res is not NO_RULE:
            return res

        if len(differentials) != len(args) + 1:
            raise ValueError(
                f"Expected {len(args) + 1} differentials (callable + arguments), "
                f"got {len(differentials)}."
            )
        dargs = differentials[1:]
        # arguments with a zero tangent stay as given
        full = [a if is_zero(d) else _promote(a) for a, d in zip(args, dargs)]
        for i, (x, d) in enumerate(zip(full, dargs)):
            if not is_zero(d) and not _differentiable(x):
                raise ValueError(
                    f"Got a non-zero tangent for argument {i} of type "
                    f"{type(args[i]).__name__}, which cannot be differentiated."
                )
        idx = [i for i, d in enumerate(dargs) if not is_zero(d)]
        if not idx:
            return f(*args), ZERO

        primals = tuple(full[i] for i in idx)
        tangents = tuple(_like(dargs[i], full[i]).contiguous() for i in idx)

        def g(*xs: Tensor) -> Any:
            call = list(full)
            for i, x in zip(idx, xs):
                call[i] = x
            return f(*call)

        return torch.func.jvp(g, primals, tangents)
