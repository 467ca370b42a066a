"""Bridge registered reverse rules into ``torch.autograd``.

:func:`call_with_rule` lets an eager PyTorch program benefit from analytic
rules: when :func:`~diffrules.rrule` knows ``f``, the primal is computed by the
rule and the backward pass runs its pullback through :class:`RuleFunction`;
otherwise ``f`` is simply called and autograd differentiates its body.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Tuple

import torch
import torch.autograd.function as F
from torch import Tensor

from .capabilities import RuleConfig
from .differentials import is_zero
from .rules import NO_RULE, rrule

__all__ = ["RuleFunction", "call_with_rule"]


class RuleFunction(F.Function):
    """Autograd node whose backward is an rrule pullback.

    ``apply(pullback, primal, *args)`` returns ``primal`` attached to the
    graph of ``args``.  The pullback's leading self-sensitivity is dropped;
    zero-sentinels become ``None`` gradients.
    """

    @staticmethod
    def forward(ctx, pullback: Callable[[Any], tuple], primal: Tensor, *args: Any) -> Tensor:
        ctx.pullback = pullback
        ctx.specs = [
            (a.shape, a.dtype, a.device) if isinstance(a, Tensor) else None for a in args
        ]
        return primal

    @staticmethod
    def backward(ctx, grad_out: Tensor) -> Tuple[Optional[Tensor], ...]:
        sens = ctx.pullback(grad_out)
        if len(sens) != len(ctx.specs) + 1:
            raise RuntimeError(
                f"Pullback returned {len(sens)} sensitivities, expected "
                f"{len(ctx.specs) + 1} (self + one per argument)."
            )
        grads: list[Optional[Tensor]] = []
        for i, (s, spec) in enumerate(zip(sens[1:], ctx.specs)):
            if spec is None or is_zero(s) or not ctx.needs_input_grad[i + 2]:
                grads.append(None)
                continue
            shape, dtype, device = spec
            g = torch.as_tensor(s, dtype=dtype, device=device)
            grads.append(g if g.shape == shape else torch.broadcast_to(g, shape))
        return (None, None, *grads)


def call_with_rule(f: Callable[..., Any], *args: Any, config: RuleConfig | None = None) -> Any:
    """Evaluate ``f(*args)``, routing gradients through a registered rrule.

    Parameters
    ----------
    f:
        Function to evaluate.
    args:
        Positional arguments; tensors among them may require grad.
    config:
        Optional capability descriptor used for rule selection.

    Returns
    -------
    Any
        ``f(*args)``.  With a rule the result is a tensor whose ``grad_fn`` is a
        :class:`RuleFunction`; without one it is whatever ``f`` returns.
    """
    detached = tuple(a.detach() if isinstance(a, Tensor) else a for a in args)
    res = rrule(f, *detached) if config is None else rrule(config, f, *detached)
    if res is NO_RULE:
        return f(*args)

    primal, pullback = res
    if not isinstance(primal, Tensor):
        raise TypeError(
            f"call_with_rule needs a tensor primal, the rule for {f!r} "
            f"returned {type(primal).__name__}."
        )
    return RuleFunction.apply(pullback, primal, *args)
