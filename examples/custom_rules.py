"""Example: writing rules and consuming them from a torch program.

The script registers

* a scalar rule for ``softplus`` built with :func:`diffrules.scalar_rule`,
* a reverse rule giving ``clamp`` a straight-through gradient,
* a rule scoped to engines with reverse mode that differentiates ``map_sum``
  by calling back into the engine for its function argument,

and then shows how an engine sees them through ``rrule`` / ``frule`` and how
eager PyTorch code picks them up with :func:`diffrules.call_with_rule`.
"""

from __future__ import annotations

import math

import torch
from torch import Tensor

from diffrules import (
    NO_RULE,
    ZERO,
    HasReverseMode,
    TorchConfig,
    call_with_rule,
    frule,
    register_rrule,
    rrule,
    scalar_rule,
)


def softplus(x: float) -> float:
    return math.log1p(math.exp(x))


scalar_rule(softplus, lambda x: 1.0 / (1.0 + math.exp(-x)))


def clamp01(x: Tensor) -> Tensor:
    return x.clamp(0.0, 1.0)


@register_rrule(clamp01, Tensor)
def _clamp01_rrule(f, x):
    # pass gradients through the clamp unchanged
    return f(x), lambda dy: (ZERO, dy)


def map_sum(g, x: Tensor) -> Tensor:
    return torch.stack([g(v) for v in x]).sum()


@register_rrule(map_sum, object, Tensor, config=HasReverseMode)
def _map_sum_rrule(cfg, f, g, x):
    pieces = [cfg.rrule_via_ad(g, v) for v in x]
    y = torch.stack([p for p, _ in pieces]).sum()

    def pullback(dy):
        dx = torch.stack([pb(dy)[1] for _, pb in pieces])
        return ZERO, ZERO, dx

    return y, pullback


def main() -> None:
    # Scalar rule -------------------------------------------------------------
    y, dy = frule((ZERO, 1.0), softplus, 0.0)
    print(f"softplus(0) = {y:.4f}, d/dx = {dy:.4f}")
    _, pb = rrule(softplus, 2.0)
    print(f"pullback(1) at 2.0 -> {pb(1.0)}")

    # No rule -----------------------------------------------------------------
    print("rrule(math.tanh, 0.3) is NO_RULE:", rrule(math.tanh, 0.3) is NO_RULE)

    # Straight-through clamp in eager torch -----------------------------------
    x = torch.tensor([-0.5, 0.25, 1.5], requires_grad=True)
    call_with_rule(clamp01, x).sum().backward()
    print("clamp01 grad:", x.grad)

    # Scoped rule calling back into the engine --------------------------------
    engine = TorchConfig()
    x = torch.tensor([0.1, 0.2, 0.3], dtype=torch.float64)
    y, pb = rrule(engine, map_sum, torch.sin, x)
    print(f"map_sum(sin) = {y.item():.4f}, grad = {pb(torch.tensor(1.0, dtype=torch.float64))[2]}")
    print("without an engine:", rrule(map_sum, torch.sin, x))


if __name__ == "__main__":
    main()
