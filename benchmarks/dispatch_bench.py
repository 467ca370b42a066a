from __future__ import annotations

"""Micro benchmarks for rule dispatch.

Dispatch sits in front of every primitive an engine differentiates, so the
interesting numbers are the overhead of a *miss* (no rule anywhere) and of a
*hit* relative to calling the function directly.  Timings come from
*torch.utils.benchmark.Timer* (median per statement over ``number`` runs).

Run standalone:

    $ python benchmarks/dispatch_bench.py
    $ python benchmarks/dispatch_bench.py --cfg.cache False   # raw resolution cost
"""

from dataclasses import dataclass
from numbers import Real
from typing import List

import tyro  # type: ignore
from torch.utils.benchmark import Timer

from diffrules import (
    ZERO,
    HasReverseMode,
    RuleConfig,
    TorchConfig,
    frule,
    frule_kw,
    register_frule,
    register_rrule,
    rrule,
)
from diffrules import config as dr_config


# -----------------------------------------------------------------------------
# Benchmark subjects -----------------------------------------------------------
# -----------------------------------------------------------------------------


def square(x):
    return x * x


def plain(x):
    return x * x


@register_rrule(square, Real)
def _square_rrule(f, x):
    return f(x), lambda dy: (ZERO, 2 * x * dy)


@register_frule(square, Real)
def _square_frule(dargs, f, x):
    return f(x), 2 * x * dargs[1]


@register_rrule(square, Real, config=HasReverseMode)
def _square_rrule_scoped(cfg, f, x):
    return f(x), lambda dy: (ZERO, 2 * x * dy)


class Unrelated(RuleConfig):
    pass


@dataclass
class Entry:
    name: str
    stmt: str


BENCHES: List[Entry] = [
    Entry("direct call", "square(x)"),
    Entry("rrule miss", "rrule(plain, x)"),
    Entry("rrule hit", "rrule(square, x)"),
    Entry("rrule hit (scoped)", "rrule(torch_cfg, square, x)"),
    Entry("rrule hit (fallback)", "rrule(unrelated, square, x)"),
    Entry("frule miss", "frule(dargs, plain, x)"),
    Entry("frule hit", "frule(dargs, square, x)"),
    Entry("frule_kw {} hit", "frule_kw({}, dargs, square, x)"),
    Entry("frule_kw miss", "frule_kw(kw, dargs, square, x)"),
]


@dataclass
class Config(tyro.conf.FlagConversionOff):  # type: ignore[misc]
    number: int = 10_000
    cache: bool = True


def main(cfg: Config) -> None:  # noqa: D401 – CLI entry
    dr_config.set_cache_resolution(cfg.cache)
    print(f"[dispatch] number={cfg.number}  cache={cfg.cache}\n")

    setup_globals = dict(
        square=square,
        plain=plain,
        rrule=rrule,
        frule=frule,
        frule_kw=frule_kw,
        x=3.0,
        dargs=(ZERO, 1.0),
        kw={"p": 2},
        torch_cfg=TorchConfig(),
        unrelated=Unrelated(),
    )

    rows: List[tuple[str, float]] = []
    for entry in BENCHES:
        t = Timer(stmt=entry.stmt, globals=setup_globals, num_threads=1)
        median = t.timeit(cfg.number).median
        rows.append((entry.name, median * 1e9))

    # Pretty print ------------------------------------------------------------
    name_w = max(len(r[0]) for r in rows)
    print("Operation".ljust(name_w), "|  median time (ns)")
    print("-" * (name_w + 20))
    for name, ns in rows:
        print(name.ljust(name_w), f"|  {ns:9.1f}")


if __name__ == "__main__":
    tyro.cli(main)
