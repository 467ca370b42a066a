"""Global configuration for *diffrules*.

This module centralises the runtime knobs of the dispatch tables so they can be
flipped from a single location (tests, benchmarks, interactive sessions).

Resolution caching
------------------
Looking up a rule means walking the capability hierarchy and comparing argument
signatures.  Rule tables are filled once at import time and only read
afterwards, so the outcome of a lookup depends solely on

    (descriptor type, callable, argument types, named-params flag)

and can be memoised.  Every registration clears the memo, so turning caching
off is only useful when measuring the raw cost of resolution.
"""

from __future__ import annotations

__all__ = [
    "CACHE_RESOLUTION",
    "WARN_ON_REDEFINITION",
    "set_cache_resolution",
    "set_warn_on_redefinition",
]

# -----------------------------------------------------------------------------
# Public constants
# -----------------------------------------------------------------------------

CACHE_RESOLUTION: bool = True  # memoise lookups per argument-type signature
WARN_ON_REDEFINITION: bool = True  # warn when a rule silently replaces another

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def _check_flag(flag: bool) -> bool:
    if not isinstance(flag, bool):
        raise TypeError(f"Expected a bool, got {type(flag).__name__}.")
    return flag


def set_cache_resolution(flag: bool) -> None:
    """Enable or disable memoisation of rule lookups.

    Already memoised entries are kept; tables consult the flag on every call
    so a disabled cache is simply bypassed.
    """
    global CACHE_RESOLUTION
    CACHE_RESOLUTION = _check_flag(flag)


def set_warn_on_redefinition(flag: bool) -> None:
    """Toggle :class:`~diffrules.errors.RuleRedefinitionWarning`."""
    global WARN_ON_REDEFINITION
    WARN_ON_REDEFINITION = _check_flag(flag)
