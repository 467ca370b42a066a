"""Shared fixtures.

Property-based tests run without per-example deadlines: the first call into
torch can take far longer than hypothesis' default 200 ms on slow CI machines.
"""

from __future__ import annotations

import pytest
from hypothesis import settings

from diffrules import RuleTable

settings.register_profile("diffrules_no_deadline", deadline=None)
settings.load_profile("diffrules_no_deadline")


@pytest.fixture
def ftable() -> RuleTable:
    """A private forward table so tests do not leak rules into ``FRULES``."""
    return RuleTable("frule", leading=1)


@pytest.fixture
def rtable() -> RuleTable:
    """A private reverse table so tests do not leak rules into ``RRULES``."""
    return RuleTable("rrule", leading=0)
