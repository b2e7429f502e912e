"""The counting script every benchmark thread runs."""

from __future__ import annotations

from .script import (
    AssignTo,
    CompoundStatement,
    IncrementBy,
    LessThan,
    PrintValue,
    Statement,
    WhileLoop,
)

DEMO_LIMIT = 1_000_000_000
VAR_NAME = "j"


def make_demo_script(limit: int = DEMO_LIMIT) -> Statement:
    """Build ``j = 0; while j < limit: j += 1; print j``."""
    return CompoundStatement(
        [
            AssignTo(VAR_NAME, 0),
            WhileLoop(LessThan(VAR_NAME, limit), IncrementBy(VAR_NAME, 1)),
            PrintValue(VAR_NAME),
        ]
    )