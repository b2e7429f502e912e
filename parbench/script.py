"""A tiny interpreted script language used as the benchmark workload."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Sequence, TextIO, Union

Number = Union[int, float]
ValueType = Callable[[Number], Number]


class ExecContext:
    """Variable storage for one run of a script; every value has one numeric type."""

    def __init__(self, value_type: ValueType = float) -> None:
        self.value_type = value_type
        self._vars: dict[str, Number] = {}

    def assign(self, name: str, value: Number) -> None:
        """Create or overwrite a variable."""
        self._vars[name] = self.value_type(value)

    def get(self, name: str) -> Number:
        """Return the value of an existing variable."""
        try:
            return self._vars[name]
        except KeyError:
            raise LookupError(f"there is no such variable: {name}") from None

    def increment(self, name: str, delta: Number) -> None:
        """Add ``delta`` to an existing variable."""
        self._vars[name] = self.get(name) + self.value_type(delta)


class Statement(ABC):
    """A script statement."""

    @abstractmethod
    def exec(self, ctx: ExecContext) -> None:
        """Run the statement against ``ctx``."""


class LogicalExpression(ABC):
    """A script expression yielding a boolean."""

    @abstractmethod
    def evaluate(self, ctx: ExecContext) -> bool:
        """Evaluate the expression against ``ctx``."""


@dataclass(frozen=True)
class CompoundStatement(Statement):
    """Runs its statements one after another."""

    statements: Sequence[Statement]

    def __post_init__(self) -> None:
        object.__setattr__(self, "statements", tuple(self.statements))

    def exec(self, ctx: ExecContext) -> None:
        for statement in self.statements:
            statement.exec(ctx)


@dataclass(frozen=True)
class WhileLoop(Statement):
    """Runs ``body`` while ``condition`` holds."""

    condition: LogicalExpression
    body: Statement

    def exec(self, ctx: ExecContext) -> None:
        while self.condition.evaluate(ctx):
            self.body.exec(ctx)


@dataclass(frozen=True)
class AssignTo(Statement):
    """Sets a variable to a constant."""

    var_name: str
    value: Number

    def exec(self, ctx: ExecContext) -> None:
        ctx.assign(self.var_name, self.value)


@dataclass(frozen=True)
class IncrementBy(Statement):
    """Adds a constant to an existing variable."""

    var_name: str
    delta: Number

    def exec(self, ctx: ExecContext) -> None:
        ctx.increment(self.var_name, self.delta)


@dataclass(frozen=True)
class PrintValue(Statement):
    """Prints ``name=value`` for an existing variable."""

    var_name: str
    out: TextIO | None = field(default=None, compare=False)

    def exec(self, ctx: ExecContext) -> None:
        value = ctx.get(self.var_name)
        stream = self.out if self.out is not None else sys.stdout
        print(f"{self.var_name}={format_value(value)}", file=stream, flush=True)


@dataclass(frozen=True)
class LessThan(LogicalExpression):
    """True while a variable is below a constant."""

    var_name: str
    value: Number

    def evaluate(self, ctx: ExecContext) -> bool:
        return ctx.get(self.var_name) < ctx.value_type(self.value)


def format_value(value: Number) -> str:
    """Format a number the way a default-configured output stream does."""
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def execute(statement: Statement, value_type: ValueType = float) -> ExecContext:
    """Run ``statement`` in a fresh context, reporting any error on stderr."""
    ctx = ExecContext(value_type)
    try:
        statement.exec(ctx)
    except Exception as exc:  # noqa: BLE001 - every failure is reported, not raised
        print(f"exception caught: {exc}", file=sys.stderr, flush=True)
    return ctx