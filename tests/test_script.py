import io

import pytest

from parbench.script import (
    AssignTo,
    CompoundStatement,
    ExecContext,
    IncrementBy,
    LessThan,
    PrintValue,
    WhileLoop,
    execute,
    format_value,
)


def test_assign_and_get_int():
    ctx = ExecContext(int)
    ctx.assign("x", 12)
    assert ctx.get("x") == 12
    assert isinstance(ctx.get("x"), int)


def test_assign_converts_to_value_type():
    ctx = ExecContext(float)
    ctx.assign("x", 3)
    assert ctx.get("x") == 3.0
    assert isinstance(ctx.get("x"), float)


def test_get_missing_variable_raises():
    ctx = ExecContext(int)
    with pytest.raises(LookupError, match="there is no such variable: x"):
        ctx.get("x")


def test_increment_missing_variable_raises():
    ctx = ExecContext(int)
    with pytest.raises(LookupError, match="there is no such variable: y"):
        ctx.increment("y", 1)


def test_increment_adds_delta():
    ctx = ExecContext(int)
    ctx.assign("x", 4)
    ctx.increment("x", 6)
    assert ctx.get("x") == 10


def test_compound_runs_in_order():
    ctx = ExecContext(int)
    CompoundStatement([AssignTo("x", 1), IncrementBy("x", 2)]).exec(ctx)
    assert ctx.get("x") == 3


def test_while_loop_counts_to_limit():
    ctx = ExecContext(int)
    ctx.assign("x", 0)
    WhileLoop(LessThan("x", 5), IncrementBy("x", 1)).exec(ctx)
    assert ctx.get("x") == 5


def test_while_loop_with_floats():
    ctx = ExecContext(float)
    ctx.assign("x", 0)
    WhileLoop(LessThan("x", 2), IncrementBy("x", 0.5)).exec(ctx)
    assert ctx.get("x") == 2.0


def test_while_loop_false_condition_skips_body():
    ctx = ExecContext(int)
    ctx.assign("x", 9)
    WhileLoop(LessThan("x", 3), IncrementBy("x", 1)).exec(ctx)
    assert ctx.get("x") == 9


def test_less_than():
    ctx = ExecContext(int)
    ctx.assign("x", 2)
    assert LessThan("x", 3).evaluate(ctx) is True
    assert LessThan("x", 2).evaluate(ctx) is False


@pytest.mark.parametrize("value_type", [int, float])
def test_print_value_writes_name_and_value(value_type):
    out = io.StringIO()
    ctx = ExecContext(value_type)
    ctx.assign("x", 7)
    PrintValue("x", out).exec(ctx)
    assert out.getvalue() == "x=7\n"


def test_format_value_float_uses_general_format():
    assert format_value(1e9) == "1e+09"
    assert format_value(0.5) == "0.5"


def test_format_value_int():
    assert format_value(1_000_000_000) == "1000000000"


def test_execute_reports_error_on_stderr(capsys):
    ctx = execute(IncrementBy("z", 1), int)
    captured = capsys.readouterr()
    assert captured.err == "exception caught: there is no such variable: z\n"
    with pytest.raises(LookupError):
        ctx.get("z")


def test_execute_returns_context_after_run():
    script = CompoundStatement([AssignTo("a", 1), IncrementBy("a", 4)])
    ctx = execute(script, int)
    assert ctx.get("a") == 5