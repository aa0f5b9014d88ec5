import pytest

from ucl.errors import ArithmeticFault, NoReturnValueError, OperandTypeError, UnboundVariableError
from ucl.ir import BinaryOp, FunctionCall, Literal, UnaryOp, VarRef
from ucl.runtime.expressions import (
    NO_VALUE,
    ExpressionEvaluator,
    VariableEnvironment,
    arithmetic,
    compare,
    is_truthy,
)


def _evaluator(env=None, store=None, functions=None):
    env = env or VariableEnvironment()
    store = store or {}
    functions = functions or {}

    def resolver(name):
        if name in store:
            return True, store[name]
        return False, None

    def call(name, args):
        return functions[name](**args)

    return ExpressionEvaluator(env, resolver, call)


def test_arithmetic_keeps_ints_and_exact_division():
    assert arithmetic("+", 2, 3) == 5
    assert arithmetic("%", 7, 3) == 1
    assert arithmetic("/", 6, 3) == 2
    assert isinstance(arithmetic("/", 6, 3), int)
    assert arithmetic("/", 7, 2) == 3.5


def test_arithmetic_rejects_non_numbers():
    with pytest.raises(OperandTypeError):
        arithmetic("+", "a", "b")
    with pytest.raises(OperandTypeError):
        arithmetic("*", True, 2)


def test_division_and_modulo_by_zero():
    with pytest.raises(ArithmeticFault):
        arithmetic("/", 1, 0)
    with pytest.raises(ArithmeticFault):
        arithmetic("%", 1, 0)


def test_overflow_and_undefined_powers_are_arithmetic_faults():
    with pytest.raises(ArithmeticFault, match="too large"):
        arithmetic("/", 10**400, 3)
    with pytest.raises(ArithmeticFault, match="too large"):
        arithmetic("**", 10.0, 400)
    with pytest.raises(ArithmeticFault):
        arithmetic("**", 0, -1)
    with pytest.raises(ArithmeticFault):
        arithmetic("**", -8, 0.5)


def test_comparisons():
    assert compare("<", 1, 2.5)
    assert compare("<=", "abc", "abd")
    assert compare("==", True, True)
    assert compare("!=", 1, 2)
    with pytest.raises(OperandTypeError):
        compare("==", 1, "1")
    with pytest.raises(OperandTypeError):
        compare("<", True, False)


def test_truthiness():
    assert is_truthy(True)
    assert not is_truthy(0)
    assert is_truthy(-1.5)
    assert not is_truthy("")
    assert is_truthy("x")
    assert not is_truthy([])
    assert not is_truthy(None)
    assert not is_truthy(NO_VALUE)


def test_boolean_operators_short_circuit():
    evaluator = _evaluator()
    # the right side would raise if evaluated
    boom = VarRef("missing")
    assert evaluator.evaluate(BinaryOp("and", Literal(False), boom)) is False
    assert evaluator.evaluate(BinaryOp("or", Literal(1), boom)) is True
    assert evaluator.evaluate(UnaryOp("not", Literal(0))) is True
    assert evaluator.evaluate(UnaryOp("-", Literal(4))) == -4


def test_variables_resolve_innermost_first_then_substrate():
    env = VariableEnvironment()
    env.assign("x", 1)
    env.push_block({"x": 2})
    evaluator = _evaluator(env, store={"y": 10})
    assert evaluator.evaluate(BinaryOp("+", VarRef("x"), VarRef("y"))) == 12
    env.pop()
    assert evaluator.evaluate(VarRef("x")) == 1


def test_unbound_variable():
    with pytest.raises(UnboundVariableError):
        _evaluator().evaluate(VarRef("ghost"))


def test_expired_loop_variable_message():
    env = VariableEnvironment()
    env.push_block({"i": 3})
    env.pop()
    env.mark_loop_var_exited("i")
    with pytest.raises(UnboundVariableError) as excinfo:
        _evaluator(env).evaluate(VarRef("i"))
    assert "only inside its loop" in excinfo.value.message


def test_function_frame_hides_caller_locals():
    env = VariableEnvironment()
    env.assign("g", 1)
    env.push_block({"local": 2})
    env.push_function({"n": 3})
    assert env.resolve("g") == (True, 1)
    assert env.resolve("local") == (False, None)
    env.assign("g", 5)
    env.pop()
    env.pop()
    # writes inside a function stay in its frame
    assert env.resolve("g") == (True, 1)


def test_top_level_assign_updates_enclosing_scope():
    env = VariableEnvironment()
    env.assign("total", 0)
    env.push_block({"i": 1})
    env.assign("total", 10)
    env.pop()
    assert env.resolve("total") == (True, 10)


def test_function_call_result_and_missing_return():
    evaluator = _evaluator(functions={"double": lambda n: n * 2, "nothing": lambda: NO_VALUE})
    assert evaluator.evaluate(FunctionCall("double", {"n": Literal(21)})) == 42
    with pytest.raises(NoReturnValueError):
        evaluator.evaluate(FunctionCall("nothing", {}))
