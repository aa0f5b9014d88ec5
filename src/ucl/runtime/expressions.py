from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import (
    ArithmeticFault,
    EvaluationError,
    NoReturnValueError,
    OperandTypeError,
    UnboundVariableError,
)
from ..ir import (
    ARITHMETIC_OPERATORS,
    COMPARISON_OPERATORS,
    BinaryOp,
    Expr,
    FunctionCall,
    Literal,
    UnaryOp,
    VarRef,
)


class _NoValue:
    """Result of a function that finished without Return."""

    _instance: Optional["_NoValue"] = None

    def __new__(cls) -> "_NoValue":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False


NO_VALUE = _NoValue()


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    if value is None or value is NO_VALUE:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    return True


def describe_value(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return repr(value)


class _Frame:
    __slots__ = ("values", "is_function")

    def __init__(self, values: Optional[Dict[str, Any]] = None, is_function: bool = False) -> None:
        self.values: Dict[str, Any] = dict(values or {})
        self.is_function = is_function


class VariableEnvironment:
    """
    Chain of variable frames for one substrate run.

    The first frame is the global frame. Function calls push a function frame
    and loop iterations push a block frame. A function body sees its own
    frames plus the global frame, never the caller's locals.
    """

    def __init__(self, backing: Dict[str, Any] | None = None) -> None:
        self._frames: List[_Frame] = [_Frame(backing)]
        self._expired_loop_vars: set[str] = set()

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def in_function(self) -> bool:
        return any(frame.is_function for frame in self._frames[1:])

    def _visible(self) -> List[_Frame]:
        frames: List[_Frame] = []
        for frame in reversed(self._frames):
            frames.append(frame)
            if frame.is_function:
                if self._frames[0] is not frame:
                    frames.append(self._frames[0])
                break
        return frames

    def _writable(self) -> List[_Frame]:
        if not self.in_function:
            return list(reversed(self._frames))
        frames: List[_Frame] = []
        for frame in reversed(self._frames):
            frames.append(frame)
            if frame.is_function:
                break
        return frames

    def push_function(self, bindings: Dict[str, Any]) -> None:
        self._frames.append(_Frame(bindings, is_function=True))

    def push_block(self, bindings: Dict[str, Any] | None = None) -> None:
        self._frames.append(_Frame(bindings))

    def pop(self) -> Dict[str, Any]:
        if len(self._frames) == 1:
            raise EvaluationError("Cannot pop the global frame")
        return self._frames.pop().values

    def has(self, name: str) -> bool:
        return any(name in frame.values for frame in self._visible())

    def resolve(self, name: str) -> Tuple[bool, Any]:
        for frame in self._visible():
            if name in frame.values:
                return True, frame.values[name]
        return False, None

    def assign(self, name: str, value: Any) -> None:
        """Update the nearest writable frame holding ``name``, else declare it innermost."""
        self._expired_loop_vars.discard(name)
        for frame in self._writable():
            if name in frame.values:
                frame.values[name] = value
                return
        self._frames[-1].values[name] = value

    def declare(self, name: str, value: Any) -> None:
        self._expired_loop_vars.discard(name)
        self._frames[-1].values[name] = value

    def globals(self) -> Dict[str, Any]:
        return dict(self._frames[0].values)

    def mark_loop_var_exited(self, name: str) -> None:
        if not self.has(name):
            self._expired_loop_vars.add(name)

    @property
    def expired_loop_vars(self) -> set[str]:
        return self._expired_loop_vars


class ExpressionEvaluator:
    """Evaluates expression nodes against a variable environment."""

    def __init__(
        self,
        env: VariableEnvironment,
        resolver: Callable[[str], Tuple[bool, Any]],
        call_function: Callable[[str, Dict[str, Any]], Any],
    ) -> None:
        self.env = env
        self.resolver = resolver
        self.call_function = call_function

    def _unknown_identifier(self, name: str) -> None:
        if name in self.env.expired_loop_vars:
            raise UnboundVariableError(
                f"{name} exists only inside its loop. If you need it later, Assign it to another variable inside the loop."
            )
        raise UnboundVariableError(f"Variable '{name}' is not defined")

    def evaluate(self, expr: Expr) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, VarRef):
            found, value = self.env.resolve(expr.name)
            if found:
                return value
            found, value = self.resolver(expr.name)
            if found:
                return value
            self._unknown_identifier(expr.name)
        if isinstance(expr, UnaryOp):
            val = self._consume(self.evaluate(expr.operand), expr.op)
            if expr.op == "not":
                return not is_truthy(val)
            if expr.op == "-":
                if not is_number(val):
                    raise OperandTypeError(f"Unary '-' expects a number, got {describe_value(val)}")
                return -val
            raise EvaluationError(f"Unsupported unary operator '{expr.op}'")
        if isinstance(expr, BinaryOp):
            return self._binary(expr)
        if isinstance(expr, FunctionCall):
            args = {name: self._consume(self.evaluate(arg), expr.name) for name, arg in expr.args.items()}
            result = self.call_function(expr.name, args)
            if result is NO_VALUE:
                raise NoReturnValueError(f"Function '{expr.name}' finished without Return but its result was used")
            return result
        raise EvaluationError(f"Unsupported expression {expr!r}")

    def _consume(self, value: Any, where: str) -> Any:
        if value is NO_VALUE:
            raise NoReturnValueError(f"A value without a result was used in '{where}'")
        return value

    def _binary(self, expr: BinaryOp) -> Any:
        op = expr.op
        if op == "and":
            left = self._consume(self.evaluate(expr.left), op)
            if not is_truthy(left):
                return False
            return is_truthy(self._consume(self.evaluate(expr.right), op))
        if op == "or":
            left = self._consume(self.evaluate(expr.left), op)
            if is_truthy(left):
                return True
            return is_truthy(self._consume(self.evaluate(expr.right), op))

        left = self._consume(self.evaluate(expr.left), op)
        right = self._consume(self.evaluate(expr.right), op)
        if op in ARITHMETIC_OPERATORS:
            return arithmetic(op, left, right)
        if op in COMPARISON_OPERATORS:
            return compare(op, left, right)
        raise EvaluationError(f"Unsupported operator '{op}'")


def arithmetic(op: str, left: Any, right: Any) -> Any:
    if not (is_number(left) and is_number(right)):
        raise OperandTypeError(
            f"'{op}' expects two numbers, got {describe_value(left)} and {describe_value(right)}"
        )
    try:
        result = _apply_arithmetic(op, left, right)
    except OverflowError as exc:
        raise ArithmeticFault(f"Result of {describe_value(left)} {op} {describe_value(right)} is too large") from exc
    except ZeroDivisionError as exc:
        raise ArithmeticFault(f"{describe_value(left)} {op} {describe_value(right)} divides by zero") from exc
    if isinstance(result, complex):
        raise ArithmeticFault(f"{describe_value(left)} {op} {describe_value(right)} has no real result")
    return result


def _apply_arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "**":
        return left**right
    if right == 0:
        raise ArithmeticFault(f"{'Division' if op == '/' else 'Modulo'} by zero")
    if op == "/":
        if isinstance(left, int) and isinstance(right, int) and left % right == 0:
            return left // right
        return left / right
    if op == "%":
        return left % right
    raise EvaluationError(f"Unsupported arithmetic operator '{op}'")


def compare(op: str, left: Any, right: Any) -> bool:
    numeric = is_number(left) and is_number(right)
    if op in ("==", "!="):
        if not numeric and type(left) is not type(right):
            raise OperandTypeError(f"Cannot compare {describe_value(left)} with {describe_value(right)}")
        return (left == right) if op == "==" else (left != right)
    if not numeric and not (isinstance(left, str) and isinstance(right, str)):
        raise OperandTypeError(f"Cannot order {describe_value(left)} and {describe_value(right)} with '{op}'")
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    raise EvaluationError(f"Unsupported comparison operator '{op}'")


__all__ = [
    "NO_VALUE",
    "VariableEnvironment",
    "ExpressionEvaluator",
    "arithmetic",
    "compare",
    "describe_value",
    "is_number",
    "is_truthy",
]
