"""
Instruction model for UCL programs: actions, operations and expressions.

Everything here is plain data. Actions are built once (usually by
:mod:`ucl.schema`) and are treated as read-only while a program runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Operation(str, Enum):
    # cognitive / general
    STORE_FACT = "StoreFact"
    ASSERT = "Assert"
    EMIT = "Emit"
    RECEIVE = "Receive"
    SEND = "Send"
    MEASURE = "Measure"
    DECIDE = "Decide"
    READ = "Read"
    WRITE = "Write"
    CREATE = "Create"
    BIND = "Bind"
    OBLIGE = "Oblige"
    WAIT = "Wait"
    # programming
    CALL = "Call"
    ASSIGN = "Assign"
    RETURN = "Return"
    # control flow
    IF = "If"
    WHILE = "While"
    FOR = "For"
    DEFINE_FUNCTION = "DefineFunction"
    # actuation
    GATHER = "Gather"
    HEAT = "Heat"
    POUR = "Pour"
    MIX = "Mix"
    STIR = "Stir"
    PLACE = "Place"
    REMOVE = "Remove"
    STEEP = "Steep"
    SERVE = "Serve"
    GRASP = "Grasp"
    RELEASE = "Release"


CONTROL_FLOW_OPERATIONS = frozenset(
    {Operation.IF, Operation.WHILE, Operation.FOR, Operation.DEFINE_FUNCTION}
)

ACTUATOR_OPERATIONS = frozenset(
    {
        Operation.GATHER,
        Operation.HEAT,
        Operation.POUR,
        Operation.MIX,
        Operation.STIR,
        Operation.PLACE,
        Operation.REMOVE,
        Operation.STEEP,
        Operation.SERVE,
        Operation.GRASP,
        Operation.RELEASE,
    }
)

_OPERATIONS_BY_NAME = {op.value.lower(): op for op in Operation}
_OPERATION_ALIASES = {
    "store_fact": Operation.STORE_FACT,
    "define_function": Operation.DEFINE_FUNCTION,
    "conditional": Operation.IF,
}


@dataclass(frozen=True)
class CustomOperation:
    """An operation name the runtime does not recognise."""

    name: str

    @property
    def value(self) -> str:
        return self.name


OperationKind = Union[Operation, CustomOperation]


def parse_operation(name: str) -> OperationKind:
    key = (name or "").strip().lower()
    if key in _OPERATIONS_BY_NAME:
        return _OPERATIONS_BY_NAME[key]
    if key in _OPERATION_ALIASES:
        return _OPERATION_ALIASES[key]
    return CustomOperation(name=name)


def operation_name(op: OperationKind) -> str:
    return op.value


# ---------------------------------------------------------------------------
# Expressions


@dataclass(frozen=True)
class Expr:
    """Base class for expression nodes."""


@dataclass(frozen=True)
class Literal(Expr):
    value: Any = None


@dataclass(frozen=True)
class VarRef(Expr):
    name: str


@dataclass(frozen=True)
class BinaryOp(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class UnaryOp(Expr):
    op: str
    operand: Expr


@dataclass(frozen=True, eq=False)
class FunctionCall(Expr):
    name: str
    args: Dict[str, Expr] = field(default_factory=dict)


ARITHMETIC_OPERATORS = frozenset({"+", "-", "*", "/", "%"})
COMPARISON_OPERATORS = frozenset({"==", "!=", "<", "<=", ">", ">="})
BOOLEAN_OPERATORS = frozenset({"and", "or"})
UNARY_OPERATORS = frozenset({"-", "not"})
BINARY_OPERATORS = ARITHMETIC_OPERATORS | COMPARISON_OPERATORS | BOOLEAN_OPERATORS

# Call parameters consumed by the call itself, never passed as arguments.
RESERVED_CALL_PARAMS = frozenset({"out", "receiver", "atomic"})


# ---------------------------------------------------------------------------
# Actions and programs


@dataclass
class Action:
    actor: str
    operation: OperationKind
    target: str
    time: Optional[float] = None
    duration: Optional[float] = None
    params: Dict[str, Expr] = field(default_factory=dict)
    precondition: Optional[str] = None
    postcondition: Optional[str] = None
    effects: List[str] = field(default_factory=list)
    # control flow
    condition: Optional[Expr] = None
    then_actions: Optional[List["Action"]] = None
    else_actions: Optional[List["Action"]] = None
    body: Optional[List["Action"]] = None
    loop_var: Optional[str] = None
    range_from: Optional[Expr] = None
    range_to: Optional[Expr] = None
    function_params: Optional[List[str]] = None

    @property
    def op_name(self) -> str:
        return operation_name(self.operation)

    @property
    def is_custom(self) -> bool:
        return isinstance(self.operation, CustomOperation)

    @property
    def is_control_flow(self) -> bool:
        return self.operation in CONTROL_FLOW_OPERATIONS

    def param(self, name: str) -> Optional[Expr]:
        return self.params.get(name)

    def literal_param(self, name: str, default: Any = None) -> Any:
        """Return a parameter's value when it is a literal, else ``default``."""
        expr = self.params.get(name)
        if isinstance(expr, Literal):
            return expr.value
        return default

    def describe(self) -> str:
        return f"{self.op_name}({self.target})"


@dataclass
class FunctionDef:
    name: str
    params: List[str]
    body: List[Action]
    location: str = ""


@dataclass
class Program:
    actions: List[Action] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def actors(self) -> List[str]:
        seen: List[str] = []
        for action in self.actions:
            if action.actor not in seen:
                seen.append(action.actor)
        return seen


def action(actor: str, op: Union[str, OperationKind], target: str, **kwargs: Any) -> Action:
    """Convenience builder used by tests and embedding code.

    Plain values in ``params`` are wrapped as literals; expression nodes pass
    through untouched.
    """
    operation = parse_operation(op) if isinstance(op, str) else op
    params = {
        key: value if isinstance(value, Expr) else Literal(value)
        for key, value in (kwargs.pop("params", None) or {}).items()
    }
    return Action(actor=actor, operation=operation, target=target, params=params, **kwargs)
