"""
Control-flow engine: runs an action sequence against one substrate.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..errors import (
    PARTITION_FATAL,
    LoopLimitExceeded,
    NoReturnValueError,
    OperandTypeError,
    RecursionLimitExceeded,
    UCLError,
    UndefinedFunctionError,
)
from ..ir import RESERVED_CALL_PARAMS, Action, Expr, FunctionDef, Literal, Operation, Program, VarRef
from ..substrates.base import Substrate, render
from ..validator import ensure_valid
from .config import RuntimeConfig, load_config
from .expressions import NO_VALUE, ExpressionEvaluator, VariableEnvironment, arithmetic, is_number, is_truthy
from .signals import ReturnSignal
from .stack import ensure_recursion_headroom, run_on_deep_stack

if TYPE_CHECKING:
    from ..coordinator.channels import ChannelHub

log = logging.getLogger(__name__)

CALL_OPERATORS = frozenset({"+", "-", "*", "/", "%", "**"})


@dataclass
class FailureReport:
    code: str
    kind: str
    message: str
    action_index: Optional[int] = None
    location: Optional[str] = None
    limit: Optional[int] = None

    @classmethod
    def from_error(cls, exc: UCLError, action_index: Optional[int]) -> "FailureReport":
        return cls(
            code=exc.code,
            kind=exc.kind,
            message=exc.message,
            action_index=action_index,
            location=exc.location,
            limit=getattr(exc, "limit", None),
        )

    def headline(self) -> str:
        where = f" at {self.location}" if self.location else ""
        return f"ABORTED: {self.kind} ({self.code}){where}: {self.message}"


@dataclass
class ExecutionResult:
    status: str
    value: Any = None
    trace: List[str] = field(default_factory=list)
    failure: Optional[FailureReport] = None

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "value": None if self.value is NO_VALUE else self.value,
            "trace": list(self.trace),
            "failure": None if self.failure is None else asdict(self.failure),
        }


class Interpreter:
    """
    Executes actions for one substrate.

    Primitive actions are evaluated and forwarded to the substrate; control
    flow, functions and variables are handled here. When a hub is given the
    interpreter also performs channel Send and Receive for ``actor``.
    """

    def __init__(
        self,
        substrate: Substrate,
        config: Optional[RuntimeConfig] = None,
        hub: Optional["ChannelHub"] = None,
        actor: Optional[str] = None,
    ) -> None:
        self.substrate = substrate
        self.config = config or substrate.config
        self.hub = hub
        self.actor = actor
        self.env = VariableEnvironment()
        self.functions: Dict[str, FunctionDef] = {}
        self.depth = 0
        self.trace: List[str] = []
        self.evaluator = ExpressionEvaluator(self.env, substrate.recall, self.call_function)
        self.action_index: Optional[int] = None

    # ------------------------------------------------------------------ run

    def execute(self, actions: Sequence[Action], positions: Optional[Sequence[int]] = None) -> ExecutionResult:
        """
        Run ``actions`` to completion or abort.

        ``positions`` maps each action to its index in the original program
        so failure locations refer to the program the caller holds.
        """
        indices = list(positions) if positions is not None else list(range(len(actions)))
        ensure_recursion_headroom(self.config.max_call_depth)
        log.info("Running %d action(s) on %s substrate", len(actions), self.substrate.kind)
        value: Any = None
        try:
            for action, index in zip(actions, indices):
                self.action_index = index
                location = f"actions[{index}]"
                if self.substrate.translates_control_flow:
                    self._translate_action(action, location)
                else:
                    self._execute_action(action, location)
        except ReturnSignal as ret:
            value = ret.value
            self.trace.append(f"Return: {render(value)}")
        except PARTITION_FATAL as exc:
            failure = FailureReport.from_error(exc, self.action_index)
            self.trace.append(failure.headline())
            log.warning("Run aborted on %s substrate: %s", self.substrate.kind, exc)
            return ExecutionResult(status="aborted", trace=list(self.trace), failure=failure)
        log.info("Run finished on %s substrate", self.substrate.kind)
        return ExecutionResult(status="completed", value=value, trace=list(self.trace))

    # ------------------------------------------------------------ evaluation

    def evaluate(self, expr: Optional[Expr]) -> Any:
        if expr is None:
            return None
        return self.evaluator.evaluate(expr)

    def _value(self, expr: Optional[Expr], where: str) -> Any:
        value = self.evaluate(expr)
        if value is NO_VALUE:
            raise NoReturnValueError(f"{where} used a function result that has no value")
        return value

    def _evaluate_params(self, action: Action) -> Dict[str, Any]:
        return {name: self._value(expr, f"{action.describe()}.{name}") for name, expr in action.params.items()}

    def call_function(self, name: str, args: Dict[str, Any]) -> Any:
        fn = self.functions.get(name)
        if fn is None:
            raise UndefinedFunctionError(f"Function '{name}' is not defined")
        if set(args) != set(fn.params):
            expected = ", ".join(fn.params)
            given = ", ".join(sorted(args))
            raise OperandTypeError(f"Function '{name}' expects ({expected}) but was called with ({given})")
        if self.depth >= self.config.max_call_depth:
            raise RecursionLimitExceeded(
                f"Maximum call depth of {self.config.max_call_depth} reached calling '{name}'",
                limit=self.config.max_call_depth,
            )
        self.depth += 1
        self.env.push_function(args)
        try:
            self._execute_block(fn.body, f"{fn.location}.body")
        except ReturnSignal as ret:
            return ret.value
        finally:
            self.env.pop()
            self.depth -= 1
        return NO_VALUE

    # ------------------------------------------------------------- dispatch

    def _execute_block(self, actions: Optional[Sequence[Action]], prefix: str) -> None:
        for idx, action in enumerate(actions or []):
            self._execute_action(action, f"{prefix}[{idx}]")

    def _execute_action(self, action: Action, location: str) -> None:
        try:
            op = action.operation
            if op is Operation.IF:
                self._run_if(action, location)
            elif op is Operation.WHILE:
                self._run_while(action, location)
            elif op is Operation.FOR:
                self._run_for(action, location)
            elif op is Operation.DEFINE_FUNCTION:
                self._define_function(action, location)
            elif op in (Operation.ASSIGN, Operation.BIND):
                self._assign(action)
            elif op is Operation.CALL:
                self._call(action)
            elif op is Operation.RETURN:
                self._return(action)
            elif op is Operation.SEND and self.hub is not None:
                self._send(action)
            elif op is Operation.RECEIVE and self.hub is not None and "channel" in action.params:
                self._receive(action)
            else:
                self._forward(action, self._evaluate_params(action))
        except UCLError as exc:
            if exc.location is None:
                exc.location = location
            raise

    def _forward(self, action: Action, params: Optional[Dict[str, Any]]) -> None:
        effect = self.substrate.apply(action, params)
        self.trace.append(effect.description)

    def _run_if(self, action: Action, location: str) -> None:
        taken = is_truthy(self._value(action.condition, "If condition"))
        self.trace.append(f"If({action.target}): {'then' if taken else 'else'}")
        if taken:
            self._execute_block(action.then_actions, f"{location}.then")
        elif action.else_actions:
            self._execute_block(action.else_actions, f"{location}.else")

    def _run_while(self, action: Action, location: str) -> None:
        limit = self.config.max_loop_iterations
        iterations = 0
        while is_truthy(self._value(action.condition, "While condition")):
            if iterations >= limit:
                raise LoopLimitExceeded(
                    f"While({action.target}) reached the limit of {limit} iterations", limit=limit
                )
            self._execute_block(action.body, f"{location}.body")
            iterations += 1
        self.trace.append(f"While({action.target}): {iterations} iteration(s)")

    def _range_bound(self, expr: Optional[Expr], name: str) -> int:
        value = self._value(expr, f"For {name}")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not is_number(value) or not isinstance(value, int):
            raise OperandTypeError(f"For '{name}' must be an integer, got {render(value)}")
        return value

    def _run_for(self, action: Action, location: str) -> None:
        start = self._range_bound(action.range_from, "from")
        end = self._range_bound(action.range_to, "to")
        var = action.loop_var or ""
        limit = self.config.max_loop_iterations
        count = 0
        for value in range(start, end + 1):
            if count >= limit:
                raise LoopLimitExceeded(f"For({var}) reached the limit of {limit} iterations", limit=limit)
            self.env.push_block({var: value})
            try:
                self._execute_block(action.body, f"{location}.body")
            finally:
                self.env.pop()
            count += 1
        self.env.mark_loop_var_exited(var)
        self.trace.append(f"For({var} in {start}..{end}): {count} iteration(s)")

    def _define_function(self, action: Action, location: str) -> None:
        name = action.target
        params = list(action.function_params or [])
        if name in self.functions:
            log.warning("Function '%s' redefined at %s", name, location)
            self.trace.append(f"Warning: function {name} redefined")
        self.functions[name] = FunctionDef(name=name, params=params, body=list(action.body or []), location=location)
        self.trace.append(f"DefineFunction {name}({', '.join(params)})")

    def _assign(self, action: Action) -> None:
        params = self._evaluate_params(action)
        self.env.assign(action.target, params.get("value"))
        self._forward(action, params)

    def _return(self, action: Action) -> None:
        if "value" in action.params:
            value = self._value(action.params["value"], "Return")
        else:
            found, value = self.env.resolve(action.target)
            if not found:
                value = action.target or None
        raise ReturnSignal(value)

    def _operand(self, action: Action, side: str) -> Any:
        if side in action.params:
            return self._value(action.params[side], f"{action.describe()}.{side}")
        register = str(action.literal_param(f"{side}_register", ""))
        return self._value(VarRef(register), f"{action.describe()}.{side}_register")

    def _call(self, action: Action) -> None:
        target = action.target
        out = action.literal_param("out")
        if target in self.functions:
            args = {
                name: self._value(expr, f"{action.describe()}.{name}")
                for name, expr in action.params.items()
                if name not in RESERVED_CALL_PARAMS
            }
            result = self.call_function(target, args)
            if out:
                if result is NO_VALUE:
                    raise NoReturnValueError(f"Function '{target}' finished without Return but its result was bound to '{out}'")
                self.env.assign(out, result)
            self.trace.append(f"Call {target}: {'no value' if result is NO_VALUE else render(result)}")
            return
        has_operands = ("lhs" in action.params or "lhs_register" in action.params) and (
            "rhs" in action.params or "rhs_register" in action.params
        )
        if target in CALL_OPERATORS and has_operands:
            lhs = self._operand(action, "lhs")
            rhs = self._operand(action, "rhs")
            result = arithmetic(target, lhs, rhs)
            if out:
                self.env.assign(out, result)
            # operands are evaluated once; a nested call must not run twice
            params = {
                name: self._value(expr, f"{action.describe()}.{name}")
                for name, expr in action.params.items()
                if name not in ("lhs", "rhs")
            }
            params.update({"lhs": lhs, "rhs": rhs, "result": result})
            self._forward(action, params)
            return
        self._forward(action, self._evaluate_params(action))

    # -------------------------------------------------------------- channels

    def _send(self, action: Action) -> None:
        params = self._evaluate_params(action)
        channel = str(params.get("channel"))
        destination = str(params.get("destination"))
        value = params.get("value")
        self.hub.send(channel, source=self.actor or "", destination=destination, value=value)
        self.trace.append(f"Send {render(value)} -> {destination} on {channel}")
        if self.substrate.translates_control_flow:
            self._forward(action, None)
        else:
            self._forward(action, params)

    def _receive(self, action: Action) -> None:
        channel = str(self._value(action.params.get("channel"), "Receive channel"))
        source = str(self._value(action.params.get("source"), "Receive source"))
        value = self.hub.receive(
            channel,
            source=source,
            destination=self.actor or "",
            timeout=self.config.receive_timeout,
        )
        self.env.assign(action.target, value)
        self.trace.append(f"Receive {action.target} = {render(value)} <- {source} on {channel}")
        if self.substrate.translates_control_flow:
            bound = Action(actor=action.actor, operation=Operation.ASSIGN, target=action.target, params={"value": Literal(value)})
            self._forward(bound, None)
        else:
            self._forward(action, {"channel": channel, "source": source, "value": value})

    # ----------------------------------------------------------- translation

    def _translate_action(self, action: Action, location: str) -> None:
        """Hand an action to a translating substrate, running only channel primitives here."""
        try:
            op = action.operation
            if op is Operation.SEND and self.hub is not None:
                self._send(action)
                return
            if op is Operation.RECEIVE and self.hub is not None and "channel" in action.params:
                self._receive(action)
                return
            if op in (Operation.ASSIGN, Operation.BIND):
                value = action.params.get("value")
                if isinstance(value, Literal):
                    self.env.assign(action.target, value.value)
            self._forward(action, None)
        except UCLError as exc:
            if exc.location is None:
                exc.location = location
            raise


def run_program(
    program: Program,
    substrate: Substrate,
    config: Optional[RuntimeConfig] = None,
) -> ExecutionResult:
    """
    Validate ``program`` and run all of its actions on one substrate.

    Structural errors are raised before anything runs; every other failure is
    reported in the returned result.
    """
    cfg = config or substrate.config or load_config()
    ensure_valid(program)
    interpreter = Interpreter(substrate, config=cfg)
    return run_on_deep_stack(interpreter.execute, program.actions, name=f"ucl-{substrate.kind}")


__all__ = ["CALL_OPERATORS", "ExecutionResult", "FailureReport", "Interpreter", "run_program"]
