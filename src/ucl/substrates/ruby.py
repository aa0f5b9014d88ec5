"""
Code-emission substrate: translates actions into Ruby source.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..errors import ExternalInterpreterError
from ..ir import Action, BinaryOp, Expr, FunctionCall, Literal, Operation, UnaryOp, VarRef
from ..runtime.config import RuntimeConfig
from .base import Effect, Substrate

log = logging.getLogger(__name__)

HEADER = "# Generated from UCL\n# Universal Causal Language -> Ruby Compiler\n\n"
INDENT = "  "

_CALL_OPERATORS = ("+", "-", "*", "/", "%", "**")
_POSITIONAL_ARGS = ("a", "b", "c", "arg", "args", "n", "x", "y", "z")
_WRITE_OPERATORS = {"multiply": "*", "add": "+", "subtract": "-", "divide": "/"}
_RUBY_OPERATORS = {"and": "&&", "or": "||"}


def ruby_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "nil"
    if isinstance(value, str):
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(ruby_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{key}: {ruby_literal(item)}" for key, item in value.items()) + "}"
    return ruby_literal(str(value))


def ruby_expression(
    expr: Optional[Expr],
    top: bool = False,
    functions: Optional[Mapping[str, Sequence[str]]] = None,
) -> str:
    """
    Render an expression; ``top`` drops the outer parentheses of a binary operation.

    ``functions`` maps defined function names to their parameter lists so call
    arguments come out in declared order.
    """
    if expr is None:
        return "nil"
    if isinstance(expr, Literal):
        return ruby_literal(expr.value)
    if isinstance(expr, VarRef):
        return expr.name
    if isinstance(expr, BinaryOp):
        op = _RUBY_OPERATORS.get(expr.op, expr.op)
        left = ruby_expression(expr.left, functions=functions)
        right = ruby_expression(expr.right, functions=functions)
        text = f"{left} {op} {right}"
        return text if top else f"({text})"
    if isinstance(expr, UnaryOp):
        if expr.op == "not":
            return f"!({ruby_expression(expr.operand, top=True, functions=functions)})"
        return f"-({ruby_expression(expr.operand, top=True, functions=functions)})"
    if isinstance(expr, FunctionCall):
        declared = (functions or {}).get(expr.name)
        if declared is not None:
            ordered = [expr.args[name] for name in declared if name in expr.args]
        else:
            ordered = list(expr.args.values())
        args = ", ".join(ruby_expression(arg, top=True, functions=functions) for arg in ordered)
        return f"{expr.name}({args})"
    return ruby_literal(str(expr))


@dataclass
class RubyRun:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_emitted_source(source: str, ruby_bin: str = "ruby", timeout: Optional[float] = 30.0) -> RubyRun:
    """Execute emitted source with an external Ruby interpreter."""
    try:
        completed = subprocess.run(
            [ruby_bin, "-e", source],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ExternalInterpreterError(f"Ruby interpreter '{ruby_bin}' was not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise ExternalInterpreterError(f"Ruby interpreter timed out after {timeout}s") from exc
    if completed.returncode != 0:
        log.info("ruby exited with %d: %s", completed.returncode, completed.stderr.strip())
    return RubyRun(returncode=completed.returncode, stdout=completed.stdout, stderr=completed.stderr)


class RubySubstrate(Substrate):
    """
    Accumulates Ruby statements, one per applied action.

    Control-flow actions are emitted as whole blocks, so the engine hands them
    over without executing them. The output is a pure function of the actions
    applied, in order.
    """

    kind = "ruby"
    translates_control_flow = True

    def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
        super().__init__(config)
        self.lines: List[str] = []
        self.variables: Dict[str, str] = {}
        self.indent_level = 0
        self.functions: Dict[str, List[str]] = {}

    def handlers(self) -> Dict[Operation, Callable[[Action, Dict[str, Any]], Effect]]:
        return {op: self._emit_action for op in Operation}

    def source(self) -> str:
        body = "".join(line + "\n" for line in self.lines)
        return HEADER + body

    def run(self, timeout: Optional[float] = 30.0) -> RubyRun:
        return run_emitted_source(self.source(), ruby_bin=self.config.ruby_bin, timeout=timeout)

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data.update({"source": self.source(), "statements": len(self.lines), "variables": dict(self.variables)})
        return data

    # --------------------------------------------------------------- emission

    def _emit_action(self, action: Action, params: Dict[str, Any]) -> Effect:
        code = self.compile_action(action)
        if code:
            self.lines.append(code)
        return Effect(f"{action.describe()}: {code.splitlines()[0] if code else ''}", {"emitted": code})

    def degrade(self, action: Action, params: Dict[str, Any]) -> Effect:
        code = self._unsupported(action, INDENT * self.indent_level)
        self.lines.append(code)
        return Effect(f"{action.describe()}: {code.strip()}", {"emitted": code})

    def compile_action(self, action: Action) -> str:
        indent = INDENT * self.indent_level
        op = action.operation
        emitters = {
            Operation.CALL: self._call,
            Operation.ASSIGN: self._assign,
            Operation.BIND: self._assign,
            Operation.WRITE: self._write,
            Operation.READ: lambda a, i: f"{i}{a.target}",
            Operation.CREATE: self._create,
            Operation.EMIT: self._emit,
            Operation.ASSERT: self._assert,
            Operation.STORE_FACT: self._store_fact,
            Operation.RETURN: self._return,
            Operation.DECIDE: self._decide,
            Operation.WAIT: self._wait,
            Operation.SEND: self._send,
            Operation.IF: self._if,
            Operation.WHILE: self._while,
            Operation.FOR: self._for,
            Operation.DEFINE_FUNCTION: self._define_function,
        }
        emitter = emitters.get(op) if isinstance(op, Operation) else None
        if emitter is None:
            return self._unsupported(action, indent)
        return emitter(action, indent)

    def _unsupported(self, action: Action, indent: str) -> str:
        return f"{indent}# Unsupported operation: {action.op_name} on {action.target}"

    def _block(self, actions: Optional[List[Action]]) -> List[str]:
        lines: List[str] = []
        self.indent_level += 1
        try:
            for nested in actions or []:
                code = self.compile_action(nested)
                if code:
                    lines.append(code)
        finally:
            self.indent_level -= 1
        return lines

    def _expr(self, expr: Optional[Expr], top: bool = False) -> str:
        return ruby_expression(expr, top=top, functions=self.functions)

    def _out_prefix(self, action: Action) -> str:
        out = action.literal_param("out")
        if out:
            self.variables[str(out)] = "assigned"
            return f"{out} = "
        return ""

    def _call(self, action: Action, indent: str) -> str:
        params = action.params
        prefix = self._out_prefix(action)
        if action.target in _CALL_OPERATORS:
            if "lhs_register" in params and "rhs_register" in params:
                lhs = str(action.literal_param("lhs_register", ""))
                rhs = str(action.literal_param("rhs_register", ""))
                return f"{indent}{prefix}({lhs} {action.target} {rhs})"
            if "lhs" in params and "rhs" in params:
                lhs = self._expr(params["lhs"])
                rhs = self._expr(params["rhs"])
                return f"{indent}{prefix}({lhs} {action.target} {rhs})"
        declared = self.functions.get(action.target)
        if declared is not None:
            args = [self._expr(params[name], top=True) for name in declared if name in params]
            return f"{indent}{prefix}{action.target}({', '.join(args)})"
        args = [self._expr(params[key], top=True) for key in _POSITIONAL_ARGS if key in params]
        if not args:
            args = [
                f"{key}: {self._expr(value, top=True)}"
                for key, value in params.items()
                if key not in ("lhs", "rhs", "receiver", "out")
            ]
        return f"{indent}{prefix}{action.target}({', '.join(args)})"

    def _assign(self, action: Action, indent: str) -> str:
        self.variables[action.target] = "assigned" if action.operation is Operation.ASSIGN else "bound"
        return f"{indent}{action.target} = {self._expr(action.params.get('value'), top=True)}"

    def _write(self, action: Action, indent: str) -> str:
        params = action.params
        operation = action.literal_param("operation")
        if operation is not None:
            operator = _WRITE_OPERATORS.get(str(operation), "*")
            sides = []
            for side in ("lhs", "rhs"):
                if f"{side}_register" in params:
                    sides.append(str(action.literal_param(f"{side}_register", "")))
                elif side in params:
                    sides.append(self._expr(params[side]))
                else:
                    return f"{indent}# Write {action.target}: missing {side}"
            return f"{indent}{action.target} = {sides[0]} {operator} {sides[1]}"
        if "value" in params:
            return f"{indent}{action.target} = {self._expr(params['value'], top=True)}"
        return f"{indent}# Write {action.target}: no value"

    def _create(self, action: Action, indent: str) -> str:
        if not action.params:
            return f"{indent}{action.target}.new"
        args = ", ".join(f"{key}: {self._expr(value, top=True)}" for key, value in action.params.items())
        return f"{indent}{action.target}.new({args})"

    def _emit(self, action: Action, indent: str) -> str:
        params = action.params
        if "content" in params:
            content = params["content"]
            if isinstance(content, Literal) and content.value == action.target:
                message = action.target
            else:
                message = self._expr(content, top=True)
        elif "message" in params:
            message = self._expr(params["message"], top=True)
        else:
            message = action.target
        return f"{indent}puts {message}"

    def _assert(self, action: Action, indent: str) -> str:
        statement = action.params.get("statement")
        text = self._expr(statement, top=True) if statement is not None else ruby_literal(action.target)
        return f"{indent}# Assert: {text}"

    def _store_fact(self, action: Action, indent: str) -> str:
        if not action.params:
            return f"{indent}# Store fact about {action.target}"
        facts = ", ".join(
            f"{action.target}.{key} = {self._expr(value, top=True)}" for key, value in action.params.items()
        )
        return f"{indent}# Store fact: {facts}"

    def _return(self, action: Action, indent: str) -> str:
        if "value" in action.params:
            return f"{indent}return {self._expr(action.params['value'], top=True)}"
        return f"{indent}return {action.target}"

    def _decide(self, action: Action, indent: str) -> str:
        choice = action.params.get("choice") or action.params.get("decision")
        text = self._expr(choice, top=True) if choice is not None else ruby_literal(action.target)
        return f"{indent}# Decide: {text}"

    def _wait(self, action: Action, indent: str) -> str:
        duration = action.duration
        if duration is None:
            duration = action.literal_param("duration", 1.0)
        return f"{indent}sleep {ruby_literal(duration)}"

    def _send(self, action: Action, indent: str) -> str:
        value = self._expr(action.params.get("value"), top=True)
        destination = action.literal_param("destination", "?")
        channel = action.literal_param("channel", "?")
        return f"{indent}# Send {value} to {destination} on {channel}"

    def _if(self, action: Action, indent: str) -> str:
        lines = [f"{indent}if {self._expr(action.condition, top=True)}"]
        lines.extend(self._block(action.then_actions))
        if action.else_actions is not None:
            lines.append(f"{indent}else")
            lines.extend(self._block(action.else_actions))
        lines.append(f"{indent}end")
        return "\n".join(lines)

    def _while(self, action: Action, indent: str) -> str:
        lines = [f"{indent}while {self._expr(action.condition, top=True)}"]
        lines.extend(self._block(action.body))
        lines.append(f"{indent}end")
        return "\n".join(lines)

    def _for(self, action: Action, indent: str) -> str:
        start = self._expr(action.range_from)
        end = self._expr(action.range_to)
        lines = [f"{indent}({start}..{end}).each do |{action.loop_var}|"]
        lines.extend(self._block(action.body))
        lines.append(f"{indent}end")
        return "\n".join(lines)

    def _define_function(self, action: Action, indent: str) -> str:
        declared = list(action.function_params or [])
        # recorded before the body so recursive calls keep declared order
        self.functions[action.target] = declared
        params = ", ".join(declared)
        lines = [f"{indent}def {action.target}({params})"]
        lines.extend(self._block(action.body))
        lines.append(f"{indent}end")
        return "\n".join(lines)


def compile_to_ruby(actions: List[Action], config: Optional[RuntimeConfig] = None) -> str:
    """Emit Ruby for ``actions`` without running any channel primitives."""
    substrate = RubySubstrate(config)
    for action in actions:
        substrate.apply(action, None)
    return substrate.source()


__all__ = ["HEADER", "RubyRun", "RubySubstrate", "compile_to_ruby", "ruby_expression", "ruby_literal", "run_emitted_source"]
