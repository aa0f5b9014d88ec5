"""
Structural validator for UCL programs.

The validator checks the operation-specific required fields of every action,
recursing into nested blocks. It runs once before execution; nothing is
executed when it reports an error.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional

from .errors import StructuralError
from .ir import RESERVED_CALL_PARAMS, Action, Operation, Program


@dataclass
class Diagnostic:
    code: str
    severity: str
    message: str
    location: Optional[str] = None
    hint: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _diag(code: str, severity: str, message: str, location: Optional[str], hint: Optional[str] = None) -> Diagnostic:
    return Diagnostic(code=code, severity=severity, message=message, location=location, hint=hint)


# operation -> (attribute, display name)
_REQUIRED_FIELDS = {
    Operation.IF: [("condition", "condition"), ("then_actions", "then")],
    Operation.WHILE: [("condition", "condition"), ("body", "body")],
    Operation.FOR: [("loop_var", "var"), ("range_from", "from"), ("range_to", "to"), ("body", "body")],
    Operation.DEFINE_FUNCTION: [("target", "target"), ("function_params", "args"), ("body", "body")],
}

_REQUIRED_PARAMS = {
    Operation.SEND: ["value", "channel", "destination"],
    Operation.ASSIGN: ["value"],
    Operation.BIND: ["value"],
}


def _missing(value) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _check_action(action: Action, location: str, coordinated: bool) -> List[Diagnostic]:
    diags: List[Diagnostic] = []
    op = action.operation

    if _missing(action.actor):
        diags.append(
            _diag(
                code="UCL-1100",
                severity="warning",
                message=f"{action.op_name} has no actor",
                location=location,
                hint="Name the actor that owns this action.",
            )
        )

    for attr, display in _REQUIRED_FIELDS.get(op, []):
        if _missing(getattr(action, attr, None)):
            diags.append(
                _diag(
                    code="UCL-1001",
                    severity="error",
                    message=f"{action.op_name} is missing required field '{display}'",
                    location=location,
                    hint=f"Specify '{display}' for {action.op_name}.",
                )
            )

    for name in _REQUIRED_PARAMS.get(op, []):
        if name not in action.params:
            diags.append(
                _diag(
                    code="UCL-1001",
                    severity="error",
                    message=f"{action.op_name} is missing required parameter '{name}'",
                    location=location,
                    hint=f"Add params.{name} to {action.op_name}({action.target}).",
                )
            )

    if coordinated and op is Operation.RECEIVE:
        has_channel = "channel" in action.params
        has_source = "source" in action.params
        if has_channel != has_source:
            missing = "source" if has_channel else "channel"
            diags.append(
                _diag(
                    code="UCL-1002",
                    severity="error",
                    message=f"Receive must name both a channel and a source, '{missing}' is missing",
                    location=location,
                    hint="Give both params.channel and params.source, or neither for a plain perception.",
                )
            )

    if op is Operation.DEFINE_FUNCTION:
        for name in action.function_params or []:
            if name in RESERVED_CALL_PARAMS:
                diags.append(
                    _diag(
                        code="UCL-1003",
                        severity="error",
                        message=f"Parameter '{name}' of function '{action.target}' is reserved for Call",
                        location=location,
                        hint=f"Rename it; {', '.join(sorted(RESERVED_CALL_PARAMS))} are never passed as arguments.",
                    )
                )

    for attr, key in (("then_actions", "then"), ("else_actions", "else"), ("body", "body")):
        nested = getattr(action, attr, None)
        if nested:
            diags.extend(_check_block(nested, f"{location}.{key}", coordinated))
    return diags


def _check_block(actions: Iterable[Action], prefix: str, coordinated: bool) -> List[Diagnostic]:
    diags: List[Diagnostic] = []
    for idx, action in enumerate(actions):
        diags.extend(_check_action(action, f"{prefix}[{idx}]", coordinated))
    return diags


def collect_diagnostics(program: Program, coordinated: bool = False) -> List[Diagnostic]:
    """Return every structural problem in ``program``, errors and warnings alike."""
    return _check_block(program.actions, "actions", coordinated)


def ensure_valid(program: Program, coordinated: bool = False) -> List[Diagnostic]:
    """
    Raise StructuralError on the first error; otherwise return the warnings.
    """
    diags = collect_diagnostics(program, coordinated=coordinated)
    for diag in diags:
        if diag.severity == "error":
            raise StructuralError(diag.message, location=diag.location, code=diag.code)
    return diags


__all__ = ["Diagnostic", "collect_diagnostics", "ensure_valid"]
