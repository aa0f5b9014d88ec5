"""
JSON exchange form for UCL programs.

Pydantic models describe the wire shape; ``to_action`` / ``to_program``
convert them into the plain instruction model used by the runtime.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import StructuralError
from .ir import (
    BINARY_OPERATORS,
    UNARY_OPERATORS,
    Action,
    BinaryOp,
    Expr,
    FunctionCall,
    Literal,
    Operation,
    Program,
    UnaryOp,
    VarRef,
    parse_operation,
)

_COMPARISON_NAMES = {
    "equal": "==",
    "eq": "==",
    "notequal": "!=",
    "ne": "!=",
    "lessthan": "<",
    "lt": "<",
    "lessthanorequal": "<=",
    "le": "<=",
    "lte": "<=",
    "greaterthan": ">",
    "gt": ">",
    "greaterthanorequal": ">=",
    "ge": ">=",
    "gte": ">=",
}


class ActionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    actor: str = ""
    op: str
    target: str = ""
    t: Optional[float] = None
    dur: Optional[float] = None
    params: Dict[str, Any] = Field(default_factory=dict)
    pre: Optional[str] = None
    post: Optional[str] = None
    effects: List[str] = Field(default_factory=list)
    condition: Optional[Any] = None
    then_: Optional[List["ActionModel"]] = Field(default=None, alias="then")
    else_: Optional[List["ActionModel"]] = Field(default=None, alias="else")
    body: Optional[List["ActionModel"]] = None
    var: Optional[str] = None
    from_: Optional[Any] = Field(default=None, alias="from")
    to: Optional[Any] = None

    def to_action(self) -> Action:
        operation = parse_operation(self.op)
        params: Dict[str, Expr] = {}
        function_params: Optional[List[str]] = None
        body = _convert_block(self.body)

        for key, raw in (self.params or {}).items():
            if operation is Operation.DEFINE_FUNCTION and key == "args":
                names = raw or []
                if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
                    raise StructuralError(f"DefineFunction '{self.target}' args must be a list of parameter names")
                function_params = list(names)
                continue
            if operation is Operation.DEFINE_FUNCTION and key == "body":
                items = raw or []
                if not isinstance(items, list):
                    raise StructuralError(f"DefineFunction '{self.target}' body must be a list of actions")
                body = [ActionModel.model_validate(item).to_action() for item in items]
                continue
            params[key] = parse_expression(raw)

        return Action(
            actor=self.actor,
            operation=operation,
            target=self.target,
            time=self.t,
            duration=self.dur,
            params=params,
            precondition=self.pre,
            postcondition=self.post,
            effects=list(self.effects or []),
            condition=parse_expression(self.condition) if self.condition is not None else None,
            then_actions=_convert_block(self.then_),
            else_actions=_convert_block(self.else_),
            body=body,
            loop_var=self.var,
            range_from=parse_expression(self.from_) if self.from_ is not None else None,
            range_to=parse_expression(self.to) if self.to is not None else None,
            function_params=function_params,
        )


ActionModel.model_rebuild()


class ProgramModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metadata: Optional[Dict[str, Any]] = None
    actions: List[ActionModel] = Field(default_factory=list)

    def to_program(self) -> Program:
        return Program(
            actions=[item.to_action() for item in self.actions],
            metadata=dict(self.metadata or {}),
        )


def _convert_block(models: Optional[List[ActionModel]]) -> Optional[List[Action]]:
    if models is None:
        return None
    return [model.to_action() for model in models]


def _comparison_op(raw: Any) -> str:
    op = str(raw)
    if op in BINARY_OPERATORS:
        return op
    key = op.replace("_", "").lower()
    if key in _COMPARISON_NAMES:
        return _COMPARISON_NAMES[key]
    raise StructuralError(f"Unknown comparison operator '{op}'")


def _fold(op: str, operands: List[Any]) -> Expr:
    exprs = [parse_expression(item) for item in operands]
    if not exprs:
        return Literal(op == "and")
    result = exprs[0]
    for expr in exprs[1:]:
        result = BinaryOp(op=op, left=result, right=expr)
    return result


def parse_expression(raw: Any) -> Expr:
    """
    Turn a JSON value into an expression node.

    Anything that does not match one of the expression shapes is a literal,
    so plain mappings and sequences pass through as data.
    """
    if isinstance(raw, Expr):
        return raw
    if not isinstance(raw, dict):
        return Literal(raw)

    keys = set(raw.keys())
    if keys == {"var"} and isinstance(raw["var"], str):
        return VarRef(raw["var"])
    if keys == {"expr"} and isinstance(raw["expr"], dict):
        return parse_expression(raw["expr"])
    if {"op", "left", "right"} <= keys and keys <= {"op", "left", "right", "type"}:
        kind = raw.get("type")
        if kind in (None, "comparison", "binary"):
            op = raw["op"] if kind is None and str(raw["op"]) in BINARY_OPERATORS else _comparison_op(raw["op"])
            return BinaryOp(op=op, left=parse_expression(raw["left"]), right=parse_expression(raw["right"]))
    if "unary" in keys and "operand" in keys and str(raw["unary"]) in UNARY_OPERATORS:
        return UnaryOp(op=raw["unary"], operand=parse_expression(raw["operand"]))
    call_args = raw.get("args") or {}
    if "call" in keys and isinstance(raw["call"], str) and keys <= {"call", "args"} and isinstance(call_args, dict):
        args = {name: parse_expression(value) for name, value in call_args.items()}
        return FunctionCall(name=raw["call"], args=args)
    kind = raw.get("type")
    if kind in ("and", "or") and isinstance(raw.get("operands"), list):
        return _fold(kind, raw["operands"])
    if kind == "not" and "operand" in keys:
        return UnaryOp(op="not", operand=parse_expression(raw["operand"]))
    return Literal(raw)


def program_from_json(data: Union[str, bytes, Dict[str, Any], List[Any]]) -> Program:
    try:
        payload = json.loads(data) if isinstance(data, (str, bytes)) else data
    except json.JSONDecodeError as exc:
        raise StructuralError(f"Invalid JSON: {exc.msg}", location=f"line {exc.lineno}") from exc
    if isinstance(payload, list):
        payload = {"actions": payload}
    try:
        # nested bodies given as params are validated during conversion
        return ProgramModel.model_validate(payload).to_program()
    except ValidationError as exc:
        raise StructuralError(f"Invalid program: {exc.errors()[0].get('msg', str(exc))}") from exc


def load_program(path: Union[str, Path]) -> Program:
    """Read a program from a JSON file."""
    text = Path(path).read_text(encoding="utf-8")
    return program_from_json(text)


__all__ = ["ActionModel", "ProgramModel", "parse_expression", "program_from_json", "load_program"]
