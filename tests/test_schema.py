import json

import pytest

from ucl.errors import StructuralError
from ucl.ir import BinaryOp, CustomOperation, FunctionCall, Literal, Operation, UnaryOp, VarRef
from ucl.schema import load_program, parse_expression, program_from_json


def test_program_from_json_converts_actions_and_metadata():
    payload = {
        "metadata": {"name": "demo"},
        "actions": [
            {"actor": "brain", "op": "StoreFact", "target": "cat", "params": {"color": "black"}, "t": 1.5},
            {"actor": "brain", "op": "Transcribe", "target": "speech"},
        ],
    }
    program = program_from_json(json.dumps(payload))
    assert program.metadata == {"name": "demo"}
    first, second = program.actions
    assert first.operation is Operation.STORE_FACT
    assert first.time == 1.5
    assert first.params["color"] == Literal("black")
    assert second.operation == CustomOperation("Transcribe")
    assert second.is_custom


def test_operation_names_are_case_insensitive():
    program = program_from_json([{"actor": "a", "op": "emit", "target": "x"}])
    assert program.actions[0].operation is Operation.EMIT


def test_expression_shapes():
    assert parse_expression({"var": "x"}) == VarRef("x")
    assert parse_expression({"expr": {"op": "+", "left": 1, "right": {"var": "y"}}}) == BinaryOp(
        "+", Literal(1), VarRef("y")
    )
    assert parse_expression({"unary": "not", "operand": True}) == UnaryOp("not", Literal(True))
    call = parse_expression({"call": "fact", "args": {"n": 5}})
    assert isinstance(call, FunctionCall)
    assert call.name == "fact"
    assert call.args == {"n": Literal(5)}


def test_legacy_conditions():
    cmp = parse_expression({"type": "comparison", "op": "LessThan", "left": {"var": "i"}, "right": 3})
    assert cmp == BinaryOp("<", VarRef("i"), Literal(3))
    both = parse_expression({"type": "and", "operands": [True, {"var": "a"}, {"var": "b"}]})
    assert both == BinaryOp("and", BinaryOp("and", Literal(True), VarRef("a")), VarRef("b"))
    assert parse_expression({"type": "not", "operand": False}) == UnaryOp("not", Literal(False))


def test_plain_mapping_stays_literal():
    assert parse_expression({"eggs": 2}) == Literal({"eggs": 2})


def test_control_flow_fields_and_function_definition():
    program = program_from_json(
        {
            "actions": [
                {
                    "actor": "p",
                    "op": "DefineFunction",
                    "target": "double",
                    "params": {
                        "args": ["n"],
                        "body": [
                            {"actor": "p", "op": "Return", "target": "r", "params": {"value": {"op": "*", "left": {"var": "n"}, "right": 2}}}
                        ],
                    },
                },
                {
                    "actor": "p",
                    "op": "For",
                    "target": "loop",
                    "var": "i",
                    "from": 1,
                    "to": {"var": "n"},
                    "body": [{"actor": "p", "op": "Emit", "target": "tick"}],
                },
            ]
        }
    )
    define, loop = program.actions
    assert define.function_params == ["n"]
    assert define.body[0].operation is Operation.RETURN
    assert "args" not in define.params
    assert loop.loop_var == "i"
    assert loop.range_from == Literal(1)
    assert loop.range_to == VarRef("n")


def test_invalid_json_is_structural_error():
    with pytest.raises(StructuralError):
        program_from_json("{not json")
    with pytest.raises(StructuralError):
        program_from_json({"actions": [{"actor": "p"}]})


def test_function_body_given_as_params_is_validated():
    program = {
        "actions": [
            {
                "actor": "p",
                "op": "DefineFunction",
                "target": "f",
                "params": {"args": ["x"], "body": [{"actor": "p", "target": "missing-op"}]},
            }
        ]
    }
    with pytest.raises(StructuralError, match="Invalid program"):
        program_from_json(program)


def test_function_args_must_be_a_list_of_names():
    with pytest.raises(StructuralError, match="list of parameter names"):
        program_from_json([{"actor": "p", "op": "DefineFunction", "target": "f", "params": {"args": "num"}}])
    with pytest.raises(StructuralError, match="list of parameter names"):
        program_from_json([{"actor": "p", "op": "DefineFunction", "target": "f", "params": {"args": [1, 2]}}])
    with pytest.raises(StructuralError, match="list of actions"):
        program_from_json([{"actor": "p", "op": "DefineFunction", "target": "f", "params": {"body": "return"}}])


def test_call_with_non_mapping_args_stays_literal():
    assert parse_expression({"call": "f", "args": [1, 2]}) == Literal({"call": "f", "args": [1, 2]})


def test_load_program_reads_file(tmp_path):
    path = tmp_path / "program.json"
    path.write_text(json.dumps([{"actor": "p", "op": "Emit", "target": "hi"}]), encoding="utf-8")
    program = load_program(path)
    assert program.actors() == ["p"]
