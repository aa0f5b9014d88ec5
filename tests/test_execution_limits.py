from ucl.ir import BinaryOp, FunctionCall, Literal, Program, VarRef, action
from ucl.runtime.config import RuntimeConfig
from ucl.runtime.engine import run_program
from ucl.substrates import BrainSubstrate, RobotSubstrate


def _countdown_program(start):
    """A function that calls itself once per step until n reaches zero."""
    return Program(
        actions=[
            action(
                "p",
                "DefineFunction",
                "down",
                function_params=["n"],
                body=[
                    action(
                        "p",
                        "If",
                        "more",
                        condition=BinaryOp(">", VarRef("n"), Literal(0)),
                        then_actions=[
                            action(
                                "p",
                                "Return",
                                "next",
                                params={"value": FunctionCall("down", {"n": BinaryOp("-", VarRef("n"), Literal(1))})},
                            )
                        ],
                        else_actions=[action("p", "Return", "done", params={"value": "done"})],
                    )
                ],
            ),
            action("p", "Call", "down", params={"n": start, "out": "result"}),
            action("p", "Return", "result", params={"value": VarRef("result")}),
        ]
    )


def test_one_thousand_nested_calls_complete():
    # down(999) .. down(0) is exactly 1000 nested calls
    result = run_program(_countdown_program(999), RobotSubstrate())
    assert result.ok
    assert result.value == "done"


def test_call_one_thousand_and_one_aborts():
    result = run_program(_countdown_program(1000), RobotSubstrate())
    assert result.status == "aborted"
    assert result.failure.kind == "RecursionLimitExceeded"
    assert result.failure.code == "UCL-3002"
    assert result.failure.limit == 1000
    assert result.failure.action_index == 1


def test_configured_call_depth_is_honoured():
    config = RuntimeConfig(max_call_depth=10)
    assert run_program(_countdown_program(9), RobotSubstrate(config), config).ok
    result = run_program(_countdown_program(10), RobotSubstrate(config), config)
    assert result.failure.kind == "RecursionLimitExceeded"


def _infinite_loop():
    return Program(
        actions=[
            action("p", "Assign", "i", params={"value": 0}),
            action(
                "p",
                "While",
                "forever",
                condition=Literal(True),
                body=[action("p", "Assign", "i", params={"value": BinaryOp("+", VarRef("i"), Literal(1))})],
            ),
        ]
    )


def test_infinite_while_stops_at_ten_thousand_iterations():
    brain = BrainSubstrate()
    result = run_program(_infinite_loop(), brain)
    assert result.status == "aborted"
    assert result.failure.kind == "LoopLimitExceeded"
    assert result.failure.limit == 10000
    assert result.failure.location == "actions[1]"
    assert result.trace[-1].startswith("ABORTED: LoopLimitExceeded (UCL-3001)")


def test_loop_of_exactly_the_limit_completes():
    config = RuntimeConfig(max_loop_iterations=5)
    program = Program(
        actions=[
            action("p", "Assign", "i", params={"value": 0}),
            action(
                "p",
                "While",
                "five",
                condition=BinaryOp("<", VarRef("i"), Literal(5)),
                body=[action("p", "Assign", "i", params={"value": BinaryOp("+", VarRef("i"), Literal(1))})],
            ),
        ]
    )
    assert run_program(program, BrainSubstrate(config), config).ok
    assert run_program(_infinite_loop(), BrainSubstrate(config), config).failure.limit == 5


def test_for_loop_is_bounded_too():
    config = RuntimeConfig(max_loop_iterations=3)
    program = Program(
        actions=[
            action(
                "p",
                "For",
                "many",
                loop_var="i",
                range_from=Literal(1),
                range_to=Literal(100),
                body=[action("p", "Emit", "tick")],
            )
        ]
    )
    brain = BrainSubstrate(config)
    result = run_program(program, brain, config)
    assert result.failure.kind == "LoopLimitExceeded"
    assert brain.output == ["tick", "tick", "tick"]


def test_failure_keeps_partial_trace():
    program = Program(
        actions=[
            action("p", "Emit", "before"),
            action("p", "Assign", "x", params={"value": VarRef("undefined")}),
            action("p", "Emit", "after"),
        ]
    )
    brain = BrainSubstrate()
    result = run_program(program, brain)
    assert brain.output == ["before"]
    assert result.trace[0].startswith("Emit(before)")
    assert result.trace[-1].startswith("ABORTED: UnboundVariableError")
