import pytest

from ucl.errors import AtomicityViolation
from ucl.ir import Program, action
from ucl.runtime.engine import run_program
from ucl.substrates import RobotSubstrate


def _kitchen():
    robot = RobotSubstrate()
    robot.apply(
        action("r", "Gather", "tea"),
        {"items": ["kettle", "cup", "water", "teabag"], "quantities": {"water": "500ml"}},
    )
    return robot


def test_gather_creates_objects_at_room_temperature():
    robot = _kitchen()
    assert set(robot.objects) == {"kettle", "cup", "water", "teabag"}
    assert robot.objects["kettle"].temperature == 20.0
    assert robot.objects["water"].quantity == 500.0


def test_heat_to_boiling():
    robot = _kitchen()
    robot.apply(action("r", "Heat", "water"), {"temperature": "100C"})
    assert robot.objects["water"].temperature == 100.0
    assert robot.objects["water"].state == "boiling"
    robot.apply(action("r", "Heat", "kettle"), {"temperature": 60})
    assert robot.objects["kettle"].state == "heated"


def test_pour_moves_quantity_and_checks_supply():
    robot = _kitchen()
    robot.apply(action("r", "Pour", "water"), {"from": "water", "into": "cup", "amount": "250ml"})
    assert robot.objects["water"].quantity == 250.0
    assert robot.objects["cup"].quantity == 250.0
    assert "water" in robot.objects["cup"].contents
    robot.apply(action("r", "Pour", "water"), {"from": "water", "into": "cup", "amount": 400})
    assert robot.errors[-1].startswith("Cannot pour 400 from water")
    assert robot.objects["water"].quantity == 250.0


def test_place_and_remove_track_containment():
    robot = _kitchen()
    robot.apply(action("r", "Place", "teabag"), {"into": "cup"})
    assert robot.objects["teabag"].container == "cup"
    assert "teabag" in robot.objects["cup"].contents
    robot.apply(action("r", "Remove", "teabag"), {})
    assert robot.objects["teabag"].container is None
    assert "teabag" not in robot.objects["cup"].contents


def test_gripper_conflict_is_recorded_not_raised():
    robot = _kitchen()
    robot.apply(action("r", "Grasp", "cup"), {})
    robot.apply(action("r", "Grasp", "kettle"), {})
    assert robot.gripper == "cup"
    assert robot.errors == ["Gripper is already holding cup, cannot grasp kettle"]
    robot.apply(action("r", "Release", "kettle"), {})
    assert robot.gripper == "cup"
    robot.apply(action("r", "Release", "cup"), {})
    assert robot.gripper is None


def test_cognitive_operations_are_unsupported():
    robot = RobotSubstrate()
    robot.apply(action("r", "StoreFact", "cat"), {"legs": 4})
    robot.apply(action("r", "Transcribe", "speech"), {})
    assert robot.errors == ["Unsupported operation: StoreFact", "Unsupported operation: Transcribe"]


def test_atomic_step_after_failure_aborts():
    robot = _kitchen()
    robot.apply(action("r", "Grasp", "cup"), {})
    robot.apply(action("r", "Grasp", "kettle"), {})
    with pytest.raises(AtomicityViolation):
        robot.apply(action("r", "Pour", "water"), {"from": "water", "into": "kettle", "atomic": True})


def test_atomic_step_after_success_runs():
    robot = _kitchen()
    robot.apply(action("r", "Grasp", "kettle"), {})
    robot.apply(action("r", "Pour", "water"), {"from": "water", "into": "kettle", "atomic": True})
    assert "water" in robot.objects["kettle"].contents


def test_atomicity_violation_aborts_the_run():
    program = Program(
        actions=[
            action("r", "Gather", "tea", params={"items": ["cup", "kettle"]}),
            action("r", "Grasp", "cup"),
            action("r", "Grasp", "kettle"),
            action("r", "Serve", "tea", params={"atomic": True}),
            action("r", "Emit", "never"),
        ]
    )
    robot = RobotSubstrate()
    result = run_program(program, robot)
    assert result.status == "aborted"
    assert result.failure.code == "UCL-4001"
    assert result.failure.action_index == 3
    assert "Output: never" not in robot.log


def test_recall_exposes_object_attributes():
    robot = _kitchen()
    assert robot.recall("water.quantity") == (True, 500.0)
    assert robot.recall("gripper") == (True, None)
    assert robot.recall("nothing") == (False, None)
