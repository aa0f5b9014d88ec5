"""
Simulated actuator substrate: objects, containers and a single-slot gripper.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..ir import Action, Operation
from ..runtime.config import RuntimeConfig
from .base import Effect, Substrate, render

ROOM_TEMPERATURE = 20.0
BOILING_POINT = 100.0

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass
class ObjectState:
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    temperature: float = ROOM_TEMPERATURE
    quantity: Optional[float] = None
    contents: List[str] = field(default_factory=list)
    container: Optional[str] = None
    state: str = "ready"


def _leading_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER.search(value)
        if match:
            return float(match.group(0))
    return None


def _position(value: Any) -> Optional[Tuple[float, float, float]]:
    if isinstance(value, (list, tuple)) and len(value) == 3:
        try:
            return (float(value[0]), float(value[1]), float(value[2]))
        except (TypeError, ValueError):
            return None
    return None


class RobotSubstrate(Substrate):
    """Physical state machine for kitchen-style actuator programs."""

    kind = "robot"

    def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
        super().__init__(config)
        self.objects: Dict[str, ObjectState] = {}
        self.gripper: Optional[str] = None
        self.arm_position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
        self.variables: Dict[str, Any] = {}
        self.log: List[str] = []

    def handlers(self) -> Dict[Operation, Callable[[Action, Dict[str, Any]], Effect]]:
        # StoreFact, Assert, Decide, Read, Write, Create and Oblige are cognitive
        # and fall through to ``unsupported``.
        return {
            Operation.GATHER: self._gather,
            Operation.MEASURE: self._measure,
            Operation.HEAT: self._heat,
            Operation.POUR: self._pour,
            Operation.MIX: self._mix,
            Operation.STIR: self._stir,
            Operation.PLACE: self._place,
            Operation.REMOVE: self._remove,
            Operation.STEEP: self._steep,
            Operation.SERVE: self._serve,
            Operation.GRASP: self._grasp,
            Operation.RELEASE: self._release,
            Operation.WAIT: self._wait,
            Operation.EMIT: self._emit,
            Operation.BIND: self._store,
            Operation.ASSIGN: self._store,
            Operation.RECEIVE: self._receive,
            Operation.SEND: self._send,
            Operation.CALL: self._call,
            Operation.RETURN: self._return,
        }

    def _log(self, action: Action, message: str, **delta: Any) -> Effect:
        self.log.append(message)
        return Effect(f"{action.describe()}: {message}", delta)

    def _fail(self, action: Action, message: str) -> Effect:
        self.record_error(message)
        return Effect(f"{action.describe()}: {message}", {"errors": [message]})

    def recall(self, name: str) -> Tuple[bool, Any]:
        if name in self.variables:
            return True, self.variables[name]
        if "." in name:
            obj_name, attr = name.rsplit(".", 1)
            obj = self.objects.get(obj_name)
            if obj is not None and hasattr(obj, attr):
                value = getattr(obj, attr)
                return True, list(value) if isinstance(value, (list, tuple)) else value
        if name == "gripper":
            return True, self.gripper
        return False, None

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data.update(
            {
                "objects": {name: asdict(obj) for name, obj in self.objects.items()},
                "gripper": self.gripper,
                "arm_position": list(self.arm_position),
                "variables": dict(self.variables),
                "log": list(self.log),
            }
        )
        return data

    # -------------------------------------------------------------- handlers

    def _gather(self, action: Action, params: Dict[str, Any]) -> Effect:
        items = params.get("items") or []
        quantities = params.get("quantities") or {}
        created: List[str] = []
        for item in items:
            if not isinstance(item, str):
                continue
            amount = _leading_number(quantities.get(item)) if isinstance(quantities, dict) else None
            self.objects[item] = ObjectState(quantity=amount)
            created.append(item)
        return self._log(action, f"Gathered items for {action.target}", objects=created)

    def _measure(self, action: Action, params: Dict[str, Any]) -> Effect:
        amount = params.get("amount", "unknown")
        obj = self.objects.get(action.target)
        number = _leading_number(amount)
        if obj is not None and number is not None:
            obj.quantity = number
        return self._log(action, f"Measured {render(amount)} of {action.target}")

    def _heat(self, action: Action, params: Dict[str, Any]) -> Effect:
        obj = self.objects.get(action.target)
        if obj is None:
            return self._fail(action, f"Cannot heat {action.target}: no such object")
        raw = params.get("temperature", BOILING_POINT)
        temperature = _leading_number(raw)
        if temperature is None:
            temperature = BOILING_POINT
        obj.temperature = temperature
        obj.state = "boiling" if temperature >= BOILING_POINT else "heated"
        return self._log(action, f"Heating {action.target} to {temperature:g}°C", temperature=temperature)

    def _pour(self, action: Action, params: Dict[str, Any]) -> Effect:
        source_name = params.get("from")
        dest_name = params.get("into")
        amount = _leading_number(params.get("amount"))
        source = self.objects.get(str(source_name)) if source_name is not None else None
        dest = self.objects.get(str(dest_name)) if dest_name is not None else None
        if source_name is not None and source is None:
            return self._fail(action, f"Cannot pour from {source_name}: no such object")
        if dest_name is not None and dest is None:
            return self._fail(action, f"Cannot pour into {dest_name}: no such object")
        if amount is not None and source is not None and source.quantity is not None:
            if source.quantity < amount:
                return self._fail(
                    action, f"Cannot pour {amount:g} from {source_name}: only {source.quantity:g} available"
                )
            source.quantity -= amount
        if dest is not None:
            if amount is not None:
                dest.quantity = (dest.quantity or 0.0) + amount
            if action.target not in dest.contents:
                dest.contents.append(action.target)
        amount_text = render(params.get("amount", "?"))
        return self._log(
            action,
            f"Poured {action.target} from {render(source_name or '?')} into {render(dest_name or '?')} ({amount_text})",
        )

    def _mix(self, action: Action, params: Dict[str, Any]) -> Effect:
        obj = self.objects.get(action.target)
        if obj is not None:
            obj.state = "mixed"
        return self._log(action, f"Mixed {action.target}")

    def _stir(self, action: Action, params: Dict[str, Any]) -> Effect:
        return self._log(action, f"Stirred {action.target}")

    def _place(self, action: Action, params: Dict[str, Any]) -> Effect:
        into = params.get("into")
        obj = self.objects.get(action.target)
        if obj is None:
            return self._fail(action, f"Cannot place {action.target}: no such object")
        if into is not None:
            container = self.objects.get(str(into))
            if container is None:
                return self._fail(action, f"Cannot place {action.target} into {into}: no such object")
            obj.container = str(into)
            obj.position = container.position
            if action.target not in container.contents:
                container.contents.append(action.target)
        position = _position(params.get("position"))
        if position is not None:
            obj.position = position
        return self._log(action, f"Placed {action.target} into {render(into if into is not None else '?')}")

    def _remove(self, action: Action, params: Dict[str, Any]) -> Effect:
        obj = self.objects.get(action.target)
        if obj is None:
            return self._fail(action, f"Cannot remove {action.target}: no such object")
        previous = obj.container
        if previous and previous in self.objects:
            contents = self.objects[previous].contents
            if action.target in contents:
                contents.remove(action.target)
        obj.container = None
        origin = params.get("from", previous or "?")
        return self._log(action, f"Removed {action.target} from {render(origin)}")

    def _steep(self, action: Action, params: Dict[str, Any]) -> Effect:
        duration = params.get("duration", "?")
        obj = self.objects.get(action.target)
        if obj is not None:
            obj.state = "steeped"
        return self._log(action, f"Steeping {action.target} for {render(duration)}")

    def _serve(self, action: Action, params: Dict[str, Any]) -> Effect:
        obj = self.objects.get(action.target)
        if obj is not None:
            obj.state = "served"
        return self._log(action, f"Serving {action.target}")

    def _grasp(self, action: Action, params: Dict[str, Any]) -> Effect:
        if self.gripper is not None and self.gripper != action.target:
            return self._fail(action, f"Gripper is already holding {self.gripper}, cannot grasp {action.target}")
        obj = self.objects.get(action.target)
        if obj is not None:
            self.arm_position = obj.position
        self.gripper = action.target
        return self._log(action, f"Grasped {action.target}", gripper=self.gripper)

    def _release(self, action: Action, params: Dict[str, Any]) -> Effect:
        if self.gripper != action.target:
            held = self.gripper or "nothing"
            return self._fail(action, f"Cannot release {action.target}: gripper is holding {held}")
        self.gripper = None
        return self._log(action, f"Released {action.target}", gripper=None)

    def _wait(self, action: Action, params: Dict[str, Any]) -> Effect:
        duration = action.duration if action.duration is not None else _leading_number(params.get("duration")) or 1.0
        return self._log(action, f"Waiting {duration:.0f}s for {action.target}")

    def _emit(self, action: Action, params: Dict[str, Any]) -> Effect:
        message = render(params.get("content", action.target))
        return self._log(action, f"Output: {message}")

    def _store(self, action: Action, params: Dict[str, Any]) -> Effect:
        value = params.get("value")
        self.variables[action.target] = value
        return self._log(action, f"Stored {action.target} = {render(value)}", variables={action.target: value})

    def _receive(self, action: Action, params: Dict[str, Any]) -> Effect:
        if "value" not in params:
            return self.unsupported(action, params)
        value = params["value"]
        self.variables[action.target] = value
        return self._log(action, f"Received {action.target} = {render(value)}", variables={action.target: value})

    def _send(self, action: Action, params: Dict[str, Any]) -> Effect:
        destination = params.get("destination", "?")
        return self._log(action, f"Signalled {render(params.get('value'))} to {render(destination)}")

    def _call(self, action: Action, params: Dict[str, Any]) -> Effect:
        if "result" in params:
            return self._log(action, f"Computed {action.target}: {render(params['result'])}")
        return self._log(action, f"Invoked {action.target}")

    def _return(self, action: Action, params: Dict[str, Any]) -> Effect:
        return self._log(action, f"Returned {render(params.get('value', action.target))}")


__all__ = ["ObjectState", "RobotSubstrate"]
