"""
Simulated cognitive substrate.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..ir import ACTUATOR_OPERATIONS, Action, Operation
from ..runtime.config import RuntimeConfig
from .base import Effect, Substrate, clamp, render

CONFUSION_DELTA = 0.4
CURIOSITY_DELTA = 0.3
WARMTH_DELTA = 0.1
GREETING_WARMTH_DELTA = 0.3
RESPONSIBILITY_DELTA = 0.5
FOCUS_DELTA = 0.2

_PHYSICAL_VERBS = {
    Operation.GATHER: "Gathering",
    Operation.HEAT: "Heating",
    Operation.POUR: "Pouring",
    Operation.MIX: "Mixing",
    Operation.STIR: "Stirring",
    Operation.PLACE: "Placing",
    Operation.REMOVE: "Removing",
    Operation.STEEP: "Steeping",
    Operation.SERVE: "Serving",
    Operation.GRASP: "Grasping",
    Operation.RELEASE: "Releasing",
}

_WRITE_OPERATIONS = {
    "multiply": ("×", lambda a, b: a * b),
    "add": ("+", lambda a, b: a + b),
    "subtract": ("-", lambda a, b: a - b),
    "divide": ("÷", lambda a, b: a / b),
}


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class BrainSubstrate(Substrate):
    """
    Beliefs, a bounded working memory, emotions and speech.

    Every recognised operation has one fixed state transition. An operation
    the brain does not recognise produces a confused thought and reply and
    raises confusion and curiosity; nothing it believes changes.
    """

    kind = "brain"

    def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
        super().__init__(config)
        self.beliefs: Dict[str, Any] = {}
        self.working_memory: Deque[str] = deque(maxlen=self.config.working_memory_capacity)
        self.emotions: Dict[str, float] = {}
        self.output: List[str] = []
        self.thoughts: List[str] = []
        self.goals: List[str] = []
        self.attention: Optional[str] = None

    def handlers(self) -> Dict[Operation, Callable[[Action, Dict[str, Any]], Effect]]:
        table: Dict[Operation, Callable[[Action, Dict[str, Any]], Effect]] = {
            Operation.STORE_FACT: self._store_fact,
            Operation.ASSERT: self._assert,
            Operation.EMIT: self._emit,
            Operation.RECEIVE: self._receive,
            Operation.SEND: self._send,
            Operation.MEASURE: self._measure,
            Operation.DECIDE: self._decide,
            Operation.READ: self._read,
            Operation.WRITE: self._write,
            Operation.CREATE: self._create,
            Operation.BIND: self._bind,
            Operation.OBLIGE: self._oblige,
            Operation.WAIT: self._wait,
            Operation.CALL: self._call,
            Operation.ASSIGN: self._assign,
            Operation.RETURN: self._return,
        }
        for op in ACTUATOR_OPERATIONS:
            table[op] = self._physical
        return table

    # ------------------------------------------------------------ primitives

    def remember(self, note: str) -> None:
        """Push a note into working memory; the oldest note falls out when full."""
        self.working_memory.append(note)

    def feel(self, emotion: str, delta: float) -> float:
        level = clamp(self.emotions.get(emotion, 0.0) + delta)
        self.emotions[emotion] = level
        return level

    def think(self, thought: str) -> None:
        self.thoughts.append(thought)

    def recall(self, name: str) -> Tuple[bool, Any]:
        if name in self.beliefs:
            return True, self.beliefs[name]
        return False, None

    def snapshot(self) -> Dict[str, Any]:
        data = super().snapshot()
        data.update(
            {
                "beliefs": dict(self.beliefs),
                "working_memory": list(self.working_memory),
                "emotions": dict(self.emotions),
                "output": list(self.output),
                "thoughts": list(self.thoughts),
                "goals": list(self.goals),
                "attention": self.attention,
            }
        )
        return data

    # -------------------------------------------------------------- handlers

    def _store_fact(self, action: Action, params: Dict[str, Any]) -> Effect:
        entity = params.get("entity") or action.target
        properties = {key: value for key, value in params.items() if key not in ("entity", "atomic")}
        stored: Dict[str, Any] = {}
        for key, value in properties.items():
            fact = f"{entity}.{key}"
            self.beliefs[fact] = value
            stored[fact] = value
        if properties:
            self.remember(f"The {entity} has properties: {', '.join(properties)}")
        facts = ", ".join(f"{key} = {render(value)}" for key, value in stored.items())
        return Effect(f"{action.describe()}: {facts or 'nothing stored'}", {"beliefs": stored})

    def _assert(self, action: Action, params: Dict[str, Any]) -> Effect:
        statement = render(params.get("statement", action.target))
        key = f"assertion.{action.target}"
        self.beliefs[key] = statement
        self.think(f"I believe that: {statement}")
        return Effect(f"{action.describe()}: {statement}", {"beliefs": {key: statement}})

    def _emit(self, action: Action, params: Dict[str, Any]) -> Effect:
        if "content" in params:
            content = params["content"]
            if isinstance(content, str) and content in self.beliefs:
                message = render(self.beliefs[content])
            else:
                message = render(content)
        elif "message" in params:
            message = render(params["message"])
        elif action.target in self.beliefs:
            message = render(self.beliefs[action.target])
        else:
            message = action.target
        self.output.append(message)
        warmth = self.feel("warmth", WARMTH_DELTA)
        if params.get("intent") == "greeting":
            warmth = self.feel("warmth", GREETING_WARMTH_DELTA)
        return Effect(f"{action.describe()}: said \"{message}\"", {"output": [message], "emotions": {"warmth": warmth}})

    def _receive(self, action: Action, params: Dict[str, Any]) -> Effect:
        heard = render(params.get("content", params.get("value", action.target)))
        self.remember(f"Heard: {heard}")
        self.attention = heard
        return Effect(f"{action.describe()}: heard {heard}", {"attention": heard})

    def _send(self, action: Action, params: Dict[str, Any]) -> Effect:
        value = render(params.get("value"))
        destination = params.get("destination", "?")
        self.think(f"Told {destination}: {value}")
        return Effect(f"{action.describe()}: told {destination} {value}")

    def _measure(self, action: Action, params: Dict[str, Any]) -> Effect:
        self.attention = action.target
        observed: Dict[str, Any] = {}
        for key, value in params.items():
            fact = f"observed.{action.target}.{key}"
            self.beliefs[fact] = value
            observed[fact] = value
        return Effect(f"{action.describe()}: observed {len(observed)} value(s)", {"beliefs": observed})

    def _decide(self, action: Action, params: Dict[str, Any]) -> Effect:
        decision = render(params.get("choice", params.get("decision", action.target)))
        self.think(f"Decided to: {decision}")
        goal = params.get("goal")
        if isinstance(goal, str):
            self.goals.append(goal)
        return Effect(f"{action.describe()}: decided to {decision}", {"goals": [goal] if goal else []})

    def _read(self, action: Action, params: Dict[str, Any]) -> Effect:
        found, value = self.recall(action.target)
        if not found:
            return Effect(f"{action.describe()}: no memory of {action.target}")
        note = f"Recalled: {action.target} = {render(value)}"
        self.remember(note)
        return Effect(f"{action.describe()}: {note}", {"working_memory": [note]})

    def _register(self, params: Dict[str, Any], side: str) -> float:
        register = params.get(f"{side}_register")
        if register is not None:
            return _as_number(self.beliefs.get(str(register), 0))
        return _as_number(params.get(side, 0))

    def _write(self, action: Action, params: Dict[str, Any]) -> Effect:
        if "operation" in params:
            symbol, fn = _WRITE_OPERATIONS.get(str(params["operation"]), _WRITE_OPERATIONS["multiply"])
            lhs = self._register(params, "lhs")
            rhs = self._register(params, "rhs")
            if symbol == "÷" and rhs == 0:
                self.record_error(f"Cannot divide {lhs} by zero for {action.target}")
                return Effect(f"{action.describe()}: division by zero")
            result = fn(lhs, rhs)
            self.beliefs[action.target] = result
            self.think(f"Calculated: {action.target} = {lhs} {symbol} {rhs} = {result}")
            return Effect(f"{action.describe()}: {action.target} = {result}", {"beliefs": {action.target: result}})
        if "value" in params:
            self.beliefs[action.target] = params["value"]
            return Effect(
                f"{action.describe()}: {action.target} = {render(params['value'])}",
                {"beliefs": {action.target: params["value"]}},
            )
        return Effect(f"{action.describe()}: nothing to write")

    def _create(self, action: Action, params: Dict[str, Any]) -> Effect:
        key = f"concept.{action.target}"
        self.beliefs[key] = {"exists": True}
        self.think(f"Conceived of: {action.target}")
        return Effect(f"{action.describe()}: conceived", {"beliefs": {key: {"exists": True}}})

    def _bind(self, action: Action, params: Dict[str, Any]) -> Effect:
        note = f"Bound: {action.target} = {render(params.get('value'))}"
        self.remember(note)
        return Effect(f"{action.describe()}: {note}", {"working_memory": [note]})

    def _oblige(self, action: Action, params: Dict[str, Any]) -> Effect:
        duty = params.get("duty")
        if not isinstance(duty, str):
            return Effect(f"{action.describe()}: no duty given")
        self.goals.append(f"Must: {duty}")
        level = self.feel("responsibility", RESPONSIBILITY_DELTA)
        return Effect(f"{action.describe()}: must {duty}", {"emotions": {"responsibility": level}})

    def _wait(self, action: Action, params: Dict[str, Any]) -> Effect:
        duration = action.duration if action.duration is not None else _as_number(params.get("duration", 1.0))
        self.think(f"Waiting for {duration:.1f}s")
        return Effect(f"{action.describe()}: waited {duration:.1f}s")

    def _call(self, action: Action, params: Dict[str, Any]) -> Effect:
        if "result" in params:
            thought = f"Worked out {action.target}: {render(params['result'])}"
        else:
            thought = f"Thought about calling {action.target}"
        self.think(thought)
        return Effect(f"{action.describe()}: {thought}")

    def _assign(self, action: Action, params: Dict[str, Any]) -> Effect:
        thought = f"Let {action.target} be {render(params.get('value'))}"
        self.think(thought)
        return Effect(f"{action.describe()}: {thought}")

    def _return(self, action: Action, params: Dict[str, Any]) -> Effect:
        thought = f"Concluded {render(params.get('value', action.target))}"
        self.think(thought)
        return Effect(f"{action.describe()}: {thought}")

    def _physical(self, action: Action, params: Dict[str, Any]) -> Effect:
        parts = [f"{_PHYSICAL_VERBS.get(action.operation, action.op_name)} {action.target}"]
        if "from" in params:
            parts.append(f"from {render(params['from'])}")
        if "into" in params:
            parts.append(f"into {render(params['into'])}")
        if "amount" in params:
            parts.append(f"({render(params['amount'])})")
        description = " ".join(parts)
        self.think(f"Performing action: {description}")
        self.remember(description)
        level = self.feel("focus", FOCUS_DELTA)
        return Effect(f"{action.describe()}: {description}", {"emotions": {"focus": level}})

    def degrade(self, action: Action, params: Dict[str, Any]) -> Effect:
        name = action.op_name
        self.think(f"Sorry, I don't know what that means: {name}")
        reply = f'I\'m not sure what you mean by "{name}"...'
        self.output.append(reply)
        confusion = self.feel("confusion", CONFUSION_DELTA)
        curiosity = self.feel("curiosity", CURIOSITY_DELTA)
        return Effect(
            f"{action.describe()}: not understood",
            {"output": [reply], "emotions": {"confusion": confusion, "curiosity": curiosity}},
        )

    def unsupported(self, action: Action, params: Dict[str, Any]) -> Effect:
        return self.degrade(action, params)


__all__ = ["BrainSubstrate"]
