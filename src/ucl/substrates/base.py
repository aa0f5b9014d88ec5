"""
Common contract for substrate state machines.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import AtomicityViolation
from ..ir import Action, CustomOperation, Operation
from ..runtime.config import RuntimeConfig
from ..runtime.expressions import is_truthy

log = logging.getLogger(__name__)


@dataclass
class Effect:
    description: str
    delta: Dict[str, Any] = field(default_factory=dict)


def render(value: Any) -> str:
    """Human-readable text for a runtime value."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class Substrate:
    """
    Base class for execution environments.

    Subclasses map every recognised operation they understand to a handler in
    ``handlers()``. Recognised operations without a handler go to
    ``unsupported`` and custom operations to ``degrade``.
    """

    kind = "base"
    # When true the engine hands actions over untouched, control flow included.
    translates_control_flow = False

    def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
        self.config = config or RuntimeConfig()
        self.trace: List[str] = []
        self.errors: List[str] = []
        self._last_failed = False
        self._handlers = self.handlers()

    def handlers(self) -> Dict[Operation, Callable[[Action, Dict[str, Any]], Effect]]:
        return {}

    def apply(self, action: Action, params: Optional[Dict[str, Any]] = None) -> Effect:
        values = params if params is not None else {}
        if is_truthy(values.get("atomic")) and self._last_failed:
            raise AtomicityViolation(
                f"{action.describe()} requires the previous step to succeed, but it recorded an error: {self.errors[-1]}"
            )
        errors_before = len(self.errors)
        if isinstance(action.operation, CustomOperation):
            effect = self.degrade(action, values)
        else:
            handler = self._handlers.get(action.operation)
            effect = handler(action, values) if handler else self.unsupported(action, values)
        self._last_failed = len(self.errors) > errors_before
        self.trace.append(effect.description)
        return effect

    def record_error(self, message: str) -> None:
        log.debug("%s substrate error: %s", self.kind, message)
        self.errors.append(message)

    def unsupported(self, action: Action, params: Dict[str, Any]) -> Effect:
        message = f"Unsupported operation: {action.op_name}"
        self.record_error(message)
        return Effect(f"{action.describe()}: {message}", {"errors": [message]})

    def degrade(self, action: Action, params: Dict[str, Any]) -> Effect:
        return self.unsupported(action, params)

    def recall(self, name: str) -> Tuple[bool, Any]:
        return False, None

    def snapshot(self) -> Dict[str, Any]:
        return {"kind": self.kind, "trace": list(self.trace), "errors": list(self.errors)}
