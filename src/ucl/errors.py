"""
Error types for the UCL runtime.

Errors fall into four families:

* structural errors, raised by the validator before anything runs;
* evaluation errors, raised while evaluating an expression;
* execution limit errors, raised when a safety bound is reached;
* substrate and channel faults that abort a single partition.

Substrate-local semantic problems (a gripper conflict, for instance) are not
exceptions at all; they are recorded in the substrate's error log.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class UCLError(Exception):
    """Base error with optional location metadata."""

    message: str
    location: Optional[str] = None
    code: str = "UCL-0000"

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.location:
            return f"{self.code}: {self.message} (at {self.location})"
        return f"{self.code}: {self.message}"

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "kind": self.kind,
            "message": self.message,
            "location": self.location,
        }


@dataclass
class StructuralError(UCLError):
    """An action is missing an operation-specific required field."""

    code: str = "UCL-1001"


@dataclass
class EvaluationError(UCLError):
    """Raised when expression evaluation fails."""

    code: str = "UCL-2000"


@dataclass
class UnboundVariableError(EvaluationError):
    code: str = "UCL-2001"


@dataclass
class OperandTypeError(EvaluationError):
    code: str = "UCL-2002"


@dataclass
class ArithmeticFault(EvaluationError):
    """Division or modulo by zero, overflow, or a power with no real result."""

    code: str = "UCL-2003"


@dataclass
class UndefinedFunctionError(EvaluationError):
    code: str = "UCL-2004"


@dataclass
class NoReturnValueError(EvaluationError):
    """A function finished without Return and its result was used."""

    code: str = "UCL-2005"


@dataclass
class ExecutionLimitError(UCLError):
    """A fixed safety bound was reached."""

    limit: int = 0
    code: str = "UCL-3000"


@dataclass
class LoopLimitExceeded(ExecutionLimitError):
    code: str = "UCL-3001"


@dataclass
class RecursionLimitExceeded(ExecutionLimitError):
    code: str = "UCL-3002"


@dataclass
class AtomicityViolation(UCLError):
    """An atomic action followed a step that failed on the same substrate."""

    code: str = "UCL-4001"


@dataclass
class ChannelTimeout(UCLError):
    """A receive waited longer than the configured timeout."""

    channel: str = ""
    source: str = ""
    code: str = "UCL-5001"


@dataclass
class ExternalInterpreterError(UCLError):
    """Running emitted source through an external interpreter failed."""

    code: str = "UCL-6001"


PARTITION_FATAL = (EvaluationError, ExecutionLimitError, AtomicityViolation, ChannelTimeout)
