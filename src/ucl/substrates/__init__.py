"""
Substrate state machines and the registry used to build them by name.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Type

from ..errors import UCLError
from ..runtime.config import RuntimeConfig
from .base import Effect, Substrate
from .brain import BrainSubstrate
from .robot import RobotSubstrate
from .ruby import RubySubstrate

SUBSTRATES: Dict[str, Type[Substrate]] = {
    "ruby": RubySubstrate,
    "brain": BrainSubstrate,
    "robot": RobotSubstrate,
}

_ALIASES = {
    "rubyvm": "ruby",
    "brainvm": "brain",
    "human": "brain",
    "robotvm": "robot",
}


def available_substrates() -> List[str]:
    return sorted(SUBSTRATES)


def resolve_kind(name: str) -> str:
    key = (name or "").strip().lower()
    key = _ALIASES.get(key, key)
    if key not in SUBSTRATES:
        raise UCLError(
            f"Unknown substrate '{name}'. Choose one of: {', '.join(available_substrates())}",
            code="UCL-0001",
        )
    return key


def create_substrate(kind: str, config: Optional[RuntimeConfig] = None) -> Substrate:
    return SUBSTRATES[resolve_kind(kind)](config)


__all__ = [
    "BrainSubstrate",
    "Effect",
    "RobotSubstrate",
    "RubySubstrate",
    "SUBSTRATES",
    "Substrate",
    "available_substrates",
    "create_substrate",
    "resolve_kind",
]
