"""
Configuration for the runtime, resolved from the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

log = logging.getLogger(__name__)

DEFAULT_MAX_CALL_DEPTH = 1000
DEFAULT_MAX_LOOP_ITERATIONS = 10000
DEFAULT_WORKING_MEMORY_CAPACITY = 7

# Upper bounds; deeper call chains would exhaust the executor thread's C stack.
MAX_CALL_DEPTH = 5000
MAX_LOOP_ITERATIONS = 1_000_000
MAX_WORKING_MEMORY_CAPACITY = 1000
MAX_RECEIVE_TIMEOUT = 3600.0


@dataclass
class RuntimeConfig:
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
    max_loop_iterations: int = DEFAULT_MAX_LOOP_ITERATIONS
    working_memory_capacity: int = DEFAULT_WORKING_MEMORY_CAPACITY
    receive_timeout: Optional[float] = None
    ruby_bin: str = "ruby"

    def __post_init__(self) -> None:
        self.max_call_depth = _clamp("max_call_depth", self.max_call_depth, MAX_CALL_DEPTH)
        self.max_loop_iterations = _clamp("max_loop_iterations", self.max_loop_iterations, MAX_LOOP_ITERATIONS)
        self.working_memory_capacity = _clamp(
            "working_memory_capacity", self.working_memory_capacity, MAX_WORKING_MEMORY_CAPACITY
        )
        if self.receive_timeout is not None:
            self.receive_timeout = _clamp("receive_timeout", self.receive_timeout, MAX_RECEIVE_TIMEOUT)


def _clamp(name: str, value, maximum):
    if value > maximum:
        log.warning("%s=%s exceeds the maximum of %s; using %s", name, value, maximum, maximum)
        return maximum
    return value


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    try:
        value = int(environ.get(name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _env_float(environ: Mapping[str, str], name: str) -> Optional[float]:
    raw = environ.get(name)
    if raw in (None, ""):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def load_config(env: Optional[Mapping[str, str]] = None) -> RuntimeConfig:
    environ = env if env is not None else os.environ
    return RuntimeConfig(
        max_call_depth=_env_int(environ, "UCL_MAX_CALL_DEPTH", DEFAULT_MAX_CALL_DEPTH),
        max_loop_iterations=_env_int(environ, "UCL_MAX_LOOP_ITERATIONS", DEFAULT_MAX_LOOP_ITERATIONS),
        working_memory_capacity=_env_int(environ, "UCL_WORKING_MEMORY_CAPACITY", DEFAULT_WORKING_MEMORY_CAPACITY),
        receive_timeout=_env_float(environ, "UCL_RECEIVE_TIMEOUT"),
        ruby_bin=environ.get("UCL_RUBY_BIN") or "ruby",
    )
